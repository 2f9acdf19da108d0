"""Identity domain exports."""

from . import service  # noqa: F401
from .models import DEFAULT_DISPLAY_NAME, User, UserSearchHit, UserStatus  # noqa: F401
