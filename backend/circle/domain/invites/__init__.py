"""Invite domain exports."""

from .models import Invite  # noqa: F401
from .service import InviteService, invite_url  # noqa: F401
