"""Feed domain exports."""

from .interactions import InteractionService  # noqa: F401
from .models import Comment, ContentType, FeedPost, Media, MediaType, Post, Reaction  # noqa: F401
from .posts import PostService  # noqa: F401
from .repo import FeedRepository  # noqa: F401
from .service import FeedService  # noqa: F401
from .visibility import VisibilityScope, visible  # noqa: F401
