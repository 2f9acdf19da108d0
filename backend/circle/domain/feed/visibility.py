"""Per-item visibility for comments and reactions.

Posts themselves are always circle-wide; access to the parent post is
established before any of this is consulted.
"""

from __future__ import annotations

from enum import Enum


class VisibilityScope(str, Enum):
	CIRCLE = "circle"
	OWNER_ONLY = "owner_only"


def visible(scope: VisibilityScope | str, viewer_id: int, owner_id: int) -> bool:
	"""Return whether ``viewer_id`` may see an item authored by ``owner_id``."""
	scope = VisibilityScope(scope)
	if scope is VisibilityScope.CIRCLE:
		return True
	return viewer_id == owner_id
