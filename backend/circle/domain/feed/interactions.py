"""Comments and reactions on posts, filtered per item by visibility scope."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List
from uuid import UUID

from circle.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from circle.domain.feed import repo as repo_module
from circle.domain.feed.models import MAX_COMMENT_LENGTH, REACTION_TYPES, Comment, Post, Reaction
from circle.domain.feed.posts import PostService
from circle.domain.feed.visibility import VisibilityScope, visible
from circle.obs import metrics as obs_metrics


def _clean_body(body: str | None) -> str:
	body = (body or "").strip()
	if not body or len(body) > MAX_COMMENT_LENGTH:
		raise ValidationError("invalid_comment_body")
	return body


class InteractionService:
	def __init__(
		self,
		repository: repo_module.FeedRepository | None = None,
		*,
		posts: PostService | None = None,
	) -> None:
		self.repo = repository or repo_module.FeedRepository()
		self.posts = posts or PostService(self.repo)

	# --- Comments -------------------------------------------------------------

	async def list_comments(self, viewer_id: int, post_id: UUID) -> List[Comment]:
		await self.posts.get_post(viewer_id, post_id)
		comments = await self.repo.list_comments(post_id)
		return [c for c in comments if visible(c.visibility_scope, viewer_id, c.commenter_user_id)]

	async def add_comment(self, viewer_id: int, post_id: UUID, body: str) -> Comment:
		post = await self.posts.get_post(viewer_id, post_id)
		if not post.comments_enabled:
			raise ForbiddenError("comments_disabled")
		body = _clean_body(body)
		comment = await self.repo.create_comment(post_id=post.id, commenter_id=viewer_id, body=body)
		obs_metrics.inc_comment_created()
		return comment

	async def edit_comment(self, viewer_id: int, comment_id: UUID, body: str) -> Comment:
		comment = await self.repo.get_comment(comment_id)
		if comment is None or comment.commenter_user_id != viewer_id:
			raise NotFoundError("comment_not_found")
		await self.posts.get_post(viewer_id, comment.post_id)
		body = _clean_body(body)
		updated = await self.repo.update_comment_body(comment.id, viewer_id, body)
		if updated is None:
			raise NotFoundError("comment_not_found")
		return updated

	async def delete_comment(self, viewer_id: int, comment_id: UUID) -> None:
		"""Hide the comment from everyone but its author."""
		comment = await self.repo.get_comment(comment_id)
		if comment is None or comment.commenter_user_id != viewer_id:
			raise NotFoundError("comment_not_found")
		await self.repo.set_comment_scope(comment.id, VisibilityScope.OWNER_ONLY)

	# --- Reactions ------------------------------------------------------------

	async def react(
		self,
		viewer_id: int,
		post_id: UUID,
		reaction_type: str,
		*,
		scope: VisibilityScope | str = VisibilityScope.CIRCLE,
	) -> Reaction:
		if reaction_type not in REACTION_TYPES:
			raise ValidationError("invalid_reaction_type")
		try:
			scope = VisibilityScope(scope)
		except ValueError:
			raise ValidationError("invalid_visibility_scope") from None
		post = await self.posts.get_post(viewer_id, post_id)
		reaction = await self.repo.upsert_reaction(
			post_id=post.id,
			actor_id=viewer_id,
			reaction_type=reaction_type,
			scope=scope,
		)
		obs_metrics.inc_reaction_created()
		return reaction

	async def list_reactions(self, viewer_id: int, post_id: UUID) -> tuple[Post, List[Reaction]]:
		post = await self.posts.get_post(viewer_id, post_id)
		reactions = await self.repo.list_reactions(post_id)
		return post, [r for r in reactions if visible(r.visibility_scope, viewer_id, r.actor_user_id)]

	async def unreact(self, viewer_id: int, post_id: UUID, reaction_type: str) -> None:
		await self.posts.get_post(viewer_id, post_id)
		removed = await self.repo.delete_reaction(post_id=post_id, actor_id=viewer_id, reaction_type=reaction_type)
		if not removed:
			raise NotFoundError("reaction_not_found")


def reaction_counts(reactions: List[Reaction]) -> Dict[str, int]:
	return dict(Counter(r.reaction_type for r in reactions))
