"""Post authoring, comments and reactions."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from circle.domain.feed import schemas
from circle.domain.feed.interactions import InteractionService, reaction_counts
from circle.domain.feed.posts import PostService
from circle.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()

post_service = PostService()
interaction_service = InteractionService(posts=post_service)


# --- Posts --------------------------------------------------------------------


@router.post("/posts", response_model=schemas.PostSummary, status_code=status.HTTP_201_CREATED)
async def create_post(
	payload: schemas.PostCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.PostSummary:
	post = await post_service.create_post(
		auth_user.id,
		content_type=payload.content_type,
		media=[item.model_dump() for item in payload.media],
		caption=payload.caption,
		comments_enabled=payload.comments_enabled,
		client_id=payload.client_id,
	)
	return schemas.PostSummary.from_post(post)


@router.get("/posts/{post_id}", response_model=schemas.PostSummary)
async def get_post(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.PostSummary:
	post = await post_service.get_post(auth_user.id, post_id)
	return schemas.PostSummary.from_post(post)


@router.patch("/posts/{post_id}", response_model=schemas.PostSummary)
async def update_caption(
	post_id: UUID,
	payload: schemas.PostCaptionUpdate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.PostSummary:
	post = await post_service.update_caption(auth_user.id, post_id, payload.caption)
	return schemas.PostSummary.from_post(post)


@router.patch("/posts/{post_id}/settings", response_model=schemas.PostSummary)
async def update_settings(
	post_id: UUID,
	payload: schemas.PostSettingsUpdate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.PostSummary:
	post = await post_service.set_comments_enabled(auth_user.id, post_id, payload.comments_enabled)
	return schemas.PostSummary.from_post(post)


@router.delete("/posts/{post_id}")
async def delete_post(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, bool]:
	await post_service.delete_post(auth_user.id, post_id)
	return {"success": True}


# --- Comments -----------------------------------------------------------------


@router.get("/posts/{post_id}/comments", response_model=schemas.CommentList)
async def list_comments(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.CommentList:
	comments = await interaction_service.list_comments(auth_user.id, post_id)
	rows = [schemas.CommentOut.from_comment(c) for c in comments]
	return schemas.CommentList(comments=rows, count=len(rows))


@router.post("/posts/{post_id}/comments", response_model=schemas.CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(
	post_id: UUID,
	payload: schemas.CommentCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.CommentOut:
	comment = await interaction_service.add_comment(auth_user.id, post_id, payload.body)
	return schemas.CommentOut.from_comment(comment)


@router.patch("/comments/{comment_id}", response_model=schemas.CommentOut)
async def edit_comment(
	comment_id: UUID,
	payload: schemas.CommentUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.CommentOut:
	comment = await interaction_service.edit_comment(auth_user.id, comment_id, payload.body)
	return schemas.CommentOut.from_comment(comment)


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, bool]:
	await interaction_service.delete_comment(auth_user.id, comment_id)
	return {"success": True}


# --- Reactions ----------------------------------------------------------------


@router.get("/posts/{post_id}/reactions", response_model=schemas.ReactionList)
async def list_reactions(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.ReactionList:
	post, reactions = await interaction_service.list_reactions(auth_user.id, post_id)
	rows = [schemas.ReactionOut.from_reaction(r) for r in reactions]
	return schemas.ReactionList(
		reactions=rows,
		count=len(rows),
		user_reactions=[r.reaction_type for r in reactions if r.actor_user_id == auth_user.id],
		counts=reaction_counts(reactions) if post.owner_user_id == auth_user.id else {},
	)


@router.post("/posts/{post_id}/reactions", response_model=schemas.ReactionOut)
async def react(
	post_id: UUID,
	payload: schemas.ReactionRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ReactionOut:
	reaction = await interaction_service.react(
		auth_user.id,
		post_id,
		payload.reaction_type,
		scope=payload.visibility_scope,
	)
	return schemas.ReactionOut.from_reaction(reaction)


@router.delete("/posts/{post_id}/reactions")
async def unreact(
	post_id: UUID,
	reaction_type: str = Query(..., min_length=1, max_length=32),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, bool]:
	await interaction_service.unreact(auth_user.id, post_id, reaction_type)
	return {"success": True}
