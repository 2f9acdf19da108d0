"""Pydantic schemas for feed, post and interaction endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from circle.domain.feed.models import Comment, FeedPost, Media, Post, Reaction


class MediaDescriptor(BaseModel):
	media_type: Literal["photo", "video"]
	storage_key: str = Field(..., min_length=1, max_length=512)
	cdn_url: Optional[str] = Field(default=None, max_length=2048)
	position: Optional[int] = Field(default=None, ge=0)
	duration_ms: Optional[int] = Field(default=None, ge=0)
	width: Optional[int] = Field(default=None, ge=1)
	height: Optional[int] = Field(default=None, ge=1)


class PostCreateRequest(BaseModel):
	content_type: Literal["post", "reel"]
	caption: Optional[str] = None
	comments_enabled: bool = True
	client_id: Optional[str] = Field(default=None, max_length=64)
	media: List[MediaDescriptor] = Field(default_factory=list)


class PostCaptionUpdate(BaseModel):
	caption: Optional[str] = None


class PostSettingsUpdate(BaseModel):
	comments_enabled: bool


class MediaOut(BaseModel):
	id: UUID
	media_type: str
	storage_key: str
	cdn_url: Optional[str] = None
	position: int
	duration_ms: Optional[int] = None
	width: Optional[int] = None
	height: Optional[int] = None

	@classmethod
	def from_media(cls, media: Media) -> "MediaOut":
		return cls(
			id=media.id,
			media_type=media.media_type.value,
			storage_key=media.storage_key,
			cdn_url=media.cdn_url,
			position=media.position,
			duration_ms=media.duration_ms,
			width=media.width,
			height=media.height,
		)


class PostSummary(BaseModel):
	id: UUID
	owner_user_id: int
	caption: str
	content_type: str
	comments_enabled: bool
	created_at: datetime
	updated_at: Optional[datetime] = None
	media: List[MediaOut] = Field(default_factory=list)

	@classmethod
	def from_post(cls, post: Post) -> "PostSummary":
		return cls(
			id=post.id,
			owner_user_id=post.owner_user_id,
			caption=post.caption,
			content_type=post.content_type.value,
			comments_enabled=post.comments_enabled,
			created_at=post.created_at,
			updated_at=post.updated_at,
			media=[MediaOut.from_media(m) for m in post.media],
		)


class FeedPostOut(PostSummary):
	owner_name: Optional[str] = None
	owner_avatar: Optional[str] = None
	seen: bool = False

	@classmethod
	def from_feed_post(cls, item: FeedPost) -> "FeedPostOut":
		base = PostSummary.from_post(item.post).model_dump()
		base["media"] = [MediaOut.from_media(m) for m in item.media]
		return cls(**base, owner_name=item.owner_name, owner_avatar=item.owner_avatar, seen=item.seen)


class FeedResponse(BaseModel):
	posts: List[FeedPostOut]
	count: int


class SeenRequest(BaseModel):
	post_ids: List[UUID] = Field(default_factory=list, max_length=200)


class SeenResponse(BaseModel):
	success: bool = True
	marked: int


class CommentCreateRequest(BaseModel):
	body: str = Field(..., max_length=4000)


class CommentUpdateRequest(BaseModel):
	body: str = Field(..., max_length=4000)


class CommentOut(BaseModel):
	id: UUID
	post_id: UUID
	commenter_user_id: int
	commenter_name: Optional[str] = None
	commenter_avatar: Optional[str] = None
	body: str
	visibility_scope: str
	created_at: datetime
	updated_at: Optional[datetime] = None

	@classmethod
	def from_comment(cls, comment: Comment) -> "CommentOut":
		return cls(
			id=comment.id,
			post_id=comment.post_id,
			commenter_user_id=comment.commenter_user_id,
			commenter_name=comment.commenter_name,
			commenter_avatar=comment.commenter_avatar,
			body=comment.body,
			visibility_scope=comment.visibility_scope.value,
			created_at=comment.created_at,
			updated_at=comment.updated_at,
		)


class CommentList(BaseModel):
	comments: List[CommentOut]
	count: int


class ReactionRequest(BaseModel):
	reaction_type: str = Field(..., min_length=1, max_length=32)
	visibility_scope: Literal["circle", "owner_only"] = "circle"


class ReactionOut(BaseModel):
	id: UUID
	post_id: UUID
	actor_user_id: int
	actor_name: Optional[str] = None
	reaction_type: str
	visibility_scope: str
	created_at: datetime

	@classmethod
	def from_reaction(cls, reaction: Reaction) -> "ReactionOut":
		return cls(
			id=reaction.id,
			post_id=reaction.post_id,
			actor_user_id=reaction.actor_user_id,
			actor_name=reaction.actor_name,
			reaction_type=reaction.reaction_type,
			visibility_scope=reaction.visibility_scope.value,
			created_at=reaction.created_at,
		)


class ReactionList(BaseModel):
	reactions: List[ReactionOut]
	count: int
	user_reactions: List[str] = Field(default_factory=list)
	counts: Dict[str, int] = Field(default_factory=dict)
