"""Domain models for posts, media, seen marks and interactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from circle.domain.feed.visibility import VisibilityScope

MAX_CAPTION_LENGTH = 2200
MAX_POST_MEDIA = 10
MAX_REEL_DURATION_MS = 60_000
MAX_COMMENT_LENGTH = 1000
REACTION_TYPES = ("like", "love", "laugh", "wow", "sad", "angry")


class ContentType(str, Enum):
	POST = "post"
	REEL = "reel"


class MediaType(str, Enum):
	PHOTO = "photo"
	VIDEO = "video"


@dataclass(slots=True)
class Media:
	id: UUID
	post_id: UUID
	media_type: MediaType
	storage_key: str
	cdn_url: Optional[str]
	position: int
	duration_ms: Optional[int] = None
	width: Optional[int] = None
	height: Optional[int] = None

	@classmethod
	def from_record(cls, record) -> "Media":
		return cls(
			id=UUID(str(record["id"])),
			post_id=UUID(str(record["post_id"])),
			media_type=MediaType(record["media_type"]),
			storage_key=record["storage_key"],
			cdn_url=record.get("cdn_url"),
			position=int(record["position"]),
			duration_ms=record.get("duration_ms"),
			width=record.get("width"),
			height=record.get("height"),
		)


@dataclass(slots=True)
class Post:
	id: UUID
	owner_user_id: int
	caption: str
	content_type: ContentType
	comments_enabled: bool
	created_at: datetime
	updated_at: Optional[datetime] = None
	client_id: Optional[str] = None
	deleted_at: Optional[datetime] = None
	media: List[Media] = field(default_factory=list)

	@classmethod
	def from_record(cls, record) -> "Post":
		return cls(
			id=UUID(str(record["id"])),
			owner_user_id=int(record["owner_user_id"]),
			caption=record.get("caption") or "",
			content_type=ContentType(record["content_type"]),
			comments_enabled=bool(record["comments_enabled"]),
			created_at=record["created_at"],
			updated_at=record.get("updated_at"),
			client_id=record.get("client_id"),
			deleted_at=record.get("deleted_at"),
		)


@dataclass(slots=True)
class FeedPost:
	"""A post as it appears in one viewer's feed."""

	post: Post
	owner_name: Optional[str]
	owner_avatar: Optional[str]
	seen: bool
	media: List[Media] = field(default_factory=list)


@dataclass(slots=True)
class Comment:
	id: UUID
	post_id: UUID
	commenter_user_id: int
	body: str
	visibility_scope: VisibilityScope
	created_at: datetime
	updated_at: Optional[datetime] = None
	commenter_name: Optional[str] = None
	commenter_avatar: Optional[str] = None

	@classmethod
	def from_record(cls, record) -> "Comment":
		return cls(
			id=UUID(str(record["id"])),
			post_id=UUID(str(record["post_id"])),
			commenter_user_id=int(record["commenter_user_id"]),
			body=record["body"],
			visibility_scope=VisibilityScope(record["visibility_scope"]),
			created_at=record["created_at"],
			updated_at=record.get("updated_at"),
			commenter_name=record.get("commenter_name"),
			commenter_avatar=record.get("commenter_avatar"),
		)


@dataclass(slots=True)
class Reaction:
	id: UUID
	post_id: UUID
	actor_user_id: int
	reaction_type: str
	visibility_scope: VisibilityScope
	created_at: datetime
	actor_name: Optional[str] = None
	actor_avatar: Optional[str] = None

	@classmethod
	def from_record(cls, record) -> "Reaction":
		return cls(
			id=UUID(str(record["id"])),
			post_id=UUID(str(record["post_id"])),
			actor_user_id=int(record["actor_user_id"]),
			reaction_type=record["reaction_type"],
			visibility_scope=VisibilityScope(record["visibility_scope"]),
			created_at=record["created_at"],
			actor_name=record.get("actor_name"),
			actor_avatar=record.get("actor_avatar"),
		)
