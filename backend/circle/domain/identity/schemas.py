"""Pydantic schemas for user profiles."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from circle.domain.identity.models import User, UserSearchHit


class ProfileUpdateRequest(BaseModel):
	display_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
	avatar_url: Optional[str] = Field(default=None, max_length=2048)


class UserProfile(BaseModel):
	id: int
	display_name: str
	avatar_url: Optional[str] = None
	circle_count: int
	created_at: datetime

	@classmethod
	def from_user(cls, user: User) -> "UserProfile":
		return cls(
			id=user.id,
			display_name=user.display_name,
			avatar_url=user.avatar_url,
			circle_count=user.circle_count,
			created_at=user.created_at,
		)


class UserSearchResult(BaseModel):
	id: int
	display_name: str
	avatar_url: Optional[str] = None
	connection_status: str = "none"
	connection_type: Optional[str] = None
	connection_id: Optional[UUID] = None

	@classmethod
	def from_hit(cls, hit: UserSearchHit) -> "UserSearchResult":
		return cls(
			id=hit.id,
			display_name=hit.display_name,
			avatar_url=hit.avatar_url,
			connection_status=hit.connection_state or "none",
			connection_type=hit.connection_type,
			connection_id=hit.connection_id,
		)


class UserSearchResponse(BaseModel):
	users: List[UserSearchResult]
	count: int
