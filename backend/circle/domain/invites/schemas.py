"""Pydantic schemas for invite tokens."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from circle.domain.invites.models import MAX_TTL_HOURS, MAX_USES_CEILING, MIN_TTL_HOURS


class InviteCreateRequest(BaseModel):
	max_uses: Optional[int] = Field(default=None, ge=1, le=MAX_USES_CEILING)
	ttl_hours: Optional[int] = Field(default=None, ge=MIN_TTL_HOURS, le=MAX_TTL_HOURS)


class InviteSummary(BaseModel):
	id: UUID
	token: str
	invite_url: str
	max_uses: int
	use_count: int
	remaining_uses: int
	expires_at: datetime
	created_at: datetime


class InviteList(BaseModel):
	invites: List[InviteSummary]
	count: int


class InviterProfile(BaseModel):
	id: int
	display_name: str
	avatar_url: Optional[str] = None


class InviteValidation(BaseModel):
	valid: bool
	remaining_uses: int
	expires_at: datetime
	inviter: InviterProfile
