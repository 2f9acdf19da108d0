"""Pydantic schemas for circle connections."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from circle.domain.connections.models import Connection, ConnectionPeer


class ConnectionRequest(BaseModel):
	target_user_id: Optional[int] = Field(default=None, ge=1, description="Explicit target user")
	invite_token: Optional[str] = Field(default=None, min_length=1, max_length=128, description="Invite token to resolve")
	type: Literal["permanent", "temporary"] = "permanent"

	@model_validator(mode="after")
	def _exactly_one_target(self) -> "ConnectionRequest":
		if (self.target_user_id is None) == (self.invite_token is None):
			raise ValueError("provide exactly one of target_user_id or invite_token")
		return self


class ConnectionCreated(BaseModel):
	connection_id: UUID
	state: Literal["pending"]
	type: Literal["permanent", "temporary"]
	created_at: datetime


class ConnectionAccepted(BaseModel):
	connection_id: UUID
	state: Literal["active"]
	started_at: datetime
	expires_at: Optional[datetime] = None


class ConnectionRemoved(BaseModel):
	success: bool = True


class ConnectionReconfirmed(BaseModel):
	connection_id: UUID
	renewed: bool
	expires_at: Optional[datetime] = None


class PeerProfile(BaseModel):
	id: int
	display_name: Optional[str] = None
	avatar_url: Optional[str] = None


class ActiveConnectionSummary(BaseModel):
	id: UUID
	user: PeerProfile
	type: Literal["permanent", "temporary"]
	state: Literal["active"]
	started_at: Optional[datetime] = None
	expires_at: Optional[datetime] = None
	reconfirmed_by_me: bool = False
	reconfirmed_by_peer: bool = False


class PendingConnectionSummary(BaseModel):
	id: UUID
	user: PeerProfile
	requester_id: int
	type: Literal["permanent", "temporary"]
	created_at: datetime
	is_requester: bool


class ActiveConnectionList(BaseModel):
	connections: List[ActiveConnectionSummary]
	count: int


class PendingConnectionList(BaseModel):
	connections: List[PendingConnectionSummary]
	count: int


def _peer_profile(peer: ConnectionPeer) -> PeerProfile:
	return PeerProfile(id=peer.other_user_id, display_name=peer.other_display_name, avatar_url=peer.other_avatar_url)


def active_summary(peer: ConnectionPeer, viewer_id: int) -> ActiveConnectionSummary:
	c = peer.connection
	mine, theirs = (c.reconfirm_low_at, c.reconfirm_high_at) if c.is_low(viewer_id) else (c.reconfirm_high_at, c.reconfirm_low_at)
	return ActiveConnectionSummary(
		id=c.id,
		user=_peer_profile(peer),
		type=c.type.value,
		state="active",
		started_at=c.started_at,
		expires_at=c.expires_at,
		reconfirmed_by_me=mine is not None,
		reconfirmed_by_peer=theirs is not None,
	)


def pending_summary(peer: ConnectionPeer, viewer_id: int) -> PendingConnectionSummary:
	c = peer.connection
	return PendingConnectionSummary(
		id=c.id,
		user=_peer_profile(peer),
		requester_id=c.requester_id,
		type=c.type.value,
		created_at=c.created_at,
		is_requester=c.requester_id == viewer_id,
	)


def created_payload(connection: Connection) -> ConnectionCreated:
	return ConnectionCreated(
		connection_id=connection.id,
		state="pending",
		type=connection.type.value,
		created_at=connection.created_at,
	)


def accepted_payload(connection: Connection) -> ConnectionAccepted:
	assert connection.started_at is not None
	return ConnectionAccepted(
		connection_id=connection.id,
		state="active",
		started_at=connection.started_at,
		expires_at=connection.expires_at,
	)
