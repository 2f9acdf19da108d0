"""In-memory stand-ins for the asyncpg pool and the circle repositories.

The fake connection tracks the row locks it holds and releases them when its
transaction exits, so concurrent service calls serialise the same way they do
against Postgres ``SELECT ... FOR UPDATE``.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import pytest

from circle.domain.connections import service as connection_service_module
from circle.domain.connections.capacity import CapacityGuard
from circle.domain.connections.models import (
	Connection,
	ConnectionEvent,
	ConnectionPeer,
	ConnectionState,
	ConnectionType,
	EndedReason,
	sources_for,
)
from circle.domain.connections.service import ConnectionService
from circle.domain.exceptions import InvalidInviteError
from circle.domain.feed import models as feed_models
from circle.domain.feed.interactions import InteractionService
from circle.domain.feed.posts import PostService
from circle.domain.feed.service import FeedService
from circle.domain.feed.visibility import VisibilityScope
from circle.domain.invites.models import Invite


class _FakeTransaction:
	def __init__(self, conn: "_FakeConnection") -> None:
		self._conn = conn

	async def __aenter__(self):
		return None

	async def __aexit__(self, exc_type, exc, tb):
		self._conn.release_locks()
		return False


class _FakeAcquire:
	def __init__(self, conn):
		self._conn = conn

	async def __aenter__(self):
		return self._conn

	async def __aexit__(self, exc_type, exc, tb):
		self._conn.release_locks()
		return False


class _FakeConnection:
	def __init__(self) -> None:
		self._held: List[asyncio.Lock] = []

	def transaction(self):
		return _FakeTransaction(self)

	async def lock(self, lock: asyncio.Lock) -> None:
		if lock in self._held:
			return
		await lock.acquire()
		self._held.append(lock)

	def release_locks(self) -> None:
		while self._held:
			self._held.pop().release()


class FakePool:
	def acquire(self):
		return _FakeAcquire(_FakeConnection())


class Clock:
	def __init__(self, now: datetime) -> None:
		self.now = now

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **kwargs) -> datetime:
		self.now = self.now + timedelta(**kwargs)
		return self.now


class InMemoryCircleStore:
	"""Mirrors ConnectionRepository over dicts, with per-row asyncio locks."""

	def __init__(self) -> None:
		self.users: Dict[int, dict] = {}
		self.connections: Dict[UUID, Connection] = {}
		self._locks: Dict[Tuple[str, object], asyncio.Lock] = defaultdict(asyncio.Lock)

	def add_user(self, user_id: int, name: Optional[str] = None, *, status: str = "active") -> int:
		self.users[user_id] = {
			"display_name": name or f"user-{user_id}",
			"avatar_url": None,
			"circle_count": 0,
			"status": status,
		}
		return user_id

	def circle_count(self, user_id: int) -> int:
		return self.users[user_id]["circle_count"]

	def ground_truth(self, user_id: int) -> int:
		return sum(1 for c in self.connections.values() if c.state == ConnectionState.ACTIVE and c.involves(user_id))

	def pair_rows(self, a: int, b: int) -> List[Connection]:
		low, high = min(a, b), max(a, b)
		return [c for c in self.connections.values() if (c.low_user_id, c.high_user_id) == (low, high)]

	def _copy(self, connection: Optional[Connection]) -> Optional[Connection]:
		return dataclasses.replace(connection) if connection else None

	# --- reads

	async def get(self, conn, connection_id, *, for_update=False):
		if for_update:
			await conn.lock(self._locks[("connection", connection_id)])
		return self._copy(self.connections.get(connection_id))

	async def get_between(self, conn, low_user_id, high_user_id):
		for connection in self.connections.values():
			if connection.low_user_id == low_user_id and connection.high_user_id == high_user_id:
				return self._copy(connection)
		return None

	async def user_exists(self, conn, user_id):
		user = self.users.get(user_id)
		return bool(user and user["status"] == "active")

	async def count_active(self, conn, user_id):
		return self.ground_truth(user_id)

	async def count_active_many(self, conn, user_ids):
		await asyncio.sleep(0)
		return {uid: self.ground_truth(uid) for uid in user_ids}

	def _peers(self, user_id: int, state: ConnectionState) -> List[ConnectionPeer]:
		rows = [c for c in self.connections.values() if c.state == state and c.involves(user_id)]
		peers = []
		for connection in rows:
			other = connection.other(user_id)
			peers.append(
				ConnectionPeer(
					connection=self._copy(connection),
					other_user_id=other,
					other_display_name=self.users[other]["display_name"],
					other_avatar_url=self.users[other]["avatar_url"],
				)
			)
		return peers

	async def list_active(self, conn, user_id):
		peers = self._peers(user_id, ConnectionState.ACTIVE)
		peers.sort(key=lambda p: p.connection.started_at, reverse=True)
		return peers

	async def list_pending(self, conn, user_id):
		peers = self._peers(user_id, ConnectionState.PENDING)
		peers.sort(key=lambda p: p.connection.created_at, reverse=True)
		return peers

	async def list_expired_ids(self, conn, *, now, limit):
		due = [
			c
			for c in self.connections.values()
			if c.state == ConnectionState.ACTIVE and c.type == ConnectionType.TEMPORARY and c.expires_at and c.expires_at < now
		]
		due.sort(key=lambda c: c.expires_at)
		return [c.id for c in due[:limit]]

	async def lock_users(self, conn, user_ids):
		ids = sorted(set(int(uid) for uid in user_ids))
		for uid in ids:
			await conn.lock(self._locks[("user", uid)])
			await asyncio.sleep(0)
		return [uid for uid in ids if uid in self.users]

	# --- writes

	async def insert_pending(self, conn, *, low_user_id, high_user_id, requester_id, connection_type, now):
		await asyncio.sleep(0)
		if await self.get_between(conn, low_user_id, high_user_id) is not None:
			return None
		connection = Connection(
			id=uuid4(),
			low_user_id=low_user_id,
			high_user_id=high_user_id,
			requester_id=requester_id,
			type=ConnectionType(connection_type),
			state=ConnectionState.PENDING,
			created_at=now,
		)
		self.connections[connection.id] = connection
		return self._copy(connection)

	async def activate(self, conn, connection_id, *, now, expires_at):
		connection = self.connections.get(connection_id)
		if connection is None or connection.state.value not in sources_for(ConnectionEvent.ACCEPT):
			return None
		connection.state = ConnectionState.ACTIVE
		connection.started_at = now
		connection.expires_at = expires_at if connection.type == ConnectionType.TEMPORARY else None
		return self._copy(connection)

	async def end(self, conn, connection_id, *, reason, now):
		event = ConnectionEvent.EXPIRE if reason == EndedReason.EXPIRED else ConnectionEvent.REMOVE
		connection = self.connections.get(connection_id)
		if connection is None or connection.state.value not in sources_for(event):
			return None
		connection.state = ConnectionState.ENDED
		connection.ended_at = now
		connection.ended_reason = reason
		return self._copy(connection)

	async def mark_reconfirm(self, conn, connection_id, *, low_side, now):
		connection = self.connections.get(connection_id)
		if connection is None or connection.state != ConnectionState.ACTIVE or connection.type != ConnectionType.TEMPORARY:
			return None
		if low_side and connection.reconfirm_low_at is None:
			connection.reconfirm_low_at = now
		if not low_side and connection.reconfirm_high_at is None:
			connection.reconfirm_high_at = now
		return self._copy(connection)

	async def renew(self, conn, connection_id, *, expires_at, now):
		connection = self.connections.get(connection_id)
		if connection is None or connection.reconfirm_low_at is None or connection.reconfirm_high_at is None:
			return None
		connection.expires_at = expires_at
		connection.reconfirm_low_at = None
		connection.reconfirm_high_at = None
		return self._copy(connection)

	async def refresh_circle_count(self, conn, user_id):
		count = self.ground_truth(user_id)
		self.users[user_id]["circle_count"] = count
		return count


class FakeInvites:
	"""Stands in for InviteService inside request_connection."""

	def __init__(self) -> None:
		self.invites: Dict[str, Invite] = {}
		self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

	def issue(self, issuer_id: int, *, max_uses: int = 1, expires_at: datetime) -> Invite:
		invite = Invite(
			id=uuid4(),
			token=f"tok-{len(self.invites) + 1}",
			issuer_user_id=issuer_id,
			max_uses=max_uses,
			use_count=0,
			expires_at=expires_at,
			created_at=expires_at - timedelta(hours=72),
		)
		self.invites[invite.token] = invite
		return invite

	async def resolve_for_update(self, conn, token, *, now):
		await conn.lock(self._locks[token])
		invite = self.invites.get(token)
		if invite is None or not invite.is_usable(now):
			raise InvalidInviteError("invalid_invite")
		return dataclasses.replace(invite)

	async def consume(self, conn, invite_id):
		for invite in self.invites.values():
			if invite.id == invite_id:
				if invite.use_count >= invite.max_uses:
					raise InvalidInviteError("invalid_invite")
				invite.use_count += 1
				return invite.use_count
		raise InvalidInviteError("invalid_invite")


class InMemoryFeedRepo:
	"""Mirrors FeedRepository; connection visibility is read from the shared circle store."""

	def __init__(self, store: InMemoryCircleStore, clock: Clock) -> None:
		self.store = store
		self.clock = clock
		self.posts: Dict[UUID, feed_models.Post] = {}
		self.seen: set[tuple[UUID, int]] = set()
		self.comments: Dict[UUID, feed_models.Comment] = {}
		self.reactions: Dict[tuple[UUID, int, str], feed_models.Reaction] = {}

	def _connected(self, a: int, b: int) -> bool:
		return any(c.state == ConnectionState.ACTIVE for c in self.store.pair_rows(a, b))

	async def list_feed(self, viewer_id, *, newer_than, limit):
		rows = [
			p
			for p in self.posts.values()
			if p.deleted_at is None
			and p.owner_user_id != viewer_id
			and self._connected(viewer_id, p.owner_user_id)
			and (newer_than is None or p.created_at > newer_than)
		]
		rows.sort(key=lambda p: (p.created_at, p.id), reverse=True)
		return [
			feed_models.FeedPost(
				post=p,
				owner_name=self.store.users[p.owner_user_id]["display_name"],
				owner_avatar=None,
				seen=(p.id, viewer_id) in self.seen,
			)
			for p in rows[:limit]
		]

	async def media_for_posts(self, post_ids):
		return {pid: list(self.posts[pid].media) for pid in post_ids if pid in self.posts}

	async def mark_seen(self, viewer_id, post_ids):
		inserted = 0
		for pid in post_ids:
			post = self.posts.get(pid)
			if post is None or post.deleted_at is not None or (pid, viewer_id) in self.seen:
				continue
			if post.owner_user_id == viewer_id or not self._connected(viewer_id, post.owner_user_id):
				continue
			self.seen.add((pid, viewer_id))
			inserted += 1
		return inserted

	async def has_active_connection(self, user_a, user_b):
		return self._connected(user_a, user_b)

	async def create_post(self, *, owner_id, caption, content_type, comments_enabled, client_id, media):
		if client_id is not None:
			for post in self.posts.values():
				if post.owner_user_id == owner_id and post.client_id == client_id:
					return post
		post = feed_models.Post(
			id=uuid4(),
			owner_user_id=owner_id,
			caption=caption,
			content_type=content_type,
			comments_enabled=comments_enabled,
			created_at=self.clock(),
			client_id=client_id,
		)
		for item in media:
			post.media.append(
				feed_models.Media(
					id=uuid4(),
					post_id=post.id,
					media_type=feed_models.MediaType(item["media_type"]),
					storage_key=item["storage_key"],
					cdn_url=item.get("cdn_url"),
					position=item["position"],
					duration_ms=item.get("duration_ms"),
				)
			)
		self.posts[post.id] = post
		return post

	async def get_post(self, post_id):
		post = self.posts.get(post_id)
		return post if post and post.deleted_at is None else None

	async def update_post(self, post_id, owner_id, *, caption=None, comments_enabled=None):
		post = await self.get_post(post_id)
		if post is None or post.owner_user_id != owner_id:
			return None
		if caption is not None:
			post.caption = caption
		if comments_enabled is not None:
			post.comments_enabled = comments_enabled
		return post

	async def soft_delete_post(self, post_id, owner_id):
		post = await self.get_post(post_id)
		if post is None or post.owner_user_id != owner_id:
			return False
		post.deleted_at = self.clock()
		return True

	async def create_comment(self, *, post_id, commenter_id, body):
		comment = feed_models.Comment(
			id=uuid4(),
			post_id=post_id,
			commenter_user_id=commenter_id,
			body=body,
			visibility_scope=VisibilityScope.CIRCLE,
			created_at=self.clock(),
		)
		self.comments[comment.id] = comment
		return comment

	async def list_comments(self, post_id):
		return sorted((c for c in self.comments.values() if c.post_id == post_id), key=lambda c: c.created_at)

	async def get_comment(self, comment_id):
		return self.comments.get(comment_id)

	async def update_comment_body(self, comment_id, commenter_id, body):
		comment = self.comments.get(comment_id)
		if comment is None or comment.commenter_user_id != commenter_id:
			return None
		comment.body = body
		comment.updated_at = self.clock()
		return comment

	async def set_comment_scope(self, comment_id, scope):
		self.comments[comment_id].visibility_scope = scope
		return True

	async def upsert_reaction(self, *, post_id, actor_id, reaction_type, scope):
		key = (post_id, actor_id, reaction_type)
		existing = self.reactions.get(key)
		if existing is not None:
			existing.visibility_scope = scope
			return existing
		reaction = feed_models.Reaction(
			id=uuid4(),
			post_id=post_id,
			actor_user_id=actor_id,
			reaction_type=reaction_type,
			visibility_scope=scope,
			created_at=self.clock(),
		)
		self.reactions[key] = reaction
		return reaction

	async def list_reactions(self, post_id):
		return [r for r in self.reactions.values() if r.post_id == post_id]

	async def delete_reaction(self, *, post_id, actor_id, reaction_type):
		return self.reactions.pop((post_id, actor_id, reaction_type), None) is not None


@pytest.fixture
def clock() -> Clock:
	return Clock(datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemoryCircleStore:
	return InMemoryCircleStore()


@pytest.fixture
def invites() -> FakeInvites:
	return FakeInvites()


@pytest.fixture
def fake_pool(monkeypatch) -> FakePool:
	pool = FakePool()

	async def _get_pool():
		return pool

	monkeypatch.setattr(connection_service_module, "get_pool", _get_pool)
	return pool


@pytest.fixture
def make_service(store, invites, clock, fake_pool):
	def _factory(*, limit: Optional[int] = None) -> ConnectionService:
		return ConnectionService(
			store,
			capacity=CapacityGuard(store, limit=limit),
			invites=invites,
			clock=clock,
		)

	return _factory


@pytest.fixture
def feed_repo(store, clock) -> InMemoryFeedRepo:
	return InMemoryFeedRepo(store, clock)


@pytest.fixture
def feed_services(feed_repo):
	posts = PostService(feed_repo)
	return FeedService(feed_repo), posts, InteractionService(feed_repo, posts=posts)
