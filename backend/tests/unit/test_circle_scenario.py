"""End-to-end walk through a circle's lifecycle over the in-memory stores."""

from __future__ import annotations

from datetime import timedelta

import pytest

from circle.domain.connections.models import ConnectionState, EndedReason
from circle.domain.exceptions import InvalidInviteError

PHOTO = [{"media_type": "photo", "storage_key": "k/a.jpg"}]


@pytest.mark.asyncio
async def test_request_accept_post_seen_remove(store, make_service, feed_services, clock):
	alice = store.add_user(7, "alice")
	bob = store.add_user(3, "bob")
	connections = make_service()
	feed, posts, _ = feed_services

	pending = await connections.request_connection(alice, target_user_id=bob)
	assert pending.state == ConnectionState.PENDING
	assert store.circle_count(alice) == store.circle_count(bob) == 0

	active = await connections.accept_connection(pending.id, bob)
	assert active.state == ConnectionState.ACTIVE
	assert active.started_at == clock.now
	assert active.expires_at is None
	assert store.circle_count(alice) == store.circle_count(bob) == 1

	clock.advance(minutes=1)
	post = await posts.create_post(alice, content_type="post", media=PHOTO, caption="first")
	items = await feed.get_feed(bob)
	assert [(item.post.id, item.seen) for item in items] == [(post.id, False)]

	await feed.mark_seen(bob, [post.id])
	assert [(item.post.id, item.seen) for item in await feed.get_feed(bob)] == [(post.id, True)]

	ended = await connections.remove_connection(active.id, alice)
	assert ended.state == ConnectionState.ENDED
	# alice holds the higher id, so she is the high side of the pair.
	assert ended.ended_reason == EndedReason.REMOVED_BY_HIGH
	assert store.circle_count(alice) == store.circle_count(bob) == 0

	clock.advance(minutes=1)
	await posts.create_post(alice, content_type="post", media=PHOTO, caption="after")
	assert await feed.get_feed(bob) == []


@pytest.mark.asyncio
async def test_single_use_invite_scenario(store, make_service, invites, clock):
	issuer = store.add_user(1)
	first = store.add_user(2)
	second = store.add_user(3)
	connections = make_service()
	invite = invites.issue(issuer, max_uses=1, expires_at=clock.now + timedelta(hours=72))

	created = await connections.request_connection(first, invite_token=invite.token)
	assert created.requester_id == first
	assert created.recipient_id == issuer

	with pytest.raises(InvalidInviteError):
		await connections.request_connection(second, invite_token=invite.token)
