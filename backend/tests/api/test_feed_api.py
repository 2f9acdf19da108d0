from datetime import datetime, timezone
from uuid import uuid4

import pytest

from circle.api import feed as feed_api
from circle.domain.feed.models import ContentType, FeedPost, Media, MediaType, Post

HEADERS = {"X-User-Id": "3"}


def _feed_post(seen=False):
    post_id = uuid4()
    post = Post(
        id=post_id,
        owner_user_id=7,
        caption="hello",
        content_type=ContentType.POST,
        comments_enabled=True,
        created_at=datetime(2025, 2, 1, 9, 30, tzinfo=timezone.utc),
    )
    media = [Media(id=uuid4(), post_id=post_id, media_type=MediaType.PHOTO, storage_key="k/1.jpg", cdn_url=None, position=0)]
    return FeedPost(post=post, owner_name="alice", owner_avatar=None, seen=seen, media=media)


@pytest.mark.asyncio
async def test_get_feed_passes_cursor_and_limit(monkeypatch, api_client):
    item = _feed_post()
    calls = {}

    async def fake_get_feed(user_id, *, newer_than=None, limit=None):
        calls.update(user_id=user_id, newer_than=newer_than, limit=limit)
        return [item]

    monkeypatch.setattr(feed_api.feed_service, "get_feed", fake_get_feed)

    response = await api_client.get(
        "/v1/feed",
        params={"newer_than": "2025-01-01T00:00:00Z", "limit": 5},
        headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    post = body["posts"][0]
    assert post["id"] == str(item.post.id)
    assert post["owner_name"] == "alice"
    assert post["seen"] is False
    assert post["media"][0]["storage_key"] == "k/1.jpg"
    assert calls["user_id"] == 3
    assert calls["limit"] == 5
    assert calls["newer_than"] == datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_mark_seen(monkeypatch, api_client):
    ids = [uuid4(), uuid4()]

    async def fake_mark_seen(user_id, post_ids):
        assert list(post_ids) == ids
        return len(post_ids)

    monkeypatch.setattr(feed_api.feed_service, "mark_seen", fake_mark_seen)

    response = await api_client.post("/v1/feed/seen", json={"post_ids": [str(i) for i in ids]}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json() == {"success": True, "marked": 2}


@pytest.mark.asyncio
async def test_mark_seen_rejects_oversized_batch(api_client):
    response = await api_client.post(
        "/v1/feed/seen",
        json={"post_ids": [str(uuid4()) for _ in range(201)]},
        headers=HEADERS,
    )
    assert response.status_code == 422
