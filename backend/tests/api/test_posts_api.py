from datetime import datetime, timezone
from uuid import uuid4

import pytest

from circle.api import posts as posts_api
from circle.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from circle.domain.feed.models import Comment, ContentType, Media, MediaType, Post, Reaction
from circle.domain.feed.visibility import VisibilityScope

OWNER = {"X-User-Id": "7"}
FRIEND = {"X-User-Id": "3"}


def _sample_post(**overrides):
    post_id = overrides.pop("id", uuid4())
    payload = {
        "id": post_id,
        "owner_user_id": 7,
        "caption": "hello",
        "content_type": ContentType.POST,
        "comments_enabled": True,
        "created_at": datetime.now(timezone.utc),
        "media": [Media(id=uuid4(), post_id=post_id, media_type=MediaType.PHOTO, storage_key="k/1.jpg", cdn_url=None, position=0)],
    }
    payload.update(overrides)
    return Post(**payload)


def _reaction(post_id, actor, kind, scope=VisibilityScope.CIRCLE):
    return Reaction(
        id=uuid4(),
        post_id=post_id,
        actor_user_id=actor,
        reaction_type=kind,
        visibility_scope=scope,
        created_at=datetime.now(timezone.utc),
    )


@pytest.mark.asyncio
async def test_create_post(monkeypatch, api_client):
    post = _sample_post()
    received = {}

    async def fake_create(owner_id, **kwargs):
        received.update(kwargs, owner_id=owner_id)
        return post

    monkeypatch.setattr(posts_api.post_service, "create_post", fake_create)

    response = await api_client.post(
        "/v1/posts",
        json={"content_type": "post", "caption": "hello", "media": [{"media_type": "photo", "storage_key": "k/1.jpg"}]},
        headers=OWNER,
    )
    assert response.status_code == 201
    assert response.json()["id"] == str(post.id)
    assert received["owner_id"] == 7
    assert received["media"][0]["storage_key"] == "k/1.jpg"


@pytest.mark.asyncio
async def test_create_post_validation_error(monkeypatch, api_client):
    async def fake_create(owner_id, **kwargs):
        raise ValidationError("reel_too_long")

    monkeypatch.setattr(posts_api.post_service, "create_post", fake_create)

    response = await api_client.post(
        "/v1/posts",
        json={"content_type": "reel", "media": [{"media_type": "video", "storage_key": "k/v.mp4", "duration_ms": 90000}]},
        headers=OWNER,
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "reel_too_long"


@pytest.mark.asyncio
async def test_get_post_outside_circle_is_not_found(monkeypatch, api_client):
    async def fake_get(viewer_id, post_id):
        raise NotFoundError("post_not_found")

    monkeypatch.setattr(posts_api.post_service, "get_post", fake_get)

    response = await api_client.get(f"/v1/posts/{uuid4()}", headers=FRIEND)
    assert response.status_code == 404
    assert response.json()["detail"] == "post_not_found"


@pytest.mark.asyncio
async def test_comments_disabled(monkeypatch, api_client):
    async def fake_add(viewer_id, post_id, body):
        raise ForbiddenError("comments_disabled")

    monkeypatch.setattr(posts_api.interaction_service, "add_comment", fake_add)

    response = await api_client.post(f"/v1/posts/{uuid4()}/comments", json={"body": "hi"}, headers=FRIEND)
    assert response.status_code == 403
    assert response.json()["detail"] == "comments_disabled"


@pytest.mark.asyncio
async def test_list_comments(monkeypatch, api_client):
    post_id = uuid4()
    comment = Comment(
        id=uuid4(),
        post_id=post_id,
        commenter_user_id=3,
        body="nice",
        visibility_scope=VisibilityScope.CIRCLE,
        created_at=datetime.now(timezone.utc),
        commenter_name="bob",
    )

    async def fake_list(viewer_id, pid):
        return [comment]

    monkeypatch.setattr(posts_api.interaction_service, "list_comments", fake_list)

    response = await api_client.get(f"/v1/posts/{post_id}/comments", headers=OWNER)
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["comments"][0]["commenter_name"] == "bob"
    assert body["comments"][0]["visibility_scope"] == "circle"


@pytest.mark.asyncio
async def test_edit_comment(monkeypatch, api_client):
    comment_id = uuid4()
    edited_at = datetime.now(timezone.utc)
    calls = []

    async def fake_edit(viewer_id, cid, body):
        calls.append((viewer_id, cid, body))
        if viewer_id != 3:
            raise NotFoundError("comment_not_found")
        return Comment(
            id=cid,
            post_id=uuid4(),
            commenter_user_id=3,
            body=body,
            visibility_scope=VisibilityScope.CIRCLE,
            created_at=edited_at,
            updated_at=edited_at,
        )

    monkeypatch.setattr(posts_api.interaction_service, "edit_comment", fake_edit)

    response = await api_client.patch(f"/v1/comments/{comment_id}", json={"body": "fixed typo"}, headers=FRIEND)
    assert response.status_code == 200
    assert response.json()["body"] == "fixed typo"
    assert response.json()["updated_at"] is not None
    assert calls == [(3, comment_id, "fixed typo")]

    response = await api_client.patch(f"/v1/comments/{comment_id}", json={"body": "mine now"}, headers=OWNER)
    assert response.status_code == 404
    assert response.json()["detail"] == "comment_not_found"

    response = await api_client.patch(f"/v1/comments/{comment_id}", json={}, headers=FRIEND)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reaction_counts_only_for_owner(monkeypatch, api_client):
    post = _sample_post()
    reactions = [_reaction(post.id, 3, "like"), _reaction(post.id, 7, "like"), _reaction(post.id, 3, "wow")]

    async def fake_list(viewer_id, post_id):
        return post, reactions

    monkeypatch.setattr(posts_api.interaction_service, "list_reactions", fake_list)

    owner_view = (await api_client.get(f"/v1/posts/{post.id}/reactions", headers=OWNER)).json()
    assert owner_view["counts"] == {"like": 2, "wow": 1}
    assert owner_view["user_reactions"] == ["like"]

    friend_view = (await api_client.get(f"/v1/posts/{post.id}/reactions", headers=FRIEND)).json()
    assert friend_view["counts"] == {}
    assert friend_view["user_reactions"] == ["like", "wow"]


@pytest.mark.asyncio
async def test_unreact_requires_reaction_type(api_client):
    response = await api_client.delete(f"/v1/posts/{uuid4()}/reactions", headers=FRIEND)
    assert response.status_code == 422
