"""
HTTP JSON endpoints: session handling, status mapping and error envelopes.
"""
import logging
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

import posts

MISSING_ID = "00000000-0000-0000-0000-000000000000"


def test_root(client):
    assert client.get("/").json() == {"message": "Blog API running"}


class TestRegisterAndLogin:

    def test_register_then_sign_in(self, client):
        res = client.post("/api/auth/register", json={"email": "new@example.com", "password": "secret123", "name": "New"})
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["email"] == "new@example.com"
        assert data["name"] == "New"
        assert "passwordHash" not in data

        res = client.post("/api/auth/token", json={"email": "new@example.com", "password": "secret123"})
        assert res.status_code == 200
        assert res.json()["token_type"] == "bearer"
        assert res.json()["access_token"]

    def test_duplicate_email(self, client, alice):
        res = client.post("/api/auth/register", json={"email": "alice@example.com", "password": "secret123"})
        assert res.status_code == 400
        assert res.json() == {"error": {"message": "Email already registered"}}

    @pytest.mark.parametrize("body", [
        {"email": "not-an-email", "password": "secret123"},
        {"email": "x@example.com", "password": "short"},
        {"email": "x@example.com", "password": "secret123", "name": ""},
    ])
    def test_register_body_is_validated(self, client, body):
        res = client.post("/api/auth/register", json=body)
        assert res.status_code == 400
        assert res.json() == {"error": {"message": "Invalid request body"}}

    def test_bad_password(self, client, alice):
        res = client.post("/api/auth/token", json={"email": "alice@example.com", "password": "wrong"})
        assert res.status_code == 401
        assert res.json() == {"error": {"message": "Invalid credentials"}}


class TestList:

    @pytest.fixture
    def feed(self, alice, make_post):
        make_post(alice, title="draft", published=False, minutes=1)
        make_post(alice, title="live", published=True, minutes=2)

    def test_anonymous_sees_only_published(self, client, feed):
        res = client.get("/api/posts", params={"publishedOnly": "false"})
        data = res.json()["data"]
        assert res.status_code == 200
        assert data["total"] == 1
        assert [p["title"] for p in data["items"]] == ["live"]

    def test_signed_in_defaults_to_everything(self, client, feed, alice_headers):
        data = client.get("/api/posts", headers=alice_headers).json()["data"]
        assert data["total"] == 2

    def test_signed_in_can_ask_for_published_only(self, client, feed, alice_headers):
        data = client.get("/api/posts", params={"publishedOnly": "true"}, headers=alice_headers).json()["data"]
        assert data["total"] == 1

    def test_bad_token_counts_as_anonymous(self, client, feed):
        data = client.get("/api/posts", headers={"Authorization": "Bearer nope"}).json()["data"]
        assert data["total"] == 1

    def test_window_shape(self, client, alice, make_post):
        for i in range(12):
            make_post(alice, title=f"p{i}", published=True, minutes=i)

        data = client.get("/api/posts", params={"limit": "5", "page": "2"}).json()["data"]
        assert data["page"] == 2
        assert data["limit"] == 5
        assert data["total"] == 12
        assert data["totalPages"] == 3
        assert data["hasNextPage"] is True
        assert len(data["items"]) == 5
        assert set(data["items"][0]) == {"id", "title", "content", "authorId", "published", "createdAt", "updatedAt"}

    def test_author_filter(self, client, alice, bob, make_post):
        make_post(alice, published=True)
        make_post(bob, published=True)

        data = client.get("/api/posts", params={"authorId": f" {bob.id} "}).json()["data"]
        assert data["total"] == 1
        assert data["items"][0]["authorId"] == bob.id

    def test_blank_author_filter_is_ignored(self, client, feed):
        data = client.get("/api/posts", params={"authorId": "  "}).json()["data"]
        assert data["total"] == 1

    def test_oversized_limit_is_clamped(self, client):
        data = client.get("/api/posts", params={"limit": "1000"}).json()["data"]
        assert data["limit"] == 100

    def test_enormous_page_is_empty(self, client, feed):
        res = client.get("/api/posts", params={"page": "1e20"})
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["items"] == []
        assert data["total"] == 1
        assert data["hasNextPage"] is False

    def test_timestamps_carry_utc_offset(self, client, feed):
        item = client.get("/api/posts").json()["data"]["items"][0]
        for key in ("createdAt", "updatedAt"):
            parsed = datetime.fromisoformat(item[key].replace("Z", "+00:00"))
            assert parsed.utcoffset() == timedelta(0)

    @pytest.mark.parametrize("param,message", [("limit", "Invalid limit"), ("page", "Invalid page")])
    def test_non_numeric_paging(self, client, param, message):
        res = client.get("/api/posts", params={param: "abc"})
        assert res.status_code == 400
        assert res.json() == {"error": {"message": message}}


class TestGet:

    def test_found(self, client, alice, make_post):
        post = make_post(alice, title="hello")
        res = client.get(f"/api/posts/{post.id}")
        assert res.status_code == 200
        assert res.json()["data"]["title"] == "hello"

    def test_missing(self, client):
        res = client.get(f"/api/posts/{MISSING_ID}")
        assert res.status_code == 404
        assert res.json() == {"error": {"message": "Not found"}}


class TestCreate:

    def test_author_comes_from_session(self, client, alice, alice_headers):
        res = client.post("/api/posts", json={"title": "Hi", "content": "There"}, headers=alice_headers)
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["authorId"] == alice.id
        assert data["published"] is False
        assert data["createdAt"] == data["updatedAt"]

    def test_requires_session(self, client):
        res = client.post("/api/posts", json={"title": "Hi", "content": "There"})
        assert res.status_code == 401
        assert res.json() == {"error": {"message": "Authentication required"}}

    def test_body_is_checked_before_session(self, client):
        res = client.post("/api/posts", json={"title": "", "content": "There"})
        assert res.status_code == 400
        assert res.json() == {"error": {"message": "Invalid request body"}}

    def test_published_must_be_boolean(self, client, alice_headers):
        res = client.post("/api/posts", json={"title": "t", "content": "c", "published": "yes"}, headers=alice_headers)
        assert res.status_code == 400

    def test_whitespace_title_reaches_the_guard(self, client, alice_headers):
        res = client.post("/api/posts", json={"title": "  ", "content": "c"}, headers=alice_headers)
        assert res.status_code == 400
        assert res.json() == {"error": {"message": "Title is required"}}


class TestUpdate:

    @pytest.fixture
    def post(self, alice, make_post):
        return make_post(alice, title="Before", content="Body")

    def test_owner_updates(self, client, post, alice_headers):
        res = client.patch(f"/api/posts/{post.id}", json={"title": "After", "published": True}, headers=alice_headers)
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["title"] == "After"
        assert data["content"] == "Body"
        assert data["published"] is True
        assert data["updatedAt"] > data["createdAt"]

    def test_non_owner_forbidden(self, client, post, bob_headers):
        res = client.patch(f"/api/posts/{post.id}", json={"title": "Mine now"}, headers=bob_headers)
        assert res.status_code == 403
        assert res.json() == {"error": {"message": "Not authorized to modify this post"}}

    def test_missing_post(self, client, bob_headers):
        res = client.patch(f"/api/posts/{MISSING_ID}", json={"title": "x"}, headers=bob_headers)
        assert res.status_code == 404
        assert res.json() == {"error": {"message": "Post not found"}}

    def test_empty_patch(self, client, post, alice_headers):
        res = client.patch(f"/api/posts/{post.id}", json={}, headers=alice_headers)
        assert res.status_code == 400
        assert res.json() == {"error": {"message": "No fields to update"}}

    def test_requires_session(self, client, post):
        res = client.patch(f"/api/posts/{post.id}", json={"title": "x"})
        assert res.status_code == 401


class TestDelete:

    def test_delete_twice(self, client, alice, alice_headers, make_post):
        post = make_post(alice)

        res = client.delete(f"/api/posts/{post.id}", headers=alice_headers)
        assert res.status_code == 200
        assert res.json() == {"data": {"success": True}}

        res = client.delete(f"/api/posts/{post.id}", headers=alice_headers)
        assert res.status_code == 404

    def test_non_owner_forbidden(self, client, alice, bob_headers, make_post):
        post = make_post(alice)
        res = client.delete(f"/api/posts/{post.id}", headers=bob_headers)
        assert res.status_code == 403

    def test_requires_session(self, client, alice, make_post):
        post = make_post(alice)
        assert client.delete(f"/api/posts/{post.id}").status_code == 401


def test_unexpected_errors_are_masked(monkeypatch, caplog):
    from main import app

    def explode(*args, **kwargs):
        raise RuntimeError("connection string leaked")

    monkeypatch.setattr(posts, "list_posts", explode)
    client = TestClient(app, raise_server_exceptions=False)

    res = client.get("/api/posts")
    assert res.status_code == 500
    assert res.json() == {"error": {"message": "Internal server error"}}
    # the traceback stays in the server log
    error_records = [r for r in caplog.records if r.levelno >= logging.ERROR and r.name == "main"]
    assert error_records
    assert error_records[-1].exc_info[0] is RuntimeError
    assert "RuntimeError: connection string leaked" in caplog.text


def test_openapi_marks_mutating_routes(client):
    schema = client.get("/openapi.json").json()
    assert "TokenAuth" in schema["components"]["securitySchemes"]
    assert schema["paths"]["/api/posts"]["post"]["security"] == [{"TokenAuth": []}]
