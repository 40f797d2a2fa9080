"""API tests over the in-memory backend. /health and friends do not require Neo4j."""

import pytest
from fastapi.testclient import TestClient

from api import main as api_main
from api.main import app
from rapport.domain import Profile
from rapport.infrastructure import InMemoryDirectory


@pytest.fixture
def directory(monkeypatch):
    monkeypatch.setenv("RAPPORT_CACHE", "memory")
    directory = InMemoryDirectory()
    for user_id, name in (("me", "Me"), ("u1", "Alice"), ("u2", "Bob")):
        directory.add_user(Profile(id=user_id, user_name=name))
    monkeypatch.setattr(app.state, "directory", directory, raising=False)
    api_main._session_cache.clear()
    yield directory
    api_main._session_cache.clear()


@pytest.fixture
def client(directory):
    return TestClient(app)


def _as(account_id: str) -> dict:
    return {api_main.ACCOUNT_ID_HEADER: account_id}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_account_requires_header(client):
    r = client.get("/account")
    assert r.status_code == 401


def test_unknown_account_is_404(client):
    r = client.get("/account", headers=_as("nobody"))
    assert r.status_code == 404
    assert r.json()["detail"] == "Can't get profile"


def test_get_account_snapshot(client, directory):
    directory.make_friends("me", "u1")
    directory.put_request("u2", "me")

    r = client.get("/account", headers=_as("me"))

    assert r.status_code == 200
    body = r.json()
    assert body["profile"]["user_name"] == "Me"
    assert body["friend_ids"] == ["u1"]
    assert body["waiting_ids"] == ["u2"]
    assert body["blocked_ids"] == []


def test_request_then_accept_between_two_accounts(client):
    r = client.post("/users/u1/request", headers=_as("me"))
    assert r.status_code == 200
    assert r.json()["request_ids"] == ["u1"]

    r = client.post("/users/me/accept", headers=_as("u1"))
    assert r.status_code == 200
    assert r.json()["friend_ids"] == ["me"]

    r = client.post("/account/refresh", headers=_as("me"))
    assert r.json()["friend_ids"] == ["u1"]
    assert r.json()["request_ids"] == []


def test_rejected_action_is_409(client):
    r = client.post("/users/u1/accept", headers=_as("me"))
    assert r.status_code == 409
    assert r.json()["detail"] == "Can't accept request"


def test_unknown_action_is_404(client):
    r = client.post("/users/u1/poke", headers=_as("me"))
    assert r.status_code == 404


def test_transport_failure_is_502(client, directory):
    client.get("/account", headers=_as("me"))
    directory.fail("send_request", ConnectionError("backend down"))

    r = client.post("/users/u1/request", headers=_as("me"))

    assert r.status_code == 502
    assert r.json()["detail"] == "backend down"


def test_block_and_list_blocked(client, directory):
    directory.make_friends("me", "u1")

    r = client.post("/users/u1/block", headers=_as("me"))
    assert r.status_code == 200
    assert r.json()["blocked_ids"] == ["u1"]
    assert r.json()["friend_ids"] == []

    r = client.get("/blocked", headers=_as("me"))
    assert [p["id"] for p in r.json()] == ["u1"]

    r = client.post("/users/u1/unblock", headers=_as("me"))
    assert r.json()["blocked_ids"] == []
    assert r.json()["friend_ids"] == []


def test_remove_friend(client, directory):
    directory.make_friends("me", "u2")
    r = client.delete("/friends/u2", headers=_as("me"))
    assert r.status_code == 200
    assert r.json()["friend_ids"] == []


def test_edit_profile(client):
    r = client.patch("/account/profile", json={"city": "Lisbon"}, headers=_as("me"))
    assert r.status_code == 200
    assert r.json()["city"] == "Lisbon"
    assert r.json()["user_name"] == "Me"


def test_chats_refresh_then_read_from_cache(client, directory):
    directory.make_friends("me", "u1")
    directory.put_request("u2", "me")

    r = client.get("/chats", headers=_as("me"))
    assert r.json() == {"chats": [], "requests": []}

    r = client.post("/chats/refresh", headers=_as("me"))
    body = r.json()
    assert [c["friend"]["user_name"] for c in body["chats"]] == ["Alice"]
    assert [q["sender_id"] for q in body["requests"]] == ["u2"]

    r = client.get("/chats", headers=_as("me"))
    assert [c["friend_id"] for c in r.json()["chats"]] == ["u1"]


def test_deny_drops_cached_request(client, directory):
    directory.put_request("u2", "me")
    client.post("/chats/refresh", headers=_as("me"))

    r = client.post("/users/u2/deny", headers=_as("me"))
    assert r.status_code == 200

    r = client.get("/chats", headers=_as("me"))
    assert r.json() == {"chats": [], "requests": []}


def test_accept_moves_cached_request_to_chats(client, directory):
    directory.put_request("u2", "me")
    client.post("/chats/refresh", headers=_as("me"))

    r = client.post("/users/u2/accept", headers=_as("me"))
    assert r.status_code == 200

    body = client.get("/chats", headers=_as("me")).json()
    assert [c["friend_id"] for c in body["chats"]] == ["u2"]
    assert body["requests"] == []


def test_removed_account_is_404_until_recovered(client, directory):
    directory.add_user(Profile(id="gone", user_name="Gone", removed=True))

    for _ in range(2):
        r = client.get("/account", headers=_as("gone"))
        assert r.status_code == 404
        assert r.json()["detail"] == "You removed your profile"
    r = client.post("/users/u1/request", headers=_as("gone"))
    assert r.status_code == 404
    assert "send_request" not in [name for name, _ in directory.calls]

    r = client.post("/account/recover", headers=_as("gone"))
    assert r.status_code == 200
    assert r.json()["profile"]["removed"] is False

    r = client.get("/account", headers=_as("gone"))
    assert r.status_code == 200


def test_register_create_and_login(client):
    r = client.post("/auth/register", json={"email": "Ann@Example.com", "password": "pw"})
    assert r.status_code == 201
    account_id = r.json()["account_id"]

    # Credentials without a profile yet.
    r = client.post("/auth/login", json={"email": "ann@example.com", "password": "pw"})
    assert r.status_code == 404

    r = client.post(
        "/account", json={"user_name": "Ann", "city": "Porto"}, headers=_as(account_id)
    )
    assert r.status_code == 201
    assert r.json()["profile"]["id"] == account_id
    assert r.json()["profile"]["city"] == "Porto"

    r = client.post("/auth/login", json={"email": "ann@example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json()["account_id"] == account_id
    assert r.json()["account"]["profile"]["user_name"] == "Ann"


def test_login_with_wrong_password_is_401(client):
    client.post("/auth/register", json={"email": "ann@example.com", "password": "pw"})

    r = client.post("/auth/login", json={"email": "ann@example.com", "password": "nope"})

    assert r.status_code == 401
    assert r.json()["detail"] == "Wrong email or password"


def test_create_account_twice_is_409(client):
    r = client.post("/account", json={"user_name": "Again"}, headers=_as("me"))
    assert r.status_code == 409
    assert r.json()["detail"] == "Can't edit profile"


def test_delete_account_then_recover(client, directory):
    client.get("/account", headers=_as("me"))

    r = client.delete("/account", headers=_as("me"))
    assert r.status_code == 200
    assert "me" not in api_main._session_cache

    r = client.get("/account", headers=_as("me"))
    assert r.status_code == 404

    r = client.post("/account/recover", headers=_as("me"))
    assert r.status_code == 200
    assert r.json()["profile"]["removed"] is False
    assert directory.calls[-1] == ("set_online", ("me",))


def test_sign_out_forgets_session(client, directory):
    client.get("/account", headers=_as("me"))

    r = client.post("/auth/sign-out", headers=_as("me"))

    assert r.status_code == 200
    assert "me" not in api_main._session_cache
    assert ("sign_out", ("me",)) in directory.calls
    assert ("set_offline", ("me",)) in directory.calls


def test_sign_out_failure_still_forgets_session(client, directory):
    client.get("/account", headers=_as("me"))
    directory.fail("sign_out", ConnectionError("backend down"))

    r = client.post("/auth/sign-out", headers=_as("me"))

    assert r.status_code == 502
    assert "me" not in api_main._session_cache
    assert ("set_offline", ("me",)) in directory.calls


def test_browse_users(client):
    r = client.get("/users", headers=_as("me"))
    assert r.status_code == 200
    assert [p["id"] for p in r.json()] == ["u1", "u2"]

    r = client.get("/users", params={"page": "next"}, headers=_as("me"))
    assert r.json() == []

    r = client.get("/users", params={"page": "last"}, headers=_as("me"))
    assert r.status_code == 422


def test_get_user_profile(client):
    r = client.get("/users/u1", headers=_as("me"))
    assert r.status_code == 200
    assert r.json()["user_name"] == "Alice"

    r = client.get("/users/nobody", headers=_as("me"))
    assert r.status_code == 404
