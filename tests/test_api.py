"""End-to-end tests through the HTTP surface."""

import pytest
from starlette.websockets import WebSocketDisconnect

from constants import AUTH_COOKIE_NAME
from events import CONNECTED_EVENT, DESTROY_EVENT, MESSAGE_EVENT


def create_room(make_client):
    response = make_client().post("/rooms")
    assert response.status_code == 201
    return response.json()["room_id"]


def enter(make_client, room_id, token=None):
    return make_client(token).get(f"/room/{room_id}", follow_redirects=False)


def admit(make_client, room_id):
    response = enter(make_client, room_id)
    assert response.status_code == 200
    assert response.json() == {"room_id": room_id, "outcome": "admitted"}
    return response.cookies[AUTH_COOKIE_NAME]


class TestAdmissionRoutes:
    def test_cookie_attributes(self, make_client):
        room_id = create_room(make_client)

        response = enter(make_client, room_id)

        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie
        assert "path=/" in set_cookie

    def test_reentry_keeps_token(self, make_client):
        room_id = create_room(make_client)
        token = admit(make_client, room_id)

        response = enter(make_client, room_id, token)

        assert response.status_code == 200
        assert response.json()["outcome"] == "reuse"
        assert "set-cookie" not in response.headers

    def test_full_room_redirects(self, make_client):
        room_id = create_room(make_client)
        admit(make_client, room_id)
        admit(make_client, room_id)

        response = enter(make_client, room_id)

        assert response.status_code == 307
        assert response.headers["location"] == "/?error=room-full"

    def test_missing_room_redirects(self, make_client):
        response = enter(make_client, "nope")

        assert response.status_code == 307
        assert response.headers["location"] == "/?error=room-not-found"


class TestRoomRoutes:
    def test_ttl(self, make_client):
        room_id = create_room(make_client)
        token = admit(make_client, room_id)

        response = make_client(token).get(f"/rooms/{room_id}/ttl")

        assert response.status_code == 200
        assert 0 < response.json()["ttl"] <= 600

    @pytest.mark.parametrize("token", [None, "bogus"])
    def test_denied_access_is_uniform(self, make_client, token):
        room_id = create_room(make_client)
        admit(make_client, room_id)

        for method, path in [
            ("get", f"/rooms/{room_id}/ttl"),
            ("delete", f"/rooms/{room_id}"),
            ("get", f"/rooms/{room_id}/messages"),
        ]:
            response = getattr(make_client(token), method)(path)
            assert response.status_code == 401
            assert response.json() == {"error": "Unauthorized"}

    def test_token_is_scoped_to_its_room(self, make_client):
        room_a = create_room(make_client)
        room_b = create_room(make_client)
        token = admit(make_client, room_a)

        assert make_client(token).get(f"/rooms/{room_b}/ttl").status_code == 401

    def test_destroy(self, make_client, publisher):
        room_id = create_room(make_client)
        token = admit(make_client, room_id)

        response = make_client(token).delete(f"/rooms/{room_id}")

        assert response.status_code == 204
        assert [event["event"] for event in publisher.events] == [DESTROY_EVENT]
        assert make_client(token).get(f"/rooms/{room_id}/messages").status_code == 401
        assert enter(make_client, room_id, token).headers["location"] == "/?error=room-not-found"


class TestMessageRoutes:
    def test_two_party_conversation(self, make_client, publisher):
        room_id = create_room(make_client)
        token_a = admit(make_client, room_id)
        token_b = admit(make_client, room_id)
        assert enter(make_client, room_id).headers["location"] == "/?error=room-full"

        response = make_client(token_a).post(f"/rooms/{room_id}/messages", json={"sender": "alice", "text": "hi"})
        assert response.status_code == 200
        posted = response.json()["message"]
        assert posted["token"] == token_a

        seen_by_b = make_client(token_b).get(f"/rooms/{room_id}/messages").json()["messages"]
        seen_by_a = make_client(token_a).get(f"/rooms/{room_id}/messages").json()["messages"]

        assert len(seen_by_b) == 1
        assert "token" not in seen_by_b[0]
        assert seen_by_b[0]["text"] == "hi"
        assert seen_by_a[0]["token"] == token_a
        assert publisher.events[0]["event"] == MESSAGE_EVENT

    @pytest.mark.parametrize(
        "body",
        [{"sender": "alice"}, {"text": "hi"}, {"sender": "a" * 101, "text": "hi"}, {"sender": "alice", "text": "x" * 1001}],
    )
    def test_validation(self, make_client, body):
        room_id = create_room(make_client)
        token = admit(make_client, room_id)

        response = make_client(token).post(f"/rooms/{room_id}/messages", json=body)

        assert response.status_code == 422

    def test_post_after_room_vanished(self, make_client, backend, redis_client):
        """Authenticated, but the metadata key is gone by the time we post."""
        room_id = create_room(make_client)
        token = admit(make_client, room_id)
        original = backend.get_connected

        # membership still resolves, the room key does not
        backend.get_connected = lambda rid: original(rid) or [token]
        redis_client.delete(backend.meta_key(room_id))

        response = make_client(token).post(f"/rooms/{room_id}/messages", json={"sender": "alice", "text": "hi"})

        assert response.status_code == 404
        assert response.json() == {"error": "room-not-found"}

    def test_list_survives_undecodable_entry(self, make_client, backend, redis_client):
        room_id = create_room(make_client)
        token = admit(make_client, room_id)
        make_client(token).post(f"/rooms/{room_id}/messages", json={"sender": "alice", "text": "hi"})
        redis_client.rpush(backend.messages_key(room_id), b"\xff\xfe{bad")

        response = make_client(token).get(f"/rooms/{room_id}/messages")

        assert response.status_code == 200
        assert [message["text"] for message in response.json()["messages"]] == ["hi"]


class TestWebSocket:
    @pytest.fixture
    def redis_events(self, make_client):
        """Route events through Redis pub/sub instead of recording them."""
        from app import app
        from dependencies import get_publisher

        app.dependency_overrides.pop(get_publisher, None)

    def test_member_receives_events_until_destroy(self, make_client, redis_events):
        room_id = create_room(make_client)
        token_a = admit(make_client, room_id)
        token_b = admit(make_client, room_id)

        with make_client(token_b).websocket_connect(f"/rooms/{room_id}/ws") as websocket:
            assert websocket.receive_json() == {"event": CONNECTED_EVENT, "room_id": room_id, "seq": 0, "data": {}}

            response = make_client(token_a).post(f"/rooms/{room_id}/messages", json={"sender": "alice", "text": "hi"})
            posted = response.json()["message"]
            assert websocket.receive_json() == {"event": MESSAGE_EVENT, "room_id": room_id, "seq": 1, "data": posted}

            assert make_client(token_a).delete(f"/rooms/{room_id}").status_code == 204
            assert websocket.receive_json() == {
                "event": DESTROY_EVENT,
                "room_id": room_id,
                "seq": 2,
                "data": {"is_destroyed": True},
            }

            with pytest.raises(WebSocketDisconnect):
                websocket.receive_json()

    def test_rejects_non_member(self, make_client):
        room_id = create_room(make_client)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with make_client("bogus").websocket_connect(f"/rooms/{room_id}/ws"):
                pass

        assert exc_info.value.code == 1008


class TestHealth:
    def test_health(self, make_client):
        assert make_client().get("/health").json() == {"status": "ok"}
