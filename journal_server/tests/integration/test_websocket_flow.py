"""
End-to-end WebSocket tests against the full FastAPI application.

Each test drives real sockets through Starlette's TestClient, which runs the
app's lifespan and event loop in a background thread.
"""

# pylint: disable=redefined-outer-name

import random
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from journal_server.app.factory import create_app
from journal_server.config.models import AppConfig, RealtimeConfig, SecurityConfig
from journal_server.container import RealtimeContainer
from journal_server.realtime.exceptions import TokenExpiredError

pytestmark = pytest.mark.integration

INTERNAL_HEADERS = {"X-Internal-Token": "test-internal-token"}


@pytest.fixture
def client(app_config):
    app = create_app(app_config, container=RealtimeContainer(app_config, rng=random.Random(5)))
    with TestClient(app) as test_client:
        yield test_client


def receive_until(ws, event_type: str, limit: int = 10) -> dict:
    """Read frames until one of the given type arrives."""
    for _ in range(limit):
        event = ws.receive_json()
        if event["type"] == event_type:
            return event
    raise AssertionError(f"{event_type} not received within {limit} frames")


class TestHandshake:
    """Test handshake authentication and subprotocol selection."""

    def test_query_token_authenticates(self, client, token_factory):
        with client.websocket_connect(f"/ws?token={token_factory('alice')}") as ws:
            connected = ws.receive_json()

        assert connected["type"] == "connected"
        assert connected["authenticated"] is True
        assert connected["userId"] == "alice"
        assert connected["message"] == "Connected to real-time chat service"
        assert connected["connectionId"]

    def test_bearer_subprotocol_authenticates(self, client, token_factory):
        with client.websocket_connect("/ws", subprotocols=["bearer", token_factory("bob")]) as ws:
            connected = ws.receive_json()
            assert ws.accepted_subprotocol == "bearer"

        assert connected["userId"] == "bob"

    def test_app_subprotocol_selected(self, client):
        with client.websocket_connect("/ws", subprotocols=["journal-chat"]) as ws:
            assert ws.accepted_subprotocol == "journal-chat"
            assert ws.receive_json()["authenticated"] is False

    def test_invalid_token_rejected_with_policy_violation(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws?token=not-a-token") as ws:
                ws.receive_json()

        assert exc_info.value.code == 1008

    def test_expired_token_rejected(self, client, token_factory):
        token = token_factory("alice", expires_in=timedelta(seconds=-60))
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws?token={token}") as ws:
                ws.receive_json()

        assert exc_info.value.code == 1008

    def test_token_verified_once_at_handshake(self, app_config, token_factory):
        container = RealtimeContainer(app_config, rng=random.Random(5))
        verify = container.auth_binder.authenticate
        calls = []

        def authenticate_then_expire(raw_credential):
            calls.append(raw_credential)
            if len(calls) > 1:
                raise TokenExpiredError()
            return verify(raw_credential)

        container.auth_binder.authenticate = authenticate_then_expire
        with TestClient(create_app(app_config, container=container)) as test_client:
            with test_client.websocket_connect(f"/ws?token={token_factory('alice')}") as ws:
                connected = ws.receive_json()
                ws.send_json({"type": "subscribe_journal", "journalId": "42"})
                assert receive_until(ws, "journal_subscribed")["journalId"] == "42"

        assert connected["authenticated"] is True
        assert connected["userId"] == "alice"
        assert len(calls) == 1

    def test_query_token_ignored_when_disabled(self, token_factory):
        config = AppConfig(
            security=SecurityConfig(secret="test-jwt-secret-key-for-testing-only"),
            realtime=RealtimeConfig(allow_query_token=False),
        )
        with TestClient(create_app(config)) as test_client:
            with test_client.websocket_connect(f"/ws?token={token_factory('alice')}") as ws:
                assert ws.receive_json()["authenticated"] is False


class TestDeferredAuth:
    """Test connecting anonymously and authenticating with an auth event."""

    def test_auth_event_unlocks_subscriptions(self, client, token_factory):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["authenticated"] is False

            ws.send_json({"type": "subscribe_journal", "journalId": "42"})
            assert receive_until(ws, "error")["error_type"] == "not_authenticated"

            ws.send_json({"type": "auth", "token": token_factory("alice")})
            assert receive_until(ws, "auth_success")["userId"] == "alice"

            ws.send_json({"type": "subscribe_journal", "journalId": "42"})
            assert receive_until(ws, "journal_subscribed")["journalId"] == "42"

    def test_malformed_frames_keep_socket_open(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text("{broken")
            assert receive_until(ws, "error")["error_type"] == "invalid_format"

            ws.send_json({"type": "warp_drive"})
            assert receive_until(ws, "error")["error_type"] == "unknown_event"

            ws.send_json({"type": "ping"})
            assert receive_until(ws, "pong")["type"] == "pong"

    def test_deeply_nested_frame_keeps_socket_open(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text("[" * 5000 + "]" * 5000)
            assert receive_until(ws, "error")["error_type"] == "invalid_format"

            ws.send_json({"type": "ping"})
            assert receive_until(ws, "pong")["type"] == "pong"


class TestJournalScenario:
    """Two partners share journal 42."""

    def test_typing_and_published_messages(self, client, token_factory):
        with (
            client.websocket_connect(f"/ws?token={token_factory('alice')}") as alice,
            client.websocket_connect(f"/ws?token={token_factory('bob')}") as bob,
        ):
            alice.receive_json()
            bob.receive_json()
            for ws in (alice, bob):
                ws.send_json({"type": "subscribe_journal", "journalId": 42})
                assert receive_until(ws, "journal_subscribed")["journalId"] == "42"

            alice.send_json({"type": "typing_start", "journalId": "42"})
            typing = receive_until(bob, "user_typing")
            assert typing["userId"] == "alice"
            assert typing["isTyping"] is True

            # Alice never hears her own indicator: her next frame is the pong
            alice.send_json({"type": "ping"})
            assert alice.receive_json()["type"] == "pong"

            response = client.post(
                "/internal/journals/42/messages",
                json={"message": {"id": "m1", "content": "hello", "senderId": "alice"}, "recipientUserId": "bob"},
                headers=INTERNAL_HEADERS,
            )
            assert response.status_code == 200
            assert response.json() == {"delivered": 2, "push_queued": False}

            for ws in (alice, bob):
                message = receive_until(ws, "new_message")
                assert message["id"] == "m1"
                assert message["journalId"] == "42"

            presence = client.get("/internal/journals/42/presence", headers=INTERNAL_HEADERS).json()
            assert presence["onlineCount"] == 2
            assert presence["onlineUsers"] == ["alice", "bob"]

    def test_disconnect_cleans_up_presence(self, client, token_factory):
        with client.websocket_connect(f"/ws?token={token_factory('alice')}") as ws:
            ws.receive_json()
            ws.send_json({"type": "subscribe_journal", "journalId": "42"})
            receive_until(ws, "journal_subscribed")
            assert client.get("/internal/users/alice/presence", headers=INTERNAL_HEADERS).json()["online"] is True

        # The server finishes its cleanup after the close frame; poll the stats endpoint briefly
        for _ in range(50):
            if client.get("/realtime/stats").json()["connections"]["total_connections"] == 0:
                break
        stats = client.get("/realtime/stats").json()
        assert stats["connections"]["total_connections"] == 0
        assert stats["subscriptions"]["total_topics"] == 0


class TestGameScenario:
    """A couple plays one round over real sockets."""

    def test_join_spin_and_draw(self, client, token_factory):
        with (
            client.websocket_connect(f"/ws?token={token_factory('alice')}") as alice,
            client.websocket_connect(f"/ws?token={token_factory('bob')}") as bob,
        ):
            alice.receive_json()
            bob.receive_json()

            alice.send_json({"type": "join_game", "coupleId": "c1"})
            alice.send_json({"type": "ping"})
            receive_until(alice, "pong")
            bob.send_json({"type": "join_game", "data": {"coupleId": "c1"}})

            assert receive_until(alice, "partner_joined")["userId"] == "bob"
            assert receive_until(alice, "game_ready")["players"] == 2
            assert receive_until(bob, "game_ready")["players"] == 2

            alice.send_json({"type": "spin_bottle", "coupleId": "c1"})
            for ws in (alice, bob):
                assert receive_until(ws, "spin_started")["selectedBy"] == "alice"
            for ws in (alice, bob):
                assert receive_until(ws, "spin_result")["result"] in ("truth", "dare")

            bob.send_json({"type": "draw_card", "data": {"coupleId": "c1", "type": "truth", "text": "Why me?"}})
            for ws in (alice, bob):
                card = receive_until(ws, "card_drawn")
                assert card["cardType"] == "truth"
                assert card["drawnBy"] == "bob"


class TestRateLimiting:
    def test_excess_frames_get_rate_limit_error(self, token_factory):
        config = AppConfig(
            security=SecurityConfig(secret="test-jwt-secret-key-for-testing-only"),
            realtime=RealtimeConfig(messages_per_minute=2),
        )
        with TestClient(create_app(config)) as test_client:
            with test_client.websocket_connect("/ws") as ws:
                ws.receive_json()
                for _ in range(3):
                    ws.send_json({"type": "ping"})

                assert ws.receive_json()["type"] == "pong"
                assert ws.receive_json()["type"] == "pong"
                error = ws.receive_json()
                assert error["type"] == "error"
                assert error["error_type"] == "rate_limit_exceeded"
