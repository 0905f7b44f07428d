"""End-to-end WebSocket tests through the FastAPI app."""

import time

import pytest
from fastapi import WebSocketDisconnect

from chirp.core.security import create_access_token

WS_PATH = "/api/v1/ws/notifications"


def _wait_for_no_sessions(client, user_id):
    registry = client.app.state.registry
    for _ in range(50):
        if client.portal.call(registry.connection_count, user_id) == 0:
            return True
        time.sleep(0.01)
    return False


def test_connect_with_query_token(client):
    token = create_access_token("u1")

    with client.websocket_connect(f"{WS_PATH}?token={token}") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connected"
        assert hello["user_id"] == "u1"

        ws.send_text("ping")
        assert ws.receive_json() == {"type": "pong"}


def test_connect_with_bearer_header(client, auth_headers):
    with client.websocket_connect(WS_PATH, headers=auth_headers("u1")) as ws:
        assert ws.receive_json()["user_id"] == "u1"


@pytest.mark.parametrize("query", ["", "?token=garbage"])
def test_unauthenticated_socket_is_closed_with_policy_violation(client, query):
    with client.websocket_connect(f"{WS_PATH}{query}") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008
    assert client.portal.call(client.app.state.registry.active_users) == set()


def test_notification_fans_out_to_every_tab_of_the_user_only(client, auth_headers):
    with client.websocket_connect(WS_PATH, headers=auth_headers("u1")) as tab1, \
            client.websocket_connect(WS_PATH, headers=auth_headers("u1")) as tab2, \
            client.websocket_connect(WS_PATH, headers=auth_headers("u2")) as other:
        for ws in (tab1, tab2, other):
            assert ws.receive_json()["type"] == "connected"

        response = client.post(
            "/api/v1/notifications/test",
            json={"message": "hello tabs"},
            headers=auth_headers("u1"),
        )
        assert response.status_code == 201
        notification_id = response.json()["id"]

        for ws in (tab1, tab2):
            frame = ws.receive_json()
            assert frame["type"] == "notification"
            assert frame["data"]["id"] == notification_id
            assert frame["data"]["message"] == "hello tabs"
            assert frame["data"]["isRead"] is False

        # u2 only ever sees its own pong.
        other.send_text("ping")
        assert other.receive_json() == {"type": "pong"}

    assert _wait_for_no_sessions(client, "u1")
    assert _wait_for_no_sessions(client, "u2")


def test_disconnect_removes_session(client, auth_headers):
    with client.websocket_connect(WS_PATH, headers=auth_headers("u1")) as ws:
        ws.receive_json()
        assert client.portal.call(client.app.state.registry.connection_count, "u1") == 1

    assert _wait_for_no_sessions(client, "u1")
