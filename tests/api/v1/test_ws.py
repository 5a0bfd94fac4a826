import jwt
import pytest
from fastapi import WebSocketDisconnect


def test_handshake_without_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/chat"):
            pass

    assert exc.value.code == 1008


def test_handshake_with_bad_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/chat?token=forged.token"):
            pass

    assert exc.value.code == 1008


def test_customer_joins_and_sends(client, make_token, store):
    token = make_token(1, "customer", "kim")

    with client.websocket_connect(f"/ws/chat?token={token}") as ws:
        ws.send_json({"type": "join_room"})
        joined = ws.receive_json()
        assert joined["type"] == "joined_room"
        room_id = joined["data"]["roomId"]

        ws.send_json({"type": "send_message", "message": "Hello"})
        pushed = ws.receive_json()
        assert pushed["type"] == "new_message"
        assert pushed["data"]["body"] == "Hello"
        assert pushed["data"]["senderName"] == "kim"

    assert [m.body for m in store.list_messages(room_id, 1, None)] == ["Hello"]


def test_authorization_header_is_accepted(client, make_token):
    headers = {"Authorization": f"Bearer {make_token(1, 'customer')}"}

    with client.websocket_connect("/ws/chat", headers=headers) as ws:
        ws.send_json({"type": "join_room"})
        assert ws.receive_json()["type"] == "joined_room"


def test_malformed_frame_keeps_socket_open(client, make_token):
    with client.websocket_connect(f"/ws/chat?token={make_token(1, 'customer')}") as ws:
        ws.send_text("{not json")
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["data"]["code"] == "INVALID_EVENT"

        ws.send_json({"type": "join_room"})
        assert ws.receive_json()["type"] == "joined_room"


def test_binary_frames_are_handled(client, make_token):
    with client.websocket_connect(f"/ws/chat?token={make_token(1, 'customer')}") as ws:
        ws.send_bytes(b'{"type": "join_room"}')
        assert ws.receive_json()["type"] == "joined_room"

        ws.send_bytes(b"\xff\xfe")
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["data"]["code"] == "INVALID_EVENT"

        ws.send_bytes('{"type": "send_message", "message": "안녕하세요"}'.encode())
        pushed = ws.receive_json()
        assert pushed["type"] == "new_message"
        assert pushed["data"]["body"] == "안녕하세요"


def test_original_jwt_claims_are_accepted(client):
    token = jwt.encode({"id": 1, "email": "a@b.c", "isAdmin": False}, "test-secret", algorithm="HS256")

    with client.websocket_connect(f"/ws/chat?token={token}") as ws:
        ws.send_json({"type": "join_room"})
        joined = ws.receive_json()
        assert joined["type"] == "joined_room"
        assert joined["data"]["room"]["customerId"] == 1


def test_disconnect_unregisters(client, hub, make_token):
    with client.websocket_connect(f"/ws/chat?token={make_token(1, 'customer')}") as ws:
        ws.send_json({"type": "join_room"})
        ws.receive_json()
        assert len(hub.registry) == 1

    assert len(hub.registry) == 0
