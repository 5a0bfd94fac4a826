import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from support_chat.errors import ChatError
from support_chat.service.auth.token import bearer_token

logger = logging.getLogger(__name__)

ws_router = APIRouter()


@ws_router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, token: str = Query(default="")):
    hub = websocket.app.state.chat_hub

    # Handshake: nothing is accepted from an unauthenticated socket
    try:
        principal = hub.authenticate(token or bearer_token(websocket.headers.get("authorization", "")))
    except ChatError as exc:
        logger.info("chat handshake rejected: %s", exc.code)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return

    await websocket.accept()
    connection = await hub.connect(websocket, principal)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            # Text and binary frames both carry a JSON event
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes") or b""
            await hub.handle(connection, frame)
    except WebSocketDisconnect:
        logger.debug("socket closed for %r", connection)
    except Exception:
        logger.exception("chat socket failed for %r", connection)
        if websocket.application_state is WebSocketState.CONNECTED:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        await hub.disconnect(connection)
