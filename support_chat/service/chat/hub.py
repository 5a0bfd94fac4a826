import asyncio
import logging
from typing import Any

from support_chat.client.db.message_store import MessageStore
from support_chat.errors import AccessDenied, ChatError
from support_chat.model.chat.chat_event import (
    GetActiveRoomsEvent,
    JoinRoomEvent,
    MarkReadEvent,
    SendMessageEvent,
    TypingEvent,
    parse_event,
)
from support_chat.model.chat.chat_push import ActiveRoomsPush
from support_chat.model.chat.principal import Principal
from support_chat.model.room.room_response import RoomSummaryItem
from support_chat.service.auth.token import verify_token
from support_chat.service.chat.broadcast import AdminBroadcast
from support_chat.service.chat.connection import Connection, Socket
from support_chat.service.chat.dispatcher import MessageDispatcher
from support_chat.service.chat.registry import PresenceRegistry
from support_chat.service.chat.rooms import RoomCoordinator

logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"code": "INTERNAL_ERROR", "message": "Failed to process event"}


class ChatHub:
    """Owns the chat components for one process and routes socket events to them."""

    def __init__(
        self,
        store: MessageStore,
        registry: PresenceRegistry | None = None,
        history_limit: int | None = None,
    ):
        self.store = store
        self.registry = registry if registry is not None else PresenceRegistry()
        self.broadcast = AdminBroadcast(self.registry)
        self.rooms = RoomCoordinator(store, self.broadcast, history_limit=history_limit)
        self.dispatcher = MessageDispatcher(store, self.rooms, self.broadcast)

    def authenticate(self, token: str | None) -> Principal:
        return verify_token(token)

    async def connect(self, socket: Socket, principal: Principal) -> Connection:
        connection = Connection(socket, principal)
        self.registry.register(connection)
        logger.info("%s connected: %s", principal.kind.value, principal.email or principal.id)
        return connection

    async def disconnect(self, connection: Connection) -> None:
        self.registry.unregister(connection)
        await self.rooms.leave(connection)
        principal = connection.principal
        logger.info("%s disconnected: %s", principal.kind.value, principal.email or principal.id)

    async def handle(self, connection: Connection, payload: Any) -> None:
        """Process one inbound frame; failures go back to this connection only."""
        try:
            event = parse_event(payload)
            await self._dispatch(connection, event)
        except ChatError as exc:
            logger.debug("event from %r rejected: %s", connection, exc.code)
            await connection.push("error", exc.to_payload())
        except Exception:
            logger.exception("failed to handle event from %r", connection)
            await connection.push("error", INTERNAL_ERROR)

    async def _dispatch(self, connection: Connection, event) -> None:
        if isinstance(event, JoinRoomEvent):
            await self.rooms.join_room(connection, event.room_id)
        elif isinstance(event, SendMessageEvent):
            await self.dispatcher.send_message(connection, event.message, event.message_type)
        elif isinstance(event, TypingEvent):
            await self.dispatcher.typing(connection, event.is_typing)
        elif isinstance(event, MarkReadEvent):
            await self.dispatcher.mark_read(connection, event.room_id)
        elif isinstance(event, GetActiveRoomsEvent):
            await self._send_active_rooms(connection)

    async def _send_active_rooms(self, connection: Connection) -> None:
        if not connection.principal.is_staff:
            raise AccessDenied("Staff access required")
        rooms = await asyncio.to_thread(self.store.list_active_rooms)
        await connection.push(
            "active_rooms",
            ActiveRoomsPush(rooms=[RoomSummaryItem.model_validate(r) for r in rooms]),
        )

    def shutdown(self) -> None:
        self.rooms.reset()
        self.registry.clear()
