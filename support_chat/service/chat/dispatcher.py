import asyncio
import logging

from support_chat.client.db.message_store import MessageRecord, MessageStore
from support_chat.errors import AccessDenied, AlreadyClosed, EmptyMessage, NotJoined
from support_chat.model.chat.chat_push import AdminAlertPush, ReadReceiptPush, RoomEventPush, TypingPush
from support_chat.model.chat.kinds import MessageKind, PrincipalKind
from support_chat.model.chat.principal import Principal
from support_chat.model.room.room_response import MessageItem, RoomItem
from support_chat.service.chat.broadcast import AdminBroadcast
from support_chat.service.chat.connection import Connection, deliver
from support_chat.service.chat.rooms import RoomCoordinator

logger = logging.getLogger(__name__)


class MessageDispatcher:
    def __init__(self, store: MessageStore, rooms: RoomCoordinator, broadcast: AdminBroadcast):
        self._store = store
        self._rooms = rooms
        self._broadcast = broadcast

    async def send_message(
        self,
        connection: Connection,
        body: str,
        kind: MessageKind | str = MessageKind.TEXT,
    ) -> MessageRecord:
        """
        Persist a message in the connection's current room, then push it to every
        connection joined to that room, the sender included.

        Nothing is pushed unless the insert succeeded. Customer messages also
        raise an ``admin_alert`` for all staff; staff messages only refresh the
        staff dashboards through ``room_updated``.
        """
        room_id = connection.current_room_id
        if room_id is None:
            raise NotJoined()

        text = (body or "").strip()
        if not text:
            raise EmptyMessage()

        kind = MessageKind(kind)
        principal = connection.principal
        if kind is MessageKind.SYSTEM and not principal.is_staff:
            raise AccessDenied("Only staff can post system messages")

        async with self._rooms.room_lock(room_id):
            message = await asyncio.to_thread(
                self._store.insert_message,
                room_id,
                principal.id,
                principal.kind.value,
                text,
                kind.value,
                principal.name,
            )
            item = MessageItem.model_validate(message)
            await deliver(self._rooms.members(room_id), "new_message", item)

        if principal.kind is PrincipalKind.CUSTOMER:
            await self._broadcast.notify_all_staff(
                "admin_alert",
                AdminAlertPush(
                    room_id=room_id,
                    message_id=message.id,
                    customer_id=principal.id,
                    customer_name=principal.name,
                    customer_email=principal.email,
                    message=text,
                ),
            )
        else:
            room = await asyncio.to_thread(self._store.get_room, room_id)
            await self._broadcast.notify_all_staff(
                "room_updated",
                RoomEventPush(room=RoomItem.model_validate(room), last_message=item),
            )
        return message

    async def mark_read(self, connection: Connection, room_id: int | None = None) -> int:
        room_id = room_id if room_id is not None else connection.current_room_id
        if room_id is None:
            raise NotJoined()
        return await self.acknowledge(connection.principal, room_id, origin=connection)

    async def acknowledge(self, principal: Principal, room_id: int, origin: Connection | None = None) -> int:
        """
        Flip the other party's unread messages in room_id to read and send a
        receipt to the room's other connections. Customers may only acknowledge
        their own room; staff may acknowledge any room.
        """
        room = await asyncio.to_thread(self._store.get_room, room_id)
        if not principal.is_staff and room.customer_id != principal.id:
            raise AccessDenied()
        if not room.is_active:
            raise AlreadyClosed()

        count = await asyncio.to_thread(self._store.mark_read, room_id, principal.kind.opposite.value)
        receipt = ReadReceiptPush(
            room_id=room_id,
            reader_id=principal.id,
            reader_kind=principal.kind.value,
            count=count,
        )
        await deliver(self._rooms.members(room_id), "messages_read", receipt, exclude=origin)
        return count

    async def typing(self, connection: Connection, is_typing: bool) -> None:
        room_id = connection.current_room_id
        if room_id is None:
            return
        principal = connection.principal
        signal = TypingPush(
            room_id=room_id,
            user_id=principal.id,
            user_name=principal.name,
            user_kind=principal.kind.value,
            is_typing=is_typing,
        )
        await deliver(self._rooms.members(room_id), "user_typing", signal, exclude=connection)
