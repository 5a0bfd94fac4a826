"""Room resolution, staff assignment and per-room subscriptions.

Store calls are awaited through ``asyncio.to_thread``; other connections'
events interleave while one is pending. Two guards keep that safe:

- ``resolve_or_create_room`` is serialized per customer, and the store's
  unique index on active rooms backs it up.
- joins, sends and closes for one room run under that room's lock, so a
  joiner's backlog and later ``new_message`` pushes never overlap or reorder.
"""
import asyncio
import logging
from contextlib import AbstractAsyncContextManager

import support_chat.config.config as configs
from support_chat.client.db.message_store import MessageStore, RoomRecord
from support_chat.errors import AccessDenied, AlreadyClosed
from support_chat.model.chat.chat_push import JoinedRoomPush, PresencePush, ReadReceiptPush, RoomEventPush
from support_chat.model.chat.principal import Principal
from support_chat.model.room.room_response import MessageItem, RoomItem
from support_chat.service.chat.broadcast import AdminBroadcast
from support_chat.service.chat.connection import Connection, deliver
from support_chat.service.chat.locks import KeyedLock

logger = logging.getLogger(__name__)


def presence_of(connection: Connection, room_id: int) -> PresencePush:
    principal = connection.principal
    return PresencePush(
        room_id=room_id,
        user_id=principal.id,
        user_name=principal.name,
        user_kind=principal.kind.value,
    )


class RoomCoordinator:
    def __init__(self, store: MessageStore, broadcast: AdminBroadcast, history_limit: int | None = None):
        self._store = store
        self._broadcast = broadcast
        self._history_limit = history_limit if history_limit is not None else configs.HISTORY_LIMIT
        self._members: dict[int, set[Connection]] = {}
        self._customer_locks = KeyedLock()
        self._room_locks = KeyedLock()

    def room_lock(self, room_id: int) -> AbstractAsyncContextManager[None]:
        return self._room_locks.hold(room_id)

    def members(self, room_id: int) -> list[Connection]:
        return list(self._members.get(room_id, ()))

    async def resolve_or_create_room(
        self,
        customer_id: int,
        customer_name: str | None = None,
        customer_email: str | None = None,
    ) -> RoomRecord:
        created = False
        async with self._customer_locks.hold(customer_id):
            room = await asyncio.to_thread(self._store.find_active_room_for_customer, customer_id)
            if room is None:
                room = await asyncio.to_thread(self._store.create_room, customer_id, customer_name, customer_email)
                created = True

        if created:
            logger.info("created room %s for customer %s", room.id, customer_id)
            await self._broadcast.notify_all_staff("room_created", RoomEventPush(room=RoomItem.model_validate(room)))
        return room

    async def assign_staff(self, room_id: int, staff: Principal) -> RoomRecord:
        """First assignment wins; later calls leave the room untouched."""
        before = await asyncio.to_thread(self._store.get_room, room_id)
        room = await asyncio.to_thread(self._store.assign_staff_if_unset, room_id, staff.id, staff.name)
        if before.staff_id is None and room.staff_id == staff.id:
            logger.info("staff %s assigned to room %s", staff.id, room_id)
            await self._broadcast.notify_all_staff("room_assigned", RoomEventPush(room=RoomItem.model_validate(room)))
        return room

    async def close_room(self, room_id: int) -> RoomRecord:
        async with self.room_lock(room_id):
            room = await asyncio.to_thread(self._store.close_room, room_id)
            event = RoomEventPush(room=RoomItem.model_validate(room))
            await deliver(self.members(room_id), "room_closed", event)
        logger.info("closed room %s", room_id)
        await self._broadcast.notify_all_staff("room_closed", event)
        return room

    async def join_room(self, connection: Connection, room_id: int | None = None) -> RoomRecord:
        principal = connection.principal
        if principal.is_staff:
            if room_id is None:
                raise AccessDenied("Room ID required for staff")
            room = await asyncio.to_thread(self._store.get_room, room_id)
            if not room.is_active:
                raise AlreadyClosed()
            room = await self.assign_staff(room_id, principal)
        else:
            room = await self.resolve_or_create_room(principal.id, principal.name, principal.email)

        async with self.room_lock(room.id):
            previous_room_id = self._subscribe(connection, room.id)
            # Joining means the backlog from the other party has been seen
            read_count = await asyncio.to_thread(self._store.mark_read, room.id, principal.kind.opposite.value)
            messages = await asyncio.to_thread(self._store.list_messages, room.id, 1, self._history_limit)
            await connection.push(
                "joined_room",
                JoinedRoomPush(
                    room_id=room.id,
                    room=RoomItem.model_validate(room),
                    messages=[MessageItem.model_validate(m) for m in messages],
                ),
            )
            others = self.members(room.id)
            await deliver(others, "user_joined", presence_of(connection, room.id), exclude=connection)
            if read_count:
                receipt = ReadReceiptPush(
                    room_id=room.id,
                    reader_id=principal.id,
                    reader_kind=principal.kind.value,
                    count=read_count,
                )
                await deliver(others, "messages_read", receipt, exclude=connection)

        if previous_room_id is not None:
            await deliver(self.members(previous_room_id), "user_left", presence_of(connection, previous_room_id))
        logger.info("%s %s joined room %s", principal.kind.value, principal.id, room.id)
        return room

    async def leave(self, connection: Connection) -> None:
        room_id = self._unsubscribe(connection)
        if room_id is None:
            return
        await deliver(self.members(room_id), "user_left", presence_of(connection, room_id))

    def _subscribe(self, connection: Connection, room_id: int) -> int | None:
        """Point the connection at room_id; returns the room it left, if any."""
        previous = connection.current_room_id
        if previous == room_id:
            self._members.setdefault(room_id, set()).add(connection)
            return None
        self._unsubscribe(connection)
        self._members.setdefault(room_id, set()).add(connection)
        connection.current_room_id = room_id
        return previous

    def _unsubscribe(self, connection: Connection) -> int | None:
        room_id = connection.current_room_id
        if room_id is None:
            return None
        members = self._members.get(room_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._members[room_id]
        connection.current_room_id = None
        return room_id

    def reset(self) -> None:
        for members in self._members.values():
            for connection in members:
                connection.current_room_id = None
        self._members.clear()
