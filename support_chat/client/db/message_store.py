"""Durable chat storage backed by SQLAlchemy.

Every public method opens its own short transaction through ``session_scope``
and returns plain records detached from the session, so callers may hand them
across threads. Methods are synchronous; the chat layer awaits them with
``asyncio.to_thread``.

Mutations are conditional updates (``WHERE staff_id IS NULL``,
``WHERE status = 'active'``, ``WHERE is_read = false``) so that duplicate or
racing calls become no-ops instead of overwriting each other.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from support_chat.client.db.psql import session_scope
from support_chat.db.models.chat_message import ChatMessage
from support_chat.db.models.chat_room import ChatRoom
from support_chat.db.session import SessionLocal
from support_chat.errors import AlreadyClosed, RoomNotFound
from support_chat.model.chat.kinds import MessageKind, PrincipalKind, RoomStatus

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10


@dataclass
class RoomRecord:
    id: int
    customer_id: int
    customer_name: str | None
    customer_email: str | None
    staff_id: int | None
    staff_name: str | None
    status: str
    created_at: datetime | None
    updated_at: datetime | None

    @property
    def is_active(self) -> bool:
        return self.status == RoomStatus.ACTIVE.value


@dataclass
class RoomSummary(RoomRecord):
    unread_count: int = 0
    last_message: str | None = None
    last_message_time: datetime | None = None
    last_sender_kind: str | None = None


@dataclass
class MessageRecord:
    id: int
    room_id: int
    sender_id: int
    sender_kind: str
    sender_name: str | None
    body: str
    kind: str
    is_read: bool
    created_at: datetime | None


@dataclass
class StoreStats:
    total_rooms: int
    active_rooms: int
    total_messages: int
    unread_messages: int
    rooms_with_unread: int
    recent_activity: list[MessageRecord] = field(default_factory=list)


def _room_record(room: ChatRoom) -> RoomRecord:
    return RoomRecord(
        id=room.id,
        customer_id=room.customer_id,
        customer_name=room.customer_name,
        customer_email=room.customer_email,
        staff_id=room.staff_id,
        staff_name=room.staff_name,
        status=room.status,
        created_at=room.created_at,
        updated_at=room.updated_at,
    )


def _message_record(message: ChatMessage) -> MessageRecord:
    return MessageRecord(
        id=message.id,
        room_id=message.room_id,
        sender_id=message.sender_id,
        sender_kind=message.sender_kind,
        sender_name=message.sender_name,
        body=message.body,
        kind=message.kind,
        is_read=bool(message.is_read),
        created_at=message.created_at,
    )


class MessageStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    # -- rooms -------------------------------------------------------------

    def _active_room(self, db: Session, customer_id: int) -> ChatRoom | None:
        stmt = (
            select(ChatRoom)
            .where(ChatRoom.customer_id == customer_id, ChatRoom.status == RoomStatus.ACTIVE.value)
            .order_by(ChatRoom.created_at.desc(), ChatRoom.id.desc())
            .limit(1)
        )
        return db.execute(stmt).scalar_one_or_none()

    def _load_room(self, db: Session, room_id: int) -> ChatRoom:
        room = db.get(ChatRoom, room_id, populate_existing=True)
        if room is None:
            raise RoomNotFound()
        return room

    def find_active_room_for_customer(self, customer_id: int) -> RoomRecord | None:
        with session_scope(self._session_factory) as db:
            room = self._active_room(db, customer_id)
            return _room_record(room) if room is not None else None

    def create_room(
        self,
        customer_id: int,
        customer_name: str | None = None,
        customer_email: str | None = None,
    ) -> RoomRecord:
        """
        Insert a new active room for the customer.
        If another writer created one first, the unique index on active rooms
        rejects this insert and the winner's room is returned instead.
        """
        with session_scope(self._session_factory) as db:
            room = ChatRoom(
                customer_id=customer_id,
                customer_name=customer_name,
                customer_email=customer_email,
                status=RoomStatus.ACTIVE.value,
            )
            db.add(room)
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                existing = self._active_room(db, customer_id)
                if existing is None:
                    raise
                logger.info("active room race for customer=%s resolved to room=%s", customer_id, existing.id)
                return _room_record(existing)
            db.refresh(room)
            return _room_record(room)

    def get_room(self, room_id: int) -> RoomRecord:
        with session_scope(self._session_factory) as db:
            return _room_record(self._load_room(db, room_id))

    def assign_staff_if_unset(self, room_id: int, staff_id: int, staff_name: str | None = None) -> RoomRecord:
        with session_scope(self._session_factory) as db:
            result = db.execute(
                update(ChatRoom)
                .where(
                    ChatRoom.id == room_id,
                    ChatRoom.staff_id.is_(None),
                    ChatRoom.status == RoomStatus.ACTIVE.value,
                )
                .values(staff_id=staff_id, staff_name=staff_name, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            room = self._load_room(db, room_id)
            if result.rowcount == 0 and room.status != RoomStatus.ACTIVE.value:
                raise AlreadyClosed()
            return _room_record(room)

    def close_room(self, room_id: int) -> RoomRecord:
        with session_scope(self._session_factory) as db:
            result = db.execute(
                update(ChatRoom)
                .where(ChatRoom.id == room_id, ChatRoom.status == RoomStatus.ACTIVE.value)
                .values(status=RoomStatus.CLOSED.value, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            room = self._load_room(db, room_id)
            if result.rowcount == 0:
                raise AlreadyClosed()
            return _room_record(room)

    def _touch(self, db: Session, room_id: int) -> None:
        db.execute(
            update(ChatRoom)
            .where(ChatRoom.id == room_id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )

    def touch_room_updated_at(self, room_id: int) -> None:
        with session_scope(self._session_factory) as db:
            self._touch(db, room_id)

    # -- messages ----------------------------------------------------------

    def insert_message(
        self,
        room_id: int,
        sender_id: int,
        sender_kind: str,
        body: str,
        kind: str = MessageKind.TEXT.value,
        sender_name: str | None = None,
    ) -> MessageRecord:
        """Persist a message and bump the room's updated_at in one transaction."""
        with session_scope(self._session_factory) as db:
            room = db.get(ChatRoom, room_id, with_for_update=True)
            if room is None:
                raise RoomNotFound()
            if room.status != RoomStatus.ACTIVE.value:
                raise AlreadyClosed()

            message = ChatMessage(
                room_id=room_id,
                sender_id=sender_id,
                sender_kind=sender_kind,
                sender_name=sender_name,
                body=body,
                kind=kind,
                is_read=False,
            )
            db.add(message)
            db.flush()
            self._touch(db, room_id)
            db.refresh(message)
            return _message_record(message)

    def list_messages(self, room_id: int, page: int = 1, limit: int | None = 50) -> list[MessageRecord]:
        """
        Return one page of a room's history in ascending order.
        Page 1 is the newest window; ``limit=None`` returns the whole history.
        """
        with session_scope(self._session_factory) as db:
            if limit is None:
                stmt = select(ChatMessage).where(ChatMessage.room_id == room_id).order_by(ChatMessage.id.asc())
                return [_message_record(m) for m in db.execute(stmt).scalars()]

            offset = (max(page, 1) - 1) * limit
            stmt = (
                select(ChatMessage)
                .where(ChatMessage.room_id == room_id)
                .order_by(ChatMessage.id.desc())
                .offset(offset)
                .limit(limit)
            )
            rows = [_message_record(m) for m in db.execute(stmt).scalars()]
            rows.reverse()
            return rows

    def count_messages(self, room_id: int) -> int:
        with session_scope(self._session_factory) as db:
            stmt = select(func.count(ChatMessage.id)).where(ChatMessage.room_id == room_id)
            return db.execute(stmt).scalar_one()

    def mark_read(self, room_id: int, sender_kind: str) -> int:
        """Flip unread messages written by ``sender_kind``; returns how many changed."""
        with session_scope(self._session_factory) as db:
            result = db.execute(
                update(ChatMessage)
                .where(
                    ChatMessage.room_id == room_id,
                    ChatMessage.sender_kind == sender_kind,
                    ChatMessage.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    # -- dashboard projections ---------------------------------------------

    def list_active_rooms(self) -> list[RoomSummary]:
        unread = (
            select(func.count(ChatMessage.id))
            .where(
                ChatMessage.room_id == ChatRoom.id,
                ChatMessage.sender_kind == PrincipalKind.CUSTOMER.value,
                ChatMessage.is_read.is_(False),
            )
            .correlate(ChatRoom)
            .scalar_subquery()
        )

        def _latest(column):
            return (
                select(column)
                .where(ChatMessage.room_id == ChatRoom.id)
                .order_by(ChatMessage.id.desc())
                .limit(1)
                .correlate(ChatRoom)
                .scalar_subquery()
            )

        stmt = (
            select(
                ChatRoom,
                unread.label("unread_count"),
                _latest(ChatMessage.body).label("last_message"),
                _latest(ChatMessage.created_at).label("last_message_time"),
                _latest(ChatMessage.sender_kind).label("last_sender_kind"),
            )
            .where(ChatRoom.status == RoomStatus.ACTIVE.value)
            .order_by(ChatRoom.updated_at.desc(), ChatRoom.id.desc())
        )

        with session_scope(self._session_factory) as db:
            summaries: list[RoomSummary] = []
            for room, unread_count, last_message, last_time, last_kind in db.execute(stmt):
                base = _room_record(room)
                summaries.append(
                    RoomSummary(
                        **vars(base),
                        unread_count=unread_count or 0,
                        last_message=last_message,
                        last_message_time=last_time,
                        last_sender_kind=last_kind,
                    )
                )
            return summaries

    def stats(self) -> StoreStats:
        customer = PrincipalKind.CUSTOMER.value
        with session_scope(self._session_factory) as db:
            total_rooms = db.execute(select(func.count(ChatRoom.id))).scalar_one()
            active_rooms = db.execute(
                select(func.count(ChatRoom.id)).where(ChatRoom.status == RoomStatus.ACTIVE.value)
            ).scalar_one()
            total_messages = db.execute(select(func.count(ChatMessage.id))).scalar_one()
            unread_messages = db.execute(
                select(func.count(ChatMessage.id)).where(
                    ChatMessage.sender_kind == customer, ChatMessage.is_read.is_(False)
                )
            ).scalar_one()
            rooms_with_unread = db.execute(
                select(func.count(func.distinct(ChatMessage.room_id))).where(
                    ChatMessage.sender_kind == customer, ChatMessage.is_read.is_(False)
                )
            ).scalar_one()
            recent = db.execute(
                select(ChatMessage)
                .join(ChatRoom, ChatRoom.id == ChatMessage.room_id)
                .where(ChatRoom.status == RoomStatus.ACTIVE.value)
                .order_by(ChatMessage.id.desc())
                .limit(RECENT_ACTIVITY_LIMIT)
            ).scalars()

            return StoreStats(
                total_rooms=total_rooms,
                active_rooms=active_rooms,
                total_messages=total_messages,
                unread_messages=unread_messages,
                rooms_with_unread=rooms_with_unread,
                recent_activity=[_message_record(m) for m in recent],
            )
