"""Inbound websocket events, validated before they reach the chat services."""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from support_chat.errors import InvalidEvent
from support_chat.model.chat.kinds import MessageKind


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class JoinRoomEvent(_Event):
    type: Literal["join_room", "join_chat"]
    # Required for staff, ignored for customers
    room_id: Optional[int] = Field(default=None, alias="roomId")


class SendMessageEvent(_Event):
    type: Literal["send_message"]
    message: str
    message_type: MessageKind = Field(default=MessageKind.TEXT, alias="messageType")


class TypingEvent(_Event):
    type: Literal["typing"]
    is_typing: bool = Field(alias="isTyping")


class MarkReadEvent(_Event):
    type: Literal["mark_read", "mark_messages_read"]
    # Defaults to the connection's current room
    room_id: Optional[int] = Field(default=None, alias="roomId")


class GetActiveRoomsEvent(_Event):
    type: Literal["get_active_rooms"]


ChatEvent = Annotated[
    Union[JoinRoomEvent, SendMessageEvent, TypingEvent, MarkReadEvent, GetActiveRoomsEvent],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(ChatEvent)


def parse_event(payload: str | bytes | dict) -> ChatEvent:
    try:
        if isinstance(payload, (str, bytes)):
            return _event_adapter.validate_json(payload)
        return _event_adapter.validate_python(payload)
    except ValidationError as exc:
        errors = exc.errors()
        detail = errors[0].get("msg") if errors else "invalid payload"
        raise InvalidEvent(f"Malformed event payload: {detail}") from exc
