from typing import List, Optional

from pydantic import Field

from support_chat.model.room.room_response import CamelModel, MessageItem, RoomItem, RoomSummaryItem


class JoinedRoomPush(CamelModel):
    room_id: int
    room: RoomItem
    messages: List[MessageItem]


class PresencePush(CamelModel):
    room_id: int
    user_id: int
    user_name: str
    user_kind: str


class TypingPush(CamelModel):
    room_id: int
    user_id: int
    user_name: str
    user_kind: str
    is_typing: bool


class ReadReceiptPush(CamelModel):
    room_id: int
    reader_id: int
    reader_kind: str
    count: int = Field(..., description="Messages flipped to read by this receipt")


class AdminAlertPush(CamelModel):
    type: str = "new_message"
    room_id: int
    message_id: int
    customer_id: int
    customer_name: str
    customer_email: Optional[str] = None
    message: str


class RoomEventPush(CamelModel):
    room: RoomItem
    last_message: Optional[MessageItem] = None


class ActiveRoomsPush(CamelModel):
    rooms: List[RoomSummaryItem]
