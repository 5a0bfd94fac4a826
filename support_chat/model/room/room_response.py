from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RoomItem(CamelModel):
    id: int
    customer_id: int
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    staff_id: Optional[int] = None
    staff_name: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoomSummaryItem(RoomItem):
    unread_count: int = Field(0, description="Unread messages written by the customer")
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    last_sender_kind: Optional[str] = None


class MessageItem(CamelModel):
    id: int
    room_id: int
    sender_id: int
    sender_kind: str
    sender_name: Optional[str] = None
    body: str
    kind: str
    is_read: bool
    created_at: Optional[datetime] = None


class RoomHistoryResponse(CamelModel):
    room: RoomItem
    messages: List[MessageItem]


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class MessagePageResponse(CamelModel):
    room: RoomItem
    messages: List[MessageItem]
    pagination: Pagination


class RoomActionResponse(CamelModel):
    message: str
    room: RoomItem


class ReadResponse(CamelModel):
    message: str
    room_id: int
    count: int = Field(..., description="Messages flipped to read by this call")


class ChatStats(CamelModel):
    total_rooms: int
    active_rooms: int
    total_messages: int
    unread_messages: int
    rooms_with_unread: int


class StatsResponse(CamelModel):
    stats: ChatStats
    recent_activity: List[MessageItem]
