import asyncio
import math

from fastapi import APIRouter, Depends, Query

import support_chat.config.config as configs
from support_chat.api.deps import current_principal, get_hub, require_customer, require_staff
from support_chat.model.chat.principal import Principal
from support_chat.model.room.room_response import (
    ChatStats,
    MessageItem,
    MessagePageResponse,
    Pagination,
    ReadResponse,
    RoomActionResponse,
    RoomHistoryResponse,
    RoomItem,
    RoomSummaryItem,
    StatsResponse,
)
from support_chat.service.chat.hub import ChatHub

api_router = APIRouter(prefix="/chat", tags=["chat"])


@api_router.get("/room", response_model=RoomHistoryResponse)
async def customer_room(principal: Principal = Depends(require_customer), hub: ChatHub = Depends(get_hub)):
    room = await hub.rooms.resolve_or_create_room(principal.id, principal.name, principal.email)
    messages = await asyncio.to_thread(hub.store.list_messages, room.id, 1, None)
    return RoomHistoryResponse(
        room=RoomItem.model_validate(room),
        messages=[MessageItem.model_validate(m) for m in messages],
    )


@api_router.get("/rooms", response_model=list[RoomSummaryItem])
def active_rooms(_: Principal = Depends(require_staff), hub: ChatHub = Depends(get_hub)):
    return [RoomSummaryItem.model_validate(r) for r in hub.store.list_active_rooms()]


@api_router.get("/rooms/{room_id}/messages", response_model=MessagePageResponse)
def room_messages(
    room_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(configs.DEFAULT_PAGE_SIZE, ge=1, le=configs.MAX_PAGE_SIZE),
    _: Principal = Depends(require_staff),
    hub: ChatHub = Depends(get_hub),
):
    room = hub.store.get_room(room_id)
    messages = hub.store.list_messages(room_id, page, limit)
    total = hub.store.count_messages(room_id)
    return MessagePageResponse(
        room=RoomItem.model_validate(room),
        messages=[MessageItem.model_validate(m) for m in messages],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@api_router.patch("/rooms/{room_id}/assign", response_model=RoomActionResponse)
async def assign_room(room_id: int, principal: Principal = Depends(require_staff), hub: ChatHub = Depends(get_hub)):
    room = await hub.rooms.assign_staff(room_id, principal)
    if room.staff_id == principal.id:
        message = "Staff assigned to chat room successfully"
    else:
        message = "Chat room is already assigned"
    return RoomActionResponse(message=message, room=RoomItem.model_validate(room))


@api_router.patch("/rooms/{room_id}/close", response_model=RoomActionResponse)
async def close_room(room_id: int, _: Principal = Depends(require_staff), hub: ChatHub = Depends(get_hub)):
    room = await hub.rooms.close_room(room_id)
    return RoomActionResponse(message="Chat room closed successfully", room=RoomItem.model_validate(room))


@api_router.patch("/rooms/{room_id}/read", response_model=ReadResponse)
async def mark_room_read(room_id: int, principal: Principal = Depends(current_principal), hub: ChatHub = Depends(get_hub)):
    count = await hub.dispatcher.acknowledge(principal, room_id)
    return ReadResponse(message="Messages marked as read", room_id=room_id, count=count)


@api_router.get("/stats", response_model=StatsResponse)
def chat_stats(_: Principal = Depends(require_staff), hub: ChatHub = Depends(get_hub)):
    stats = hub.store.stats()
    return StatsResponse(
        stats=ChatStats.model_validate(stats),
        recent_activity=[MessageItem.model_validate(m) for m in stats.recent_activity],
    )
