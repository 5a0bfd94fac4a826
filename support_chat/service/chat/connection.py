import logging
import uuid
from typing import Any, Iterable, Protocol

from pydantic import BaseModel

from support_chat.model.chat.principal import Principal

logger = logging.getLogger(__name__)


class Socket(Protocol):
    async def send_json(self, data: Any) -> None: ...


class Connection:
    """One live transport session for a principal."""

    def __init__(self, socket: Socket, principal: Principal):
        self.id = str(uuid.uuid4())
        self.socket = socket
        self.principal = principal
        self.current_room_id: int | None = None

    def __repr__(self) -> str:
        return f"Connection(id={self.id}, {self.principal.kind.value}={self.principal.id}, room={self.current_room_id})"

    async def send_frame(self, frame: dict) -> None:
        await self.socket.send_json(frame)

    async def push(self, event_type: str, data: Any) -> None:
        await self.send_frame(build_frame(event_type, data))


def build_frame(event_type: str, data: Any) -> dict:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    elif isinstance(data, list):
        data = [d.model_dump(mode="json", by_alias=True) if isinstance(d, BaseModel) else d for d in data]
    return {"type": event_type, "data": data}


async def deliver(
    connections: Iterable[Connection],
    event_type: str,
    data: Any,
    exclude: Connection | None = None,
) -> int:
    """
    Push one event to each connection in turn.
    A failing recipient is logged and skipped; the rest still receive the event.
    Returns the number of successful deliveries.
    """
    frame = build_frame(event_type, data)
    delivered = 0
    for connection in connections:
        if connection is exclude:
            continue
        try:
            await connection.send_frame(frame)
        except Exception:
            logger.warning("dropping %s for unreachable %r", event_type, connection, exc_info=True)
            continue
        delivered += 1
    return delivered
