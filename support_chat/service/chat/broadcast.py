import logging
from typing import Any

from support_chat.model.chat.kinds import PrincipalKind
from support_chat.service.chat.connection import deliver
from support_chat.service.chat.registry import PresenceRegistry

logger = logging.getLogger(__name__)


class AdminBroadcast:
    """Pushes room-list events to every connected staff member."""

    def __init__(self, registry: PresenceRegistry):
        self._registry = registry

    async def notify_all_staff(self, event_type: str, data: Any) -> int:
        staff = self._registry.connections(PrincipalKind.STAFF)
        if not staff:
            return 0
        delivered = await deliver(staff, event_type, data)
        logger.debug("%s delivered to %d/%d staff connections", event_type, delivered, len(staff))
        return delivered
