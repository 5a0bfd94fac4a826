import logging

from support_chat.model.chat.kinds import PrincipalKind
from support_chat.service.chat.connection import Connection

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Live connections keyed by principal id, one partition per principal kind.

    Each principal owns a single routing slot: a newer connection replaces the
    older one (last-connected-wins). The replaced socket is left open; closing
    it is the transport's business.
    """

    def __init__(self):
        self._partitions: dict[PrincipalKind, dict[int, Connection]] = {kind: {} for kind in PrincipalKind}

    def __len__(self) -> int:
        return sum(len(partition) for partition in self._partitions.values())

    def register(self, connection: Connection) -> Connection | None:
        """Insert the connection; returns the connection it superseded, if any."""
        principal = connection.principal
        partition = self._partitions[principal.kind]
        previous = partition.get(principal.id)
        if previous is not None and previous is not connection:
            self.replace(previous, connection)
            return previous
        partition[principal.id] = connection
        logger.info("registered %s %s", principal.kind.value, principal.id)
        return None

    def replace(self, old: Connection, new: Connection) -> None:
        principal = new.principal
        if old.principal.id != principal.id or old.principal.kind is not principal.kind:
            raise ValueError("replace() requires connections of the same principal")
        self._partitions[principal.kind][principal.id] = new
        logger.info("%s %s reconnected, %s supersedes %s", principal.kind.value, principal.id, new.id, old.id)

    def unregister(self, connection: Connection) -> bool:
        """
        Remove the principal's slot only if it still points at this exact
        connection. A late disconnect of a superseded connection is a no-op.
        """
        principal = connection.principal
        partition = self._partitions[principal.kind]
        if partition.get(principal.id) is not connection:
            return False
        del partition[principal.id]
        logger.info("unregistered %s %s", principal.kind.value, principal.id)
        return True

    def connection_for(self, principal_id: int, kind: PrincipalKind) -> Connection | None:
        return self._partitions[kind].get(principal_id)

    def connections(self, kind: PrincipalKind) -> list[Connection]:
        # Snapshot so callers may await between pushes
        return list(self._partitions[kind].values())

    def clear(self) -> None:
        for partition in self._partitions.values():
            partition.clear()
