from enum import Enum


class PrincipalKind(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"

    @property
    def opposite(self) -> "PrincipalKind":
        return PrincipalKind.STAFF if self is PrincipalKind.CUSTOMER else PrincipalKind.CUSTOMER


class MessageKind(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


class RoomStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
