from dataclasses import dataclass

from support_chat.model.chat.kinds import PrincipalKind


@dataclass(frozen=True)
class Principal:
    """Authenticated actor; fixed for the lifetime of a connection."""

    id: int
    kind: PrincipalKind
    name: str
    email: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.kind is PrincipalKind.STAFF
