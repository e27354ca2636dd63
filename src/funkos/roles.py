"""Role resolution for stored session records."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from funkos.models import SessionRecord

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Closed set of storefront roles."""

    ADMIN = "admin"
    VENDEDOR = "vendedor"
    COMPRADOR = "comprador"
    MIXTO = "mixto"
    GUEST = "guest"


AUTHENTICATED_ROLES = frozenset(
    {Role.ADMIN, Role.VENDEDOR, Role.COMPRADOR, Role.MIXTO}
)


def parse_role_tag(tag: Any) -> Optional[Role]:
    """Map a backend/storage role tag onto a Role, or None if unknown."""
    if not tag or not isinstance(tag, str):
        return None
    try:
        role = Role(tag.strip().lower())
    except ValueError:
        return None
    return role if role in AUTHENTICATED_ROLES else None


def resolve_role(session: Union[SessionRecord, dict[str, Any], None]) -> Role:
    """
    Resolve the role of a stored session record.

    Only the role tag is read: other fields of a raw record may be missing or
    malformed. Absent sessions and unrecognized role tags resolve to
    ``Role.GUEST``. This never raises.
    """
    if session is None:
        return Role.GUEST

    tag = session.get("role") if isinstance(session, dict) else session.role
    role = parse_role_tag(tag)
    if role is None:
        logger.warning("Unknown role tag %r; resolving as guest", tag)
        return Role.GUEST
    return role


@dataclass(frozen=True)
class AuthState:
    """Current identity plus the derived permission flags."""

    user: Optional[SessionRecord]
    role: Role

    @classmethod
    def from_session(cls, session: Optional[SessionRecord]) -> "AuthState":
        return cls(user=session, role=resolve_role(session))

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.role is not Role.GUEST

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_vendedor(self) -> bool:
        return self.role in (Role.VENDEDOR, Role.MIXTO)

    @property
    def is_comprador(self) -> bool:
        return self.role in (Role.COMPRADOR, Role.MIXTO)

    @property
    def is_mixto(self) -> bool:
        return self.role is Role.MIXTO
