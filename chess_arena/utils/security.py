"""Principal model and role checks.

Authentication happens upstream; this module only consumes the resulting
identity and answers role questions about it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from chess_arena.utils.errors import ActionResult, ErrorCode

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """An already-authenticated caller."""

    id: str
    roles: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_header_values(cls, user_id: str, roles: str | None) -> Principal:
        """Build a principal from ``X-User-Id`` / ``X-User-Roles`` style values."""
        parsed = frozenset(r.strip() for r in (roles or "").split(",") if r.strip())
        return cls(id=user_id.strip(), roles=parsed)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def require_roles(principal: Principal | None, roles: Iterable[str]) -> ActionResult:
    """Check that ``principal`` holds at least one of ``roles``.

    Returns ``UNAUTHORIZED`` when there is no principal and ``FORBIDDEN``
    when none of the required roles is held.
    """
    required = tuple(roles)
    if principal is None:
        return ActionResult.fail(ErrorCode.UNAUTHORIZED, "Authentication required")

    if required and not any(principal.has_role(r) for r in required):
        return ActionResult.fail(
            ErrorCode.FORBIDDEN,
            "Insufficient role",
            details={"required": list(required)},
        )

    return ActionResult.ok()
