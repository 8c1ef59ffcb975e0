"""
Caller identity.

Authentication happens upstream; the gateway forwards the verified identity
in ``X-User-Id``, ``X-Organization-Id`` and ``X-User-Role``. Handlers depend
on ``get_caller`` and receive a ``CallerContext``.
"""
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from phoenixgrc.errors import Forbidden
from phoenixgrc.models.user import UserRole


@dataclass(frozen=True)
class CallerContext:
    user_id: int
    organization_id: int
    role: UserRole

    @property
    def is_admin_or_manager(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MANAGER)


def _parse_int(value: str | None, header: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(401, f"Missing or invalid {header} header")


async def get_caller(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_organization_id: str | None = Header(None, alias="X-Organization-Id"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
) -> CallerContext:
    user_id = _parse_int(x_user_id, "X-User-Id")
    organization_id = _parse_int(x_organization_id, "X-Organization-Id")
    try:
        role = UserRole((x_user_role or "").strip().lower())
    except ValueError:
        raise HTTPException(401, "Missing or invalid X-User-Role header")
    return CallerContext(user_id=user_id, organization_id=organization_id, role=role)


def require_roles(*roles: UserRole):
    """Dependency factory: the caller must hold one of ``roles``."""

    async def _check(caller: CallerContext = Depends(get_caller)) -> CallerContext:
        if caller.role not in roles:
            raise Forbidden("Insufficient role for this operation")
        return caller

    return _check
