"""
Caller capability resolution.

Identity verification happens upstream (API gateway / CMS login). The gateway
forwards the verified role in X-Caller-Role and the user id in X-Caller-Id;
this module only turns that role into the boolean capability the scheduling
engine trusts.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from .shared.errors import ForbiddenError

logger = logging.getLogger(__name__)

ROLE_HIERARCHY = {
    "SUPER_ADMIN": 3,
    "ADMIN": 2,
    "EDITOR": 1,
}

# Minimum role allowed to confirm/complete/no-show and edit catalog or closures
MANAGE_ROLE = "ADMIN"


def has_role(user_role: Optional[str], required_role: str) -> bool:
    """Role-based hierarchy check"""
    user_level = ROLE_HIERARCHY.get((user_role or "").upper(), 0)
    required_level = ROLE_HIERARCHY.get(required_role, 0)
    return user_level >= required_level


@dataclass(frozen=True)
class Caller:
    """Verified caller as seen by the engine"""

    can_manage: bool = False
    caller_id: Optional[str] = None
    role: Optional[str] = None


ANONYMOUS = Caller()
STAFF = Caller(can_manage=True, caller_id="system", role="SUPER_ADMIN")


def get_current_caller(
    x_caller_role: Optional[str] = Header(None),
    x_caller_id: Optional[str] = Header(None),
) -> Caller:
    """Resolve the caller capability from gateway headers (anonymous when absent)"""
    if not x_caller_role:
        return ANONYMOUS

    role = x_caller_role.upper()
    if role not in ROLE_HIERARCHY:
        logger.warning(f"⚠️ Unknown caller role '{x_caller_role}' treated as anonymous")
        return Caller(caller_id=x_caller_id)

    return Caller(can_manage=has_role(role, MANAGE_ROLE), caller_id=x_caller_id, role=role)


def require_manage(caller: Caller) -> None:
    """Raise ForbiddenError unless the caller may act on behalf of the clinic"""
    if not caller.can_manage:
        raise ForbiddenError()
