# app/services/access_gateway.py
"""
AccessGateway: authorizes every dispatch operation against the caller.

Identity and role come from the upstream auth layer, which forwards them as
X-User-Id / X-User-Role headers. This module never authenticates anyone; it
only checks what an already-identified caller may do.
"""

import enum
from dataclasses import dataclass
from typing import Optional
from fastapi import Header
from app.exceptions import Forbidden, Unauthorized

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = {ROLE_USER, ROLE_ADMIN}


@dataclass(frozen=True)
class Caller:
    identity: Optional[str]
    role: Optional[str] = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class Capability(str, enum.Enum):
    ADMIN_ONLY = "admin-only"
    OWNER_OR_ADMIN = "owner-or-admin"
    ANY_AUTHENTICATED = "any-authenticated"


class Operation(str, enum.Enum):
    CREATE_REQUEST = "create_request"
    LIST_MY_REQUESTS = "list_my_requests"
    READ_REQUEST = "read_request"
    CANCEL_REQUEST = "cancel_request"
    LIST_ALL_REQUESTS = "list_all_requests"
    ASSIGN_DRIVER = "assign_driver"
    COMPLETE_REQUEST = "complete_request"
    PURGE_REQUEST = "purge_request"
    VIEW_STATS = "view_stats"
    LIST_DRIVERS = "list_drivers"
    MANAGE_DRIVERS = "manage_drivers"
    SET_DRIVER_STATUS = "set_driver_status"


CAPABILITIES = {
    Operation.CREATE_REQUEST: Capability.ANY_AUTHENTICATED,
    Operation.LIST_MY_REQUESTS: Capability.ANY_AUTHENTICATED,
    Operation.READ_REQUEST: Capability.OWNER_OR_ADMIN,
    Operation.CANCEL_REQUEST: Capability.OWNER_OR_ADMIN,
    Operation.LIST_ALL_REQUESTS: Capability.ADMIN_ONLY,
    Operation.ASSIGN_DRIVER: Capability.ADMIN_ONLY,
    Operation.COMPLETE_REQUEST: Capability.ADMIN_ONLY,
    Operation.PURGE_REQUEST: Capability.ADMIN_ONLY,
    Operation.VIEW_STATS: Capability.ADMIN_ONLY,
    Operation.LIST_DRIVERS: Capability.ADMIN_ONLY,
    Operation.MANAGE_DRIVERS: Capability.ADMIN_ONLY,
    Operation.SET_DRIVER_STATUS: Capability.ADMIN_ONLY,
}


def require_identity(caller: Optional[Caller]) -> Caller:
    if caller is None or not caller.identity:
        raise Unauthorized("Authentication required")
    if caller.role not in ROLES:
        raise Unauthorized(f"Unknown role '{caller.role}'")
    return caller


def authorize(caller: Optional[Caller], operation: Operation,
              resource_owner: Optional[str] = None) -> Caller:
    """
    Raise Unauthorized if there is no identity at all, Forbidden if the caller
    is identified but lacks the role or ownership the operation needs.
    """
    require_identity(caller)

    capability = CAPABILITIES[operation]
    if capability is Capability.ANY_AUTHENTICATED or caller.is_admin:
        return caller
    if capability is Capability.OWNER_OR_ADMIN and resource_owner is not None \
            and caller.identity == resource_owner:
        return caller
    raise Forbidden(f"Not allowed to {operation.value.replace('_', ' ')}")


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Caller:
    """FastAPI dependency — builds the Caller from the forwarded identity headers."""
    identity = x_user_id.strip() if x_user_id else None
    if not identity:
        raise Unauthorized("Missing X-User-Id header")
    role = (x_user_role or ROLE_USER).strip().lower()
    if role not in ROLES:
        raise Unauthorized(f"Unknown role '{role}'")
    return Caller(identity=identity, role=role)
