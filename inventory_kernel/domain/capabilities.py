"""
Capability Table -- role -> permission lookup.

Responsibility:
    Declares the fixed role and capability enumerations and the immutable
    ``Role x Capability -> bool`` table built once at import time.

Architecture position:
    Kernel > Domain -- pure, no I/O. Consumed by the authorization gate in
    ``inventory_services.authorization``.

Invariants enforced:
    - Fail closed: a role that is not in the enumeration holds no
      capabilities.
    - Fail fast: a capability name that is not in the enumeration is a
      programming error and raises UnknownCapabilityError.
    - The table is read-only after import (MappingProxyType of frozensets).
"""

from __future__ import annotations

from enum import Enum, unique
from types import MappingProxyType
from typing import Mapping

from inventory_kernel.exceptions import UnknownCapabilityError


@unique
class Role(str, Enum):
    """Roles a user account can carry."""

    CEO = "ceo"
    MARKETER = "marketer"
    SALES_MANAGER = "salesManager"
    STOCK_MANAGER = "stockManager"
    ADMIN = "admin"
    MEDICAL_REP = "medicalRep"
    PRODUCT_MANAGER = "productManager"
    STOCK_KEEPER = "stockKeeper"


@unique
class Capability(str, Enum):
    """Named permissions a role may hold."""

    VIEW_ALL = "canViewAll"
    ADD_ITEMS = "canAddItems"
    EDIT_ITEMS = "canEditItems"
    REMOVE_ITEMS = "canRemoveItems"
    MOVE_STOCK = "canMoveStock"
    MANAGE_USERS = "canManageUsers"
    VIEW_REPORTS = "canViewReports"
    ACCESS_SETTINGS = "canAccessSettings"
    MANAGE_SPECIALTIES = "canManageSpecialties"
    VIEW_ALLOCATED_INVENTORY = "canViewAllocatedInventory"
    EXPORT_DATA = "canExportData"
    CREATE_REQUESTS = "canCreateRequests"
    UPLOAD_FILES = "canUploadFiles"
    SHARE_INVENTORY = "canShareInventory"
    MANAGE_REQUESTS = "canManageRequests"
    RESTOCK_INVENTORY = "canRestockInventory"
    VALIDATE_INVENTORY = "canValidateInventory"


_C = Capability

# Only granted capabilities are listed; everything else is False.
_GRANTS: dict[Role, tuple[Capability, ...]] = {
    Role.CEO: (
        _C.VIEW_ALL, _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS,
        _C.MOVE_STOCK, _C.MANAGE_USERS, _C.VIEW_REPORTS,
        _C.ACCESS_SETTINGS, _C.MANAGE_SPECIALTIES,
    ),
    Role.MARKETER: (
        _C.VIEW_REPORTS, _C.VIEW_ALLOCATED_INVENTORY, _C.EXPORT_DATA,
    ),
    Role.SALES_MANAGER: (
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS, _C.MOVE_STOCK,
    ),
    Role.STOCK_MANAGER: (
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS, _C.ACCESS_SETTINGS,
    ),
    Role.ADMIN: (
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS, _C.MANAGE_USERS,
        _C.VIEW_REPORTS, _C.ACCESS_SETTINGS, _C.MANAGE_SPECIALTIES,
    ),
    Role.MEDICAL_REP: (),
    Role.PRODUCT_MANAGER: (
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.MOVE_STOCK, _C.VIEW_REPORTS,
        _C.CREATE_REQUESTS, _C.UPLOAD_FILES, _C.SHARE_INVENTORY,
    ),
    Role.STOCK_KEEPER: (
        _C.VIEW_ALL, _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS,
        _C.MOVE_STOCK, _C.VIEW_REPORTS, _C.MANAGE_REQUESTS,
        _C.RESTOCK_INVENTORY, _C.VALIDATE_INVENTORY,
    ),
}

CAPABILITY_TABLE: Mapping[Role, frozenset[Capability]] = MappingProxyType(
    {role: frozenset(_GRANTS.get(role, ())) for role in Role}
)

del _C, _GRANTS


def resolve_capability(capability: Capability | str) -> Capability:
    """Coerce a capability name to the enum, failing fast on unknown names."""
    if isinstance(capability, Capability):
        return capability
    try:
        return Capability(capability)
    except ValueError:
        raise UnknownCapabilityError(str(capability)) from None


def resolve_role(role: Role | str | None) -> Role | None:
    """Coerce a role name to the enum; unknown roles resolve to None."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def capabilities_for(role: Role | str | None) -> frozenset[Capability]:
    """All capabilities granted to ``role`` (empty for unknown roles)."""
    resolved = resolve_role(role)
    if resolved is None:
        return frozenset()
    return CAPABILITY_TABLE[resolved]


def has_capability(role: Role | str | None, capability: Capability | str) -> bool:
    """
    Pure lookup: does ``role`` hold ``capability``?

    Raises:
        UnknownCapabilityError: ``capability`` is not a known name.
    """
    cap = resolve_capability(capability)
    return cap in capabilities_for(role)
