"""
Tabla de permisos por rol

Cada rol tiene un conjunto explícito de permisos; las rutas piden un permiso
concreto y nunca comparan strings de rol directamente.
"""
from enum import Enum
from typing import Dict, FrozenSet

from shared.database.models import Role


class Permission(str, Enum):
    EVENTS_BROWSE = "events:browse"
    EVENTS_SUBMIT = "events:submit"
    EVENTS_VIEW_OWN_REGISTRATIONS = "events:view_own_registrations"
    EVENTS_MODERATE = "events:moderate"
    EVENTS_VIEW_ALL = "events:view_all"
    CHECKOUT_CREATE = "checkout:create"
    TICKETS_MANAGE_OWN = "tickets:manage_own"
    REGISTRATIONS_VIEW_ANY = "registrations:view_any"
    CHECKOUTS_EXPIRE = "checkouts:expire"


_BUYER: FrozenSet[Permission] = frozenset({
    Permission.EVENTS_BROWSE,
    Permission.CHECKOUT_CREATE,
    Permission.TICKETS_MANAGE_OWN,
})

POLICY: Dict[str, FrozenSet[Permission]] = {
    Role.USER: _BUYER,
    Role.ORGANIZER: _BUYER | {
        Permission.EVENTS_SUBMIT,
        Permission.EVENTS_VIEW_OWN_REGISTRATIONS,
    },
    Role.ADMIN: frozenset(Permission),
}


def permissions_for(role: str) -> FrozenSet[Permission]:
    """Permisos de un rol (roles desconocidos no tienen permisos)"""
    return POLICY.get(role, frozenset())
