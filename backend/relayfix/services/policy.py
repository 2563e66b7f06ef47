from __future__ import annotations
from typing import Optional, Set
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity

# Roles issued by the external auth provider
ROLE_CLIENT = 'client'
ROLE_RELAY = 'relayPoint'


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def current_role() -> Optional[str]:
    return get_jwt().get('role')


def current_relay_point_id() -> str:
    """Relay point the caller operates. Taken from the token, never from the request body."""
    relay_id = get_jwt().get('relay_point_id')
    if not relay_id:
        abort(403, description='Relay point terminal required')
    return str(relay_id)


def assert_relay_access(relay_point_id: Optional[str]):
    """Relay staff may only act on their own relay point; other roles are not scoped."""
    if current_role() != ROLE_RELAY:
        return
    if relay_point_id is None or str(relay_point_id) != get_jwt().get('relay_point_id'):
        abort(403, description='Relay point access denied')


def assert_repair_access(repair):
    """Clients see their own repairs; relay staff see repairs routed through their relay point."""
    role = current_role()
    if role == ROLE_CLIENT:
        if repair.client_id != str(get_jwt_identity()):
            abort(403, description='Record ownership required')
    elif role == ROLE_RELAY:
        relay_id = get_jwt().get('relay_point_id')
        if relay_id not in (repair.drop_off_relay_id, repair.pickup_relay_id):
            abort(403, description='Relay point access denied')
