"""Central enum-like definitions to avoid typos in permission strings.
Permission codes travel in the ``perms`` JWT claim issued by the auth provider.
"""
from __future__ import annotations
from typing import List, Dict

SERVICE_ACTIONS = {
    'RPR': ['READ', 'CREATE', 'MANAGE', 'CANCEL'],
    'HANDOFF': ['ISSUE', 'REDEEM'],
}


def build_all_permission_codes() -> List[str]:
    return [f"{svc}.{act}" for svc, actions in SERVICE_ACTIONS.items() for act in actions]

ALL_PERMISSION_CODES = build_all_permission_codes()

# Role (as issued by the auth provider) -> permission codes granted
ROLE_PRESETS: Dict[str, List[str]] = {
    'client': ['RPR.READ', 'RPR.CREATE', 'HANDOFF.ISSUE'],
    'relayPoint': ['RPR.READ', 'HANDOFF.ISSUE', 'HANDOFF.REDEEM'],
    'technician': ['RPR.READ', 'RPR.MANAGE'],
    'admin': ['RPR.READ', 'RPR.CREATE', 'RPR.MANAGE', 'RPR.CANCEL', 'HANDOFF.ISSUE'],
}
