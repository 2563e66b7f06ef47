from __future__ import annotations
"""Repair request lifecycle.

Single source of truth for which status moves are legal and the only place a
repair's status is written. Callers (hand-off desk, staff endpoints) decide
when to move; this module accepts or rejects the move and performs it.

    SUBMITTED -> RECEIVED -> DIAGNOSED -> IN_REPAIR -> REPAIRED -> READY_FOR_PICKUP -> DELIVERED
    any non-terminal status -> CANCELLED

DELIVERED and CANCELLED are terminal.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, update

from relayfix.errors import IllegalTransition
from relayfix.models.repair_request import RepairRequest
from relayfix.models.repair_status import RepairStatus, STATUS_IDS, STATUS_CODES
from relayfix.services.persistence import resolve_session, store_call
from relayfix.utils.fsm import TransitionValidator

logger = logging.getLogger(__name__)

REPAIR_FSM = TransitionValidator({
    RepairStatus.SUBMITTED: {RepairStatus.RECEIVED},
    RepairStatus.RECEIVED: {RepairStatus.DIAGNOSED},
    RepairStatus.DIAGNOSED: {RepairStatus.IN_REPAIR},
    RepairStatus.IN_REPAIR: {RepairStatus.REPAIRED},
    RepairStatus.REPAIRED: {RepairStatus.READY_FOR_PICKUP},
    RepairStatus.READY_FOR_PICKUP: {RepairStatus.DELIVERED},
    RepairStatus.DELIVERED: set(),
}).with_cancel(RepairStatus.CANCELLED)

# Columns a transition may set together with the status
TRANSITION_FIELDS = {'pre_diagnosis', 'estimated_cost_cents', 'technician_id', 'pickup_relay_id', 'notes'}


@dataclass(frozen=True)
class TransitionOutcome:
    accepted: bool
    repair_id: int
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    rejection: Optional[str] = None
    detail: Optional[str] = None


def status_code_of(repair: RepairRequest) -> str:
    return STATUS_CODES[repair.status_id]


def allowed_targets(code: str):
    return sorted(REPAIR_FSM.targets(code))


def is_terminal(code: str) -> bool:
    return REPAIR_FSM.is_terminal(code)


def get_repair(repair_id: int, *, session=None) -> Optional[RepairRequest]:
    session = resolve_session(session)
    with store_call(session, 'Repair lookup'):
        return session.execute(
            select(RepairRequest)
            .where(RepairRequest.id == repair_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()


def transition(repair_id: int, target: str, *, expected_from: Optional[str] = None,
               changes: Optional[Dict[str, Any]] = None, session=None, commit: bool = True) -> TransitionOutcome:
    """Move repair_id to target if the edge from its current status is legal.

    expected_from pins the source status (hand-offs know which edge they drive).
    The write is conditional on the status read here, so a concurrent transition
    makes this one fail instead of overwriting it. The stored status is never
    changed on rejection. PersistenceError is the only exception raised.
    """
    session = resolve_session(session)
    repair = get_repair(repair_id, session=session)
    if repair is None:
        return TransitionOutcome(False, repair_id, to_status=target, rejection='NOT_FOUND', detail='repair not found')
    current = status_code_of(repair)
    try:
        if expected_from is not None and current != expected_from:
            raise IllegalTransition(current, target)
        REPAIR_FSM.assert_can_transition(current, target)
    except IllegalTransition as e:
        return TransitionOutcome(False, repair_id, current, target, 'ILLEGAL_TRANSITION', str(e))
    values = {k: v for k, v in (changes or {}).items() if k in TRANSITION_FIELDS}
    values['status_id'] = STATUS_IDS[target]
    values['updated_at'] = datetime.now(timezone.utc)
    with store_call(session, 'Repair status update'):
        result = session.execute(
            update(RepairRequest)
            .where(RepairRequest.id == repair_id, RepairRequest.status_id == STATUS_IDS[current])
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if commit:
                session.rollback()
            logger.warning('Repair %s changed status concurrently; %s -> %s dropped', repair_id, current, target)
            return TransitionOutcome(False, repair_id, current, target, 'ILLEGAL_TRANSITION',
                                     f"Status of repair {repair_id} changed concurrently")
        if commit:
            session.commit()
    logger.info('Repair %s moved %s -> %s', repair_id, current, target)
    return TransitionOutcome(True, repair_id, current, target)

__all__ = ['REPAIR_FSM', 'TransitionOutcome', 'status_code_of', 'allowed_targets', 'is_terminal', 'get_repair', 'transition']
