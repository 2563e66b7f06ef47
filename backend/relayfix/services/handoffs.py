from __future__ import annotations
"""Hand-off desk: what a relay terminal does once a code or QR token is presented.

    validate (read-only) -> consume code -> move repair -> commit -> notify

Consuming the code and moving the repair share one transaction. Either both
are committed or neither is, so a rejected or failed hand-off leaves the code
usable for another attempt.
"""
import logging
from typing import Optional

from relayfix.models.repair_status import RepairStatus
from relayfix.services.handoff_validator import (
    HandoffOutcome, Rejection, mark_code_as_used, validate_code, validate_token,
)
from relayfix.services.lifecycle import get_repair, status_code_of, transition
from relayfix.services.notifications import NotificationDispatcher, notify_transition
from relayfix.services.persistence import resolve_session, store_call
from relayfix.services.token_codec import HandoffTokenCodec

logger = logging.getLogger(__name__)

# Status awaiting a hand-off -> (status after it, repair column naming the relay point)
HANDOFF_EDGES = {
    RepairStatus.SUBMITTED: (RepairStatus.RECEIVED, 'drop_off_relay_id'),
    RepairStatus.READY_FOR_PICKUP: (RepairStatus.DELIVERED, 'pickup_relay_id'),
}


def handoff_relay_for(repair) -> Optional[str]:
    """Relay point where the next hand-off of this repair takes place, if any."""
    edge = HANDOFF_EDGES.get(status_code_of(repair))
    return getattr(repair, edge[1]) if edge else None


def redeem_token(token: str, relay_point_id: str, now: Optional[int] = None, *, codec: HandoffTokenCodec,
                 dispatcher: NotificationDispatcher, session=None) -> HandoffOutcome:
    session = resolve_session(session)
    outcome = validate_token(token, relay_point_id, now, codec=codec, session=session)
    return complete_handoff(outcome, relay_point_id, dispatcher=dispatcher, session=session)


def redeem_code(code: str, relay_point_id: str, now: Optional[int] = None, *,
                dispatcher: NotificationDispatcher, session=None) -> HandoffOutcome:
    session = resolve_session(session)
    outcome = validate_code(code, relay_point_id, now, session=session)
    return complete_handoff(outcome, relay_point_id, dispatcher=dispatcher, session=session)


def complete_handoff(outcome: HandoffOutcome, relay_point_id: str, *,
                     dispatcher: NotificationDispatcher, session=None) -> HandoffOutcome:
    """Consume the validated code and drive the matching lifecycle edge.

    The code is consumed first: a redeemer that lost the race to another
    terminal gets ALREADY_USED whatever the repair's status is by then. Any
    later rejection rolls the consumption back.
    """
    if not outcome.accepted:
        logger.info('Hand-off at relay point %s rejected: %s', relay_point_id, outcome.rejection)
        return outcome
    session = resolve_session(session)
    ref = {'repair_id': outcome.repair_id, 'code': outcome.code, 'code_id': outcome.code_id}

    with store_call(session, 'Hand-off commit'):
        if not mark_code_as_used(outcome.code_id, session=session):
            session.rollback()
            return HandoffOutcome.reject(Rejection.ALREADY_USED, **ref)
        repair = get_repair(outcome.repair_id, session=session)
        if repair is None:
            session.rollback()
            return HandoffOutcome.reject(Rejection.NOT_FOUND, **ref)
        current = status_code_of(repair)
        edge = HANDOFF_EDGES.get(current)
        if edge is None:
            session.rollback()
            return HandoffOutcome.reject(Rejection.ILLEGAL_TRANSITION, status=current, **ref)
        designated = handoff_relay_for(repair)
        if designated and designated != str(relay_point_id):
            session.rollback()
            return HandoffOutcome.reject(Rejection.RELAY_MISMATCH, status=current, **ref)
        target = edge[0]
        moved = transition(repair.id, target, expected_from=current, session=session, commit=False)
        if not moved.accepted:
            session.rollback()
            return HandoffOutcome.reject(Rejection.ILLEGAL_TRANSITION, status=current, **ref)
        session.commit()

    logger.info('Hand-off of repair %s at relay point %s: %s -> %s', repair.id, relay_point_id, current, target)
    notify_transition(dispatcher, repair, target, relay_point_id)
    return outcome.with_status(target)

__all__ = ['HANDOFF_EDGES', 'handoff_relay_for', 'redeem_token', 'redeem_code', 'complete_handoff']
