from __future__ import annotations
"""Hand-off validation policy.

Decides whether a scanned token or a typed code authorizes a hand-off at a
given relay point right now. Checks run in a fixed order and the first failure
wins:

    1. relay binding   - artifact issued for the relay point doing the check
    2. expiry          - at most CODE_TTL_MS after issuedAt / creation
    3. existence       - a matching HandoffCode row is stored
    4. single use      - that row is not used yet

Validation is read-only. Consuming the code (mark_code_as_used) and moving the
repair along are separate steps taken by the caller, so a failure after a
successful validation leaves the code usable.
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional

from sqlalchemy import select, update

from relayfix.config.handoff import CODE_TTL_MS
from relayfix.errors import MalformedToken
from relayfix.models.handoff_code import HandoffCode
from relayfix.services.persistence import resolve_session, store_call
from relayfix.services.token_codec import HandoffTokenCodec
from relayfix.utils import clock
from relayfix.utils.validation import normalize_code

logger = logging.getLogger(__name__)


class Rejection:
    MALFORMED_TOKEN = 'MALFORMED_TOKEN'
    RELAY_MISMATCH = 'RELAY_MISMATCH'
    EXPIRED = 'EXPIRED'
    NOT_FOUND = 'NOT_FOUND'
    ALREADY_USED = 'ALREADY_USED'
    ILLEGAL_TRANSITION = 'ILLEGAL_TRANSITION'

    REASONS = {
        MALFORMED_TOKEN: 'invalid or corrupted QR code',
        RELAY_MISMATCH: 'not destined for this relay point',
        EXPIRED: 'expired',
        NOT_FOUND: 'invalid or nonexistent code',
        ALREADY_USED: 'already used',
        ILLEGAL_TRANSITION: 'repair is not awaiting this hand-off',
    }


@dataclass(frozen=True)
class HandoffOutcome:
    accepted: bool
    rejection: Optional[str] = None
    repair_id: Optional[int] = None
    client_id: Optional[str] = None
    code: Optional[str] = None
    code_id: Optional[int] = None
    status: Optional[str] = None

    @property
    def reason(self) -> Optional[str]:
        return Rejection.REASONS.get(self.rejection) if self.rejection else None

    @classmethod
    def reject(cls, rejection: str, **kwargs) -> 'HandoffOutcome':
        return cls(accepted=False, rejection=rejection, **kwargs)

    def with_status(self, status: str) -> 'HandoffOutcome':
        return replace(self, status=status)


def is_expired(issued_at: int, now: int) -> bool:
    return now - issued_at > CODE_TTL_MS


def validate_token(token: str, relay_point_id: str, now: Optional[int] = None, *,
                   codec: HandoffTokenCodec, session=None) -> HandoffOutcome:
    """Validate a scanned QR token presented at relay_point_id."""
    now = clock.now_ms() if now is None else now
    try:
        payload = codec.decode(token)
    except MalformedToken as e:
        logger.info('Rejected hand-off token at relay point %s: %s', relay_point_id, e)
        return HandoffOutcome.reject(Rejection.MALFORMED_TOKEN)
    ref = {'repair_id': payload.repair_id, 'code': payload.code}
    if payload.relay_point_id != str(relay_point_id):
        return HandoffOutcome.reject(Rejection.RELAY_MISMATCH, **ref)
    if is_expired(payload.issued_at, now):
        return HandoffOutcome.reject(Rejection.EXPIRED, **ref)
    session = resolve_session(session)
    with store_call(session, 'Hand-off code lookup'):
        record = session.execute(
            select(HandoffCode)
            .where(
                HandoffCode.repair_id == payload.repair_id,
                HandoffCode.code == payload.code,
                HandoffCode.relay_point_id == payload.relay_point_id,
            )
            .order_by(HandoffCode.id.desc())
            .execution_options(populate_existing=True)
        ).scalars().first()
    if record is None:
        return HandoffOutcome.reject(Rejection.NOT_FOUND, **ref)
    if record.is_used:
        return HandoffOutcome.reject(Rejection.ALREADY_USED, code_id=record.id, **ref)
    return HandoffOutcome(accepted=True, client_id=payload.client_id, code_id=record.id, **ref)


def validate_code(code: str, relay_point_id: str, now: Optional[int] = None, *, session=None) -> HandoffOutcome:
    """Validate a code typed by relay staff at relay_point_id."""
    now = clock.now_ms() if now is None else now
    normalized = normalize_code(code)
    if not normalized:
        return HandoffOutcome.reject(Rejection.NOT_FOUND)
    session = resolve_session(session)
    with store_call(session, 'Hand-off code lookup'):
        candidates = session.execute(
            select(HandoffCode)
            .where(HandoffCode.code == normalized)
            .execution_options(populate_existing=True)
        ).scalars().all()
    if not candidates:
        return HandoffOutcome.reject(Rejection.NOT_FOUND, code=normalized)
    here = [c for c in candidates if c.relay_point_id == str(relay_point_id)]
    if not here:
        return HandoffOutcome.reject(Rejection.RELAY_MISMATCH, code=normalized)
    # Same code at the same relay only happens on a random collision; prefer the live one
    record = max(here, key=lambda c: (not c.is_used, c.created_at_ms, c.id))
    ref = {'repair_id': record.repair_id, 'code': normalized, 'code_id': record.id}
    if is_expired(record.created_at_ms, now):
        return HandoffOutcome.reject(Rejection.EXPIRED, **ref)
    if record.is_used:
        return HandoffOutcome.reject(Rejection.ALREADY_USED, **ref)
    return HandoffOutcome(accepted=True, **ref)


def mark_code_as_used(code_id: int, *, session=None) -> bool:
    """Consume a code with a single conditional update.

    Returns True only for the caller whose update flipped the flag; a concurrent
    redeemer that lost the race gets False. Does not commit.
    """
    session = resolve_session(session)
    with store_call(session, 'Hand-off code consume'):
        result = session.execute(
            update(HandoffCode)
            .where(HandoffCode.id == code_id, HandoffCode.is_used.is_(False))
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
    return result.rowcount == 1

__all__ = ['Rejection', 'HandoffOutcome', 'is_expired', 'validate_token', 'validate_code', 'mark_code_as_used']
