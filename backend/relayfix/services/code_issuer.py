from __future__ import annotations
"""Issue hand-off codes and their QR tokens.

Each call mints an independent code; earlier unused codes for the same repair
and relay point are left alone (see DESIGN.md, open questions). Usability is
decided solely by the hand-off validator.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from relayfix.config.handoff import CODE_ALPHABET, CODE_LENGTH
from relayfix.models.handoff_code import HandoffCode
from relayfix.services.persistence import resolve_session, store_call
from relayfix.services.token_codec import HandoffPayload, HandoffTokenCodec
from relayfix.utils import clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedCode:
    code: str
    token: str
    issued_at: int
    record_id: int


def generate_code() -> str:
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def issue_handoff_code(repair_id: int, relay_point_id: str, client_id: str, now: Optional[int] = None, *,
                       codec: HandoffTokenCodec, session=None, commit: bool = True) -> IssuedCode:
    """Mint a code + token for one repair at one relay point and persist the code row.

    Raises PersistenceError when the insert fails; the caller decides whether to
    issue again.
    """
    session = resolve_session(session)
    issued_at = clock.now_ms() if now is None else int(now)
    code = generate_code()
    token = codec.encode(HandoffPayload(
        repair_id=int(repair_id),
        relay_point_id=str(relay_point_id),
        client_id=str(client_id),
        issued_at=issued_at,
        code=code,
    ))
    with store_call(session, 'Hand-off code insert'):
        record = HandoffCode(
            repair_id=int(repair_id),
            code=code,
            relay_point_id=str(relay_point_id),
            created_at_ms=issued_at,
            is_used=False,
        )
        session.add(record)
        if commit:
            session.commit()
        else:
            session.flush()
    logger.info('Issued hand-off code for repair %s at relay point %s', repair_id, relay_point_id)
    return IssuedCode(code=code, token=token, issued_at=issued_at, record_id=record.id)

__all__ = ['IssuedCode', 'generate_code', 'issue_handoff_code']
