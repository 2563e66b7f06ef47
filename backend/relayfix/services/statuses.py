from __future__ import annotations
from sqlalchemy import select
from relayfix.models.repair_status import RepairStatus, STATUS_ROWS
from relayfix.services.persistence import resolve_session, store_call


def ensure_repair_statuses(session=None) -> int:
    """Insert missing status rows (idempotent). Returns how many were created.

    Existing rows keep their presentation fields; ids and codes are fixed.
    """
    session = resolve_session(session)
    with store_call(session, 'Status seed'):
        existing = {s.id for s in session.execute(select(RepairStatus)).scalars()}
        created = 0
        for sid, code, label, description, color in STATUS_ROWS:
            if sid not in existing:
                session.add(RepairStatus(id=sid, code=code, label=label, description=description, color=color))
                created += 1
        session.flush()
    return created
