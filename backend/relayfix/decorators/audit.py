from __future__ import annotations
"""Audit logging decorator for mutating route handlers.

Usage examples:

@audit_log('RPR.REQUEST.CREATE', entity='RepairRequest', entity_id_key='id', meta_keys=['status'])
def create_request():
    ... return {'id': repair.id, 'status': 'SUBMITTED'}, 201

@audit_log('RPR.REQUEST.CANCEL', entity='RepairRequest', entity_id_arg='repair_id',
           diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch(kw.get('repair_id')))
def cancel_request(repair_id): ...

Parameters:
  action: required audit action code (e.g. HANDOFF.CODE.REDEEM)
  entity: optional entity label (RepairRequest, HandoffCode)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict.
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
  diff_keys / pre_fetch: snapshot taken before the handler runs; changed keys land in meta['changes'].
  statuses: only responses whose HTTP status is in this set are audited (default: < 400 only).

Return handling:
  Flask view functions return dict, (dict, status) or (dict, status, headers).
  The first element is inspected; the original return value is passed through.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from relayfix.services.audit import add_audit
from relayfix import get_db


def _extract_payload(rv: Any):
    """Return (data, status) for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
    statuses: Optional[Iterable[int]] = None,
):
    audited = set(statuses) if statuses is not None else None

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            skip = status >= 400 if audited is None else status not in audited
            if skip:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and data.get(entity_id_key) is not None:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            else:
                meta = {}
            if diff_keys and isinstance(before_snapshot, dict):
                changes = {
                    k: {'before': before_snapshot.get(k), 'after': data.get(k)}
                    for k in diff_keys
                    if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k)
                }
                if changes:
                    meta['changes'] = changes
            add_audit(action, entity, entity_id, meta)
            session = get_db()
            try:
                session.commit()
            except SQLAlchemyError:
                # audited action is already committed
                session.rollback()
                current_app.logger.exception('Audit write failed for %s', action)
            return rv
        return wrapper
    return outer
