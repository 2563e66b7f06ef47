from __future__ import annotations
from flask import Blueprint, request, abort
from relayfix.decorators.auth import require_permissions, relay_terminal
from relayfix.decorators.audit import audit_log
from relayfix.services.policy import assert_repair_access, assert_relay_access
from relayfix.services.lifecycle import get_repair, status_code_of
from relayfix.services.code_issuer import issue_handoff_code
from relayfix.services.handoffs import HANDOFF_EDGES, handoff_relay_for, redeem_code, redeem_token
from relayfix.models.repair_status import RepairStatus
from relayfix.config.handoff import CODE_TTL_MS
from relayfix.utils.responses import rejection_response
from relayfix import get_db, get_codec, get_dispatcher

handoff_bp = Blueprint('handoffs', __name__)

# Redemptions are audited whether accepted or rejected
REDEEM_AUDIT_STATUSES = {200, 400, 403, 404, 409, 410}


@handoff_bp.post('/repairs/<int:repair_id>/codes')
@require_permissions('HANDOFF.ISSUE')
@audit_log('HANDOFF.CODE.ISSUE', entity='RepairRequest', entity_id_arg='repair_id', meta_keys=['relay_point_id', 'kind', 'expires_at'])
def issue_code(repair_id: int):
    session = get_db()
    data = request.json or {}
    repair = get_repair(repair_id)
    if not repair:
        abort(404)
    assert_repair_access(repair)
    status = status_code_of(repair)
    if status not in HANDOFF_EDGES:
        return rejection_response('ILLEGAL_TRANSITION', f"repair is {status}; no hand-off pending", current_status=status)
    designated = handoff_relay_for(repair)
    requested = data.get('relay_point_id')
    if designated and requested and str(requested) != designated:
        return rejection_response('RELAY_MISMATCH', 'repair is routed through another relay point', current_status=status)
    relay_point_id = designated or (str(requested) if requested else None)
    if not relay_point_id:
        abort(400, description='relay_point_id required')
    assert_relay_access(relay_point_id)
    if not designated:
        # Drop-off relay chosen at first issue
        setattr(repair, HANDOFF_EDGES[status][1], relay_point_id)
    issued = issue_handoff_code(repair.id, relay_point_id, repair.client_id, codec=get_codec(), session=session)
    return {
        'repair_id': repair.id,
        'relay_point_id': relay_point_id,
        'kind': 'drop_off' if status == RepairStatus.SUBMITTED else 'pickup',
        'code': issued.code,
        'token': issued.token,
        'issued_at': issued.issued_at,
        'expires_at': issued.issued_at + CODE_TTL_MS,
    }, 201


@handoff_bp.post('/scan')
@require_permissions('HANDOFF.REDEEM')
@relay_terminal
@audit_log('HANDOFF.TOKEN.REDEEM', entity='RepairRequest', entity_id_key='repair_id', meta_keys=['relay_point_id', 'status', 'rejection'], statuses=REDEEM_AUDIT_STATUSES)
def scan_token(relay_point_id: str):
    data = request.json or {}
    token = data.get('token')
    if not token:
        abort(400, description='token required')
    outcome = redeem_token(token, relay_point_id, codec=get_codec(), dispatcher=get_dispatcher())
    return _outcome_response(outcome, relay_point_id)


@handoff_bp.post('/redeem')
@require_permissions('HANDOFF.REDEEM')
@relay_terminal
@audit_log('HANDOFF.CODE.REDEEM', entity='RepairRequest', entity_id_key='repair_id', meta_keys=['relay_point_id', 'status', 'rejection'], statuses=REDEEM_AUDIT_STATUSES)
def redeem_manual_code(relay_point_id: str):
    data = request.json or {}
    code = data.get('code')
    if not code:
        abort(400, description='code required')
    outcome = redeem_code(code, relay_point_id, dispatcher=get_dispatcher())
    return _outcome_response(outcome, relay_point_id)


def _outcome_response(outcome, relay_point_id: str):
    if not outcome.accepted:
        return rejection_response(outcome.rejection, outcome.reason, accepted=False, rejection=outcome.rejection,
                                  repair_id=outcome.repair_id, relay_point_id=relay_point_id)
    body = {
        'accepted': True,
        'repair_id': outcome.repair_id,
        'relay_point_id': relay_point_id,
        'status': outcome.status,
    }
    if outcome.client_id is not None:
        body['client_id'] = outcome.client_id
    return body
