from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select, func, or_
from relayfix.decorators.auth import require_permissions
from relayfix.decorators.audit import audit_log
from relayfix.config.pagination import normalize_pagination, page_meta
from relayfix.services.policy import assert_repair_access, current_role, ROLE_CLIENT, ROLE_RELAY
from relayfix.services.lifecycle import get_repair, transition, status_code_of, allowed_targets
from relayfix.services.notifications import notify_transition
from relayfix import get_db, get_dispatcher
from relayfix.models.repair_request import RepairRequest
from relayfix.models.repair_status import RepairStatus, STATUS_IDS
from relayfix.utils.responses import rejection_response
from relayfix.utils.validation import require_fields, optional_int

rpr_bp = Blueprint('repairs', __name__)

# Stages staff move through by hand; hand-off edges and cancellation have their own endpoints
STAFF_TARGETS = {RepairStatus.DIAGNOSED, RepairStatus.IN_REPAIR, RepairStatus.REPAIRED}


@rpr_bp.get('/statuses')
@require_permissions('RPR.READ')
def list_statuses():
    session = get_db()
    rows = session.execute(select(RepairStatus).order_by(RepairStatus.id)).scalars().all()
    return {'data': [
        {'id': s.id, 'code': s.code, 'label': s.label, 'description': s.description, 'color': s.color,
         'next': allowed_targets(s.code)}
        for s in rows
    ]}


@rpr_bp.get('/requests')
@require_permissions('RPR.READ')
def list_requests():
    session = get_db()
    claims = get_jwt()
    q = select(RepairRequest)
    role = current_role()
    if role == ROLE_CLIENT:
        q = q.where(RepairRequest.client_id == str(get_jwt_identity()))
    elif role == ROLE_RELAY:
        relay_id = claims.get('relay_point_id')
        q = q.where(or_(RepairRequest.drop_off_relay_id == relay_id, RepairRequest.pickup_relay_id == relay_id))
    relay_filter = request.args.get('relay_point_id')
    if relay_filter:
        q = q.where(or_(RepairRequest.drop_off_relay_id == relay_filter, RepairRequest.pickup_relay_id == relay_filter))
    client_filter = request.args.get('client_id')
    if client_filter:
        q = q.where(RepairRequest.client_id == client_filter)
    status = request.args.get('status')
    if status:
        if status not in STATUS_IDS:
            abort(400, description='status invalid')
        q = q.where(RepairRequest.status_id == STATUS_IDS[status])
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = session.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = session.execute(
        q.order_by(RepairRequest.updated_at.desc(), RepairRequest.id.desc()).offset(offset).limit(limit)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return {
        'data': [_repair_json(r) for r in rows],
        'pagination': page_meta(total, limit, offset, len(rows)),
    }


@rpr_bp.post('/requests')
@require_permissions('RPR.CREATE')
@audit_log('RPR.REQUEST.CREATE', entity='RepairRequest', entity_id_key='id', meta_keys=['status', 'device_type', 'drop_off_relay_id'])
def create_request():
    session = get_db()
    data = request.json or {}
    require_fields(data, ['device_type', 'problem_description'])
    if current_role() == ROLE_CLIENT:
        client_id = str(get_jwt_identity())
    else:
        require_fields(data, ['client_id'])
        client_id = str(data['client_id'])
    repair = RepairRequest(
        client_id=client_id,
        device_type=data['device_type'],
        brand=data.get('brand'),
        model=data.get('model'),
        problem_description=data['problem_description'],
        status_id=STATUS_IDS[RepairStatus.SUBMITTED],
        drop_off_relay_id=data.get('drop_off_relay_id'),
        notes=data.get('notes'),
    )
    session.add(repair)
    session.commit()
    return _repair_json(repair), 201


@rpr_bp.get('/requests/<int:repair_id>')
@require_permissions('RPR.READ')
def get_request(repair_id: int):
    repair = get_repair(repair_id)
    if not repair:
        abort(404)
    assert_repair_access(repair)
    return _repair_json(repair)


@rpr_bp.post('/requests/<int:repair_id>/transition')
@require_permissions('RPR.MANAGE')
@audit_log('RPR.REQUEST.TRANSITION', entity='RepairRequest', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_repair(kw.get('repair_id')), meta_keys=['status'])
def transition_request(repair_id: int):
    data = request.json or {}
    target = data.get('status')
    if target not in STAFF_TARGETS:
        abort(400, description=f"status must be one of {', '.join(sorted(STAFF_TARGETS))}")
    changes = {k: data[k] for k in ('pre_diagnosis', 'notes') if k in data}
    cost = optional_int(data, 'estimated_cost_cents')
    if cost is not None:
        changes['estimated_cost_cents'] = cost
    if target == RepairStatus.DIAGNOSED:
        changes.setdefault('technician_id', str(get_jwt_identity()))
    return _apply_transition(repair_id, target, changes)


@rpr_bp.post('/requests/<int:repair_id>/ready')
@require_permissions('RPR.MANAGE')
@audit_log('RPR.REQUEST.READY', entity='RepairRequest', entity_id_key='id', diff_keys=['status', 'pickup_relay_id'], pre_fetch=lambda a, kw: _prefetch_repair(kw.get('repair_id')), meta_keys=['status', 'pickup_relay_id'])
def mark_ready(repair_id: int):
    data = request.json or {}
    require_fields(data, ['pickup_relay_id'])
    return _apply_transition(repair_id, RepairStatus.READY_FOR_PICKUP, {'pickup_relay_id': str(data['pickup_relay_id'])})


@rpr_bp.post('/requests/<int:repair_id>/cancel')
@require_permissions('RPR.CANCEL')
@audit_log('RPR.REQUEST.CANCEL', entity='RepairRequest', entity_id_key='id', diff_keys=['status'], pre_fetch=lambda a, kw: _prefetch_repair(kw.get('repair_id')), meta_keys=['status'])
def cancel_request(repair_id: int):
    data = request.json or {}
    changes = {'notes': data['reason']} if data.get('reason') else None
    return _apply_transition(repair_id, RepairStatus.CANCELLED, changes)


def _apply_transition(repair_id: int, target: str, changes=None):
    repair = get_repair(repair_id)
    if not repair:
        abort(404)
    assert_repair_access(repair)
    outcome = transition(repair_id, target, changes=changes)
    if not outcome.accepted:
        return rejection_response(outcome.rejection, outcome.detail, current_status=outcome.from_status)
    repair = get_repair(repair_id)
    relay_id = repair.pickup_relay_id if target == RepairStatus.READY_FOR_PICKUP else None
    notify_transition(get_dispatcher(), repair, target, relay_id)
    return _repair_json(repair)


def _iso(dt):
    return dt.isoformat() if dt is not None else None


def _repair_json(r: RepairRequest):
    status = status_code_of(r)
    return {
        'id': r.id,
        'client_id': r.client_id,
        'device_type': r.device_type,
        'brand': r.brand,
        'model': r.model,
        'problem_description': r.problem_description,
        'status': status,
        'status_id': r.status_id,
        'next_statuses': allowed_targets(status),
        'pre_diagnosis': r.pre_diagnosis,
        'estimated_cost_cents': r.estimated_cost_cents,
        'technician_id': r.technician_id,
        'drop_off_relay_id': r.drop_off_relay_id,
        'pickup_relay_id': r.pickup_relay_id,
        'notes': r.notes,
        'created_at': _iso(r.created_at),
        'updated_at': _iso(r.updated_at),
    }


def _prefetch_repair(repair_id: int):
    r = get_repair(repair_id)
    if not r:
        return {}
    return {'status': status_code_of(r), 'pickup_relay_id': r.pickup_relay_id}
