"""Hand-off desk: validate, consume, move the repair and notify."""
import threading
import pytest
from relayfix.config.handoff import CODE_TTL_MS
from relayfix.services import handoffs
from relayfix.services.code_issuer import issue_handoff_code
from relayfix.services.handoffs import complete_handoff, handoff_relay_for, redeem_code, redeem_token
from relayfix.services.handoff_validator import Rejection, validate_code
from relayfix.services.lifecycle import TransitionOutcome, get_repair, status_code_of
from relayfix.services.notifications import NotificationDispatcher
from tests.test_utils_seed import HANDOFF_T0, create_repair, force_status, new_id, code_row, stored_status, unissued_code

T0 = 1_700_000_000_000
HOUR = 3_600_000


class ListSink:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture()
def sink():
    return ListSink()


@pytest.fixture()
def desk(sink):
    return NotificationDispatcher(sink)


def test_drop_off_by_token_then_reuse(db_session, codec, desk, sink):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)

    outcome = redeem_token(issued.token, relay, now=T0 + HOUR, codec=codec, dispatcher=desk, session=db_session)
    assert outcome.accepted
    assert outcome.status == 'RECEIVED'
    assert stored_status(repair.id) == 'RECEIVED'
    assert code_row(issued.record_id).is_used is True
    desk.drain()
    assert {e.recipient_id for e in sink.events} == {repair.client_id, relay}

    again = redeem_token(issued.token, relay, now=T0 + 2 * HOUR, codec=codec, dispatcher=desk, session=db_session)
    assert again.rejection == Rejection.ALREADY_USED
    assert again.reason == 'already used'
    assert stored_status(repair.id) == 'RECEIVED'


def test_drop_off_by_typed_code(db_session, codec, desk):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)
    outcome = redeem_code(issued.code.lower(), relay, now=T0 + HOUR, dispatcher=desk, session=db_session)
    assert outcome.accepted and outcome.status == 'RECEIVED'
    assert redeem_code(issued.code, relay, now=T0 + HOUR, dispatcher=desk, session=db_session).rejection == Rejection.ALREADY_USED


def test_never_issued_code_changes_nothing(db_session, desk, sink):
    outcome = redeem_code(unissued_code(), new_id('rp'), now=T0, dispatcher=desk, session=db_session)
    assert outcome.rejection == Rejection.NOT_FOUND
    desk.drain()
    assert sink.events == []


def test_wrong_relay_leaves_code_usable(db_session, codec, desk):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)
    outcome = redeem_token(issued.token, new_id('rp'), now=T0, codec=codec, dispatcher=desk, session=db_session)
    assert outcome.rejection == Rejection.RELAY_MISMATCH
    assert code_row(issued.record_id).is_used is False
    assert stored_status(repair.id) == 'SUBMITTED'


def test_expired_code_is_not_consumed(db_session, codec, desk):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)
    outcome = redeem_code(issued.code, relay, now=T0 + CODE_TTL_MS + 1, dispatcher=desk, session=db_session)
    assert outcome.rejection == Rejection.EXPIRED
    assert code_row(issued.record_id).is_used is False


def test_pickup_delivers_repair(db_session, codec, desk):
    pickup = new_id('rp')
    repair = create_repair(drop_off_relay_id=new_id('rp'), pickup_relay_id=pickup, status='READY_FOR_PICKUP')
    assert handoff_relay_for(repair) == pickup
    issued = issue_handoff_code(repair.id, pickup, repair.client_id, now=T0, codec=codec, session=db_session)
    outcome = redeem_token(issued.token, pickup, now=T0 + 5, codec=codec, dispatcher=desk, session=db_session)
    assert outcome.accepted and outcome.status == 'DELIVERED'
    assert stored_status(repair.id) == 'DELIVERED'


def test_code_for_repair_not_awaiting_handoff_stays_unused(db_session, codec, desk):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)
    force_status(repair.id, 'IN_REPAIR')
    outcome = redeem_code(issued.code, relay, now=T0, dispatcher=desk, session=db_session)
    assert outcome.rejection == Rejection.ILLEGAL_TRANSITION
    assert code_row(issued.record_id).is_used is False
    assert stored_status(repair.id) == 'IN_REPAIR'


def test_older_drop_off_code_is_moot_after_drop_off(db_session, codec, desk):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    older = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)
    newer = issue_handoff_code(repair.id, relay, repair.client_id, now=T0 + 1, codec=codec, session=db_session)
    assert redeem_code(newer.code, relay, now=T0 + 2, dispatcher=desk, session=db_session).accepted
    outcome = redeem_code(older.code, relay, now=T0 + 3, dispatcher=desk, session=db_session)
    assert outcome.rejection == Rejection.ILLEGAL_TRANSITION
    assert code_row(older.record_id).is_used is False


def test_failed_transition_rolls_back_consumption(db_session, codec, desk, monkeypatch):
    relay = new_id('rp')
    repair = create_repair(drop_off_relay_id=relay)
    issued = issue_handoff_code(repair.id, relay, repair.client_id, now=T0, codec=codec, session=db_session)

    def lost_race(repair_id, target, **kwargs):
        return TransitionOutcome(False, repair_id, 'SUBMITTED', target, 'ILLEGAL_TRANSITION', 'changed concurrently')

    monkeypatch.setattr(handoffs, 'transition', lost_race)
    outcome = redeem_code(issued.code, relay, now=T0, dispatcher=desk, session=db_session)
    assert outcome.rejection == Rejection.ILLEGAL_TRANSITION
    assert code_row(issued.record_id).is_used is False
    assert stored_status(repair.id) == 'SUBMITTED'


def test_rejected_outcome_passes_through(desk):
    from relayfix.services.handoff_validator import HandoffOutcome
    rejected = HandoffOutcome.reject(Rejection.MALFORMED_TOKEN)
    assert complete_handoff(rejected, 'rp-x', dispatcher=desk) is rejected


# ---------- Two terminals redeeming the same code ---------- #

def test_second_validated_redeemer_gets_already_used(file_sessions, desk, sink):
    factory, relay, issued = file_sessions
    first, second = factory(), factory()
    try:
        a = validate_code(issued.code, relay, now=HANDOFF_T0, session=first)
        b = validate_code(issued.code, relay, now=HANDOFF_T0, session=second)
        assert a.accepted and b.accepted

        won = complete_handoff(a, relay, dispatcher=desk, session=first)
        assert won.accepted and won.status == 'RECEIVED'
        lost = complete_handoff(b, relay, dispatcher=desk, session=second)
        assert lost.rejection == Rejection.ALREADY_USED
        assert lost.reason == 'already used'

        assert status_code_of(get_repair(a.repair_id, session=second)) == 'RECEIVED'
        desk.drain()
        # only the winning hand-off notified anyone
        assert [e.recipient_id for e in sink.events].count(relay) == 1
    finally:
        first.close(); second.close()


def test_parallel_full_redemptions_one_success(file_sessions, desk):
    factory, relay, issued = file_sessions
    barrier = threading.Barrier(4)
    outcomes = []
    lock = threading.Lock()

    def redeem():
        session = factory()
        try:
            validated = validate_code(issued.code, relay, now=HANDOFF_T0, session=session)
            barrier.wait()
            outcome = complete_handoff(validated, relay, dispatcher=desk, session=session)
            with lock:
                outcomes.append(outcome)
        finally:
            session.close()

    threads = [threading.Thread(target=redeem) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)
    assert len(outcomes) == 4
    assert sum(1 for o in outcomes if o.accepted) == 1
    assert sorted(o.rejection for o in outcomes if not o.accepted) == [Rejection.ALREADY_USED] * 3
