"""
Concurrency tests: BEGIN IMMEDIATE must serialize bets, locks and finalize
so limits hold and nothing is counted or paid twice.
"""

from concurrent.futures import ThreadPoolExecutor

from services.errors import EventNotOpenError, LimitExceededError, StateConflictError
from tests.conftest import OPERATOR_ID


def _attempt(fn):
    try:
        return fn()
    except (LimitExceededError, EventNotOpenError) as exc:
        return exc


def test_parallel_bets_respect_user_limit(bet_repository, event_repository, open_event):
    def place():
        return bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=50)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: _attempt(place), range(8)))

    placed = [r for r in results if isinstance(r, dict)]
    rejected = [r for r in results if isinstance(r, LimitExceededError)]
    assert len(placed) == 2
    assert len(rejected) == 6
    assert event_repository.get_event(open_event)["total_bets_amount"] == 100


def test_bets_racing_lock_keep_pot_consistent(bet_repository, event_repository, open_event):
    def place(user_id):
        return _attempt(
            lambda: bet_repository.place_bet_atomic(open_event, user_id=user_id, choice_index=user_id % 2, amount=20)
        )

    def lock():
        return event_repository.transition_status(open_event, {"open"}, "locked", OPERATOR_ID, "lock")

    with ThreadPoolExecutor(max_workers=8) as pool:
        bet_futures = [pool.submit(place, user_id) for user_id in range(1, 11)]
        lock_future = pool.submit(lock)
        bet_futures += [pool.submit(place, user_id) for user_id in range(11, 21)]
        results = [future.result() for future in bet_futures]
        lock_future.result()

    placed = [r for r in results if isinstance(r, dict)]
    report = bet_repository.recompute_totals(open_event)
    assert report["consistent"] is True
    assert report["actual_amount"] == 20 * len(placed)
    assert event_repository.get_event(open_event)["status"] == "locked"


def test_parallel_finalize_pays_once(bet_repository, event_repository, settlement_repository, payout_repository, open_event):
    bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=400)
    bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=1, amount=600)
    event_repository.transition_status(open_event, {"open"}, "locked", OPERATOR_ID, "lock")

    with ThreadPoolExecutor(max_workers=5) as pool:
        summaries = list(pool.map(lambda _: settlement_repository.finalize(open_event, OPERATOR_ID, 0), range(5)))

    assert sum(1 for s in summaries if not s["already_finalized"]) == 1
    assert len({s["total_payout"] for s in summaries}) == 1
    assert len(payout_repository.list_payouts(open_event)) == 1


def test_parallel_cancel_refunds_once(bet_repository, event_repository, open_event):
    for user_id in range(1, 4):
        bet_repository.place_bet_atomic(open_event, user_id=user_id, choice_index=0, amount=100)

    def cancel():
        try:
            return event_repository.cancel_event(open_event, OPERATOR_ID)
        except StateConflictError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(lambda _: cancel(), range(4)))

    winners = [o for o in outcomes if isinstance(o, dict)]
    assert len(winners) == 1
    assert winners[0]["refunded_amount"] == 300
    assert sum(isinstance(o, StateConflictError) for o in outcomes) == 3
