"""
Tests for the bet ledger: placement validation, per-user limits and pot bookkeeping.
"""

import pytest

from services.errors import (
    AlreadyFinalizedError,
    EventLockedError,
    EventNotOpenError,
    LimitExceededError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from tests.conftest import OPERATOR_ID, TEST_GUILD_ID, create_open_event


def _event(event_repository, event_id):
    return event_repository.get_event(event_id)


class TestPlaceBet:
    def test_place_bet_updates_pot(self, bet_repository, event_repository, open_event):
        result = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

        assert result["choice_name"] == "Red"
        assert result["pot"] == 100
        assert result["active_bets"] == 1
        event = _event(event_repository, open_event)
        assert event["total_bets_amount"] == 100
        assert event["total_bets_count"] == 1

    def test_odds_reflect_bet_just_placed(self, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=300)
        result = bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=1, amount=100)

        # pot 400, Blue holds 100
        assert result["odds"] == 4.0

    def test_unknown_event(self, bet_repository):
        with pytest.raises(NotFoundError):
            bet_repository.place_bet_atomic(9999, user_id=1, choice_index=0, amount=100)

    def test_pending_event_is_not_open(self, bet_repository, event_repository):
        event_id = event_repository.create_event(
            guild_id=TEST_GUILD_ID,
            name="Pending Fight",
            event_type="boxing",
            choices=["Red", "Blue"],
            min_bet=10,
            max_bet=1000,
            limit_per_user=2,
            fee_percent=5,
            created_by=OPERATOR_ID,
        )

        with pytest.raises(EventNotOpenError) as exc_info:
            bet_repository.place_bet_atomic(event_id, user_id=1, choice_index=0, amount=100)
        assert not isinstance(exc_info.value, EventLockedError)

    def test_locked_event_rejects_with_locked_error(self, bet_repository, event_repository, open_event):
        event_repository.transition_status(open_event, {"open"}, "locked", OPERATOR_ID, "lock")

        with pytest.raises(EventLockedError):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

    def test_paused_event_is_not_open(self, bet_repository, event_repository, open_event):
        event_repository.transition_status(open_event, {"open"}, "paused", OPERATOR_ID, "pause")

        with pytest.raises(EventNotOpenError):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

    @pytest.mark.parametrize("amount", [10.5, "100", True, None])
    def test_amount_must_be_whole_number(self, bet_repository, open_event, amount):
        with pytest.raises(ValidationError, match="whole number"):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=amount)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, bet_repository, open_event, amount):
        with pytest.raises(ValidationError, match="positive"):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=amount)

    def test_amount_bounds(self, bet_repository, open_event):
        with pytest.raises(LimitExceededError, match="Minimum bet is 10"):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=9)
        with pytest.raises(LimitExceededError, match="Maximum bet is 1000"):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=1001)

    def test_bounds_are_inclusive(self, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=10)
        bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=0, amount=1000)

    @pytest.mark.parametrize("choice_index", [-1, 2, 99])
    def test_choice_out_of_range(self, bet_repository, open_event, choice_index):
        with pytest.raises(ValidationError, match="Invalid choice"):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=choice_index, amount=100)

    def test_per_user_limit(self, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=1, amount=100)

        with pytest.raises(LimitExceededError, match="limit 2"):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

        # Other users are unaffected
        bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=0, amount=100)

    def test_cancelled_bet_frees_a_slot(self, bet_repository, open_event):
        first = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.cancel_bet(first["bet_id"], actor_id=1)

        result = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        assert result["active_bets"] == 2


class TestValidationOrder:
    def test_state_checked_before_amount(self, bet_repository, event_repository, open_event):
        event_repository.transition_status(open_event, {"open"}, "locked", OPERATOR_ID, "lock")

        with pytest.raises(EventLockedError):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=99, amount=0)

    def test_amount_checked_before_choice(self, bet_repository, open_event):
        with pytest.raises(LimitExceededError):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=99, amount=5)

    def test_choice_checked_before_user_limit(self, bet_repository, open_event):
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)

        with pytest.raises(ValidationError):
            bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=5, amount=100)


class TestSuspiciousFlag:
    def test_large_bet_is_flagged(self, bet_repository, open_event):
        result = bet_repository.place_bet_atomic(
            open_event, user_id=1, choice_index=0, amount=500, suspicious_threshold=500
        )

        assert result["suspicious"] is True
        assert '"suspicious": true' in bet_repository.get_bet(result["bet_id"])["meta"]

    def test_small_bet_is_not_flagged(self, bet_repository, open_event):
        result = bet_repository.place_bet_atomic(
            open_event, user_id=1, choice_index=0, amount=499, suspicious_threshold=500
        )

        assert result["suspicious"] is False
        assert bet_repository.get_bet(result["bet_id"])["meta"] is None


class TestCancelBet:
    def test_cancel_removes_stake_from_pot(self, bet_repository, event_repository, open_event):
        kept = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        dropped = bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=1, amount=250)

        cancelled = bet_repository.cancel_bet(dropped["bet_id"], actor_id=OPERATOR_ID, reason="duplicate")

        assert cancelled["status"] == "cancelled"
        assert cancelled["cancelled_by"] == OPERATOR_ID
        event = _event(event_repository, open_event)
        assert event["total_bets_amount"] == kept["amount"]
        assert event["total_bets_count"] == 1
        assert bet_repository.get_choice_totals(open_event) == {0: {"amount": 100, "count": 1}}

    def test_cancel_twice_conflicts(self, bet_repository, open_event):
        bet = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.cancel_bet(bet["bet_id"], actor_id=1)

        with pytest.raises(StateConflictError, match="already cancelled"):
            bet_repository.cancel_bet(bet["bet_id"], actor_id=1)

    def test_cancel_unknown_bet(self, bet_repository):
        with pytest.raises(NotFoundError):
            bet_repository.cancel_bet(4242, actor_id=1)

    def test_cancel_allowed_while_locked(self, bet_repository, event_repository, open_event):
        bet = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        event_repository.transition_status(open_event, {"open"}, "locked", OPERATOR_ID, "lock")

        assert bet_repository.cancel_bet(bet["bet_id"], actor_id=OPERATOR_ID)["status"] == "cancelled"

    def test_cancel_on_cancelled_event_conflicts(self, bet_repository, event_repository, open_event):
        bet = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        event_repository.cancel_event(open_event, OPERATOR_ID)

        with pytest.raises(StateConflictError):
            bet_repository.cancel_bet(bet["bet_id"], actor_id=OPERATOR_ID)

    def test_cancel_after_finalize_refused(self, bet_repository, event_repository, settlement_repository, open_event):
        bet = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        event_repository.transition_status(open_event, {"open"}, "locked", OPERATOR_ID, "lock")
        settlement_repository.finalize(open_event, OPERATOR_ID, winning_choice=0)

        with pytest.raises(AlreadyFinalizedError):
            bet_repository.cancel_bet(bet["bet_id"], actor_id=OPERATOR_ID)

    def test_cancel_is_audited(self, bet_repository, audit_log_repository, open_event):
        bet = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.cancel_bet(bet["bet_id"], actor_id=OPERATOR_ID, reason="typo")

        entry = audit_log_repository.get_event_log(open_event)[-1]
        assert entry["action"] == "cancel_bet"
        assert entry["details"]["reason"] == "typo"
        assert entry["details"]["amount"] == 100


class TestPotConsistency:
    def test_totals_consistent_through_lifecycle(self, bet_repository, event_repository, settlement_repository):
        event_id = create_open_event(event_repository, choices=("A", "B", "C"))
        bets = [
            bet_repository.place_bet_atomic(event_id, user_id=user, choice_index=user % 3, amount=10 * user)
            for user in range(1, 7)
        ]
        bet_repository.cancel_bet(bets[0]["bet_id"], actor_id=OPERATOR_ID)
        assert bet_repository.recompute_totals(event_id)["consistent"] is True

        event_repository.transition_status(event_id, {"open"}, "locked", OPERATOR_ID, "lock")
        settlement_repository.finalize(event_id, OPERATOR_ID, winning_choice=2)

        report = bet_repository.recompute_totals(event_id)
        assert report["consistent"] is True
        assert report["actual_amount"] == sum(bet["amount"] for bet in bets[1:])

    def test_listing_filters(self, bet_repository, open_event):
        first = bet_repository.place_bet_atomic(open_event, user_id=1, choice_index=0, amount=100)
        bet_repository.place_bet_atomic(open_event, user_id=2, choice_index=1, amount=100)
        bet_repository.cancel_bet(first["bet_id"], actor_id=1)

        assert len(bet_repository.list_by_event(open_event)) == 2
        assert len(bet_repository.list_by_event(open_event, ["active"])) == 1
        assert bet_repository.list_by_choice(open_event, 0, ["active"]) == []
        assert [b["user_id"] for b in bet_repository.get_user_bets(open_event, 1)] == [1]

        with pytest.raises(ValueError):
            bet_repository.list_by_event(open_event, ["bogus"])
