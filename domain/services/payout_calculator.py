"""
Pari-mutuel payout calculation.

Pure functions only: no database access, no Discord. Winners split the whole
pot in proportion to their stake; each gross share is floored, then a
percentage fee is floored off the gross. Flooring per bet guarantees that
the sum of net payouts plus fees never exceeds the pot. Whatever is left over
(the residual) stays undistributed.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Any

_ONE = Decimal(1)
_HUNDRED = Decimal(100)
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PayoutLine:
    """Computed payout for one winning bet."""

    bet_id: int
    user_id: int
    stake: int
    gross: int
    fee: int
    net: int

    def to_dict(self) -> dict[str, int]:
        return {
            "bet_id": self.bet_id,
            "user_id": self.user_id,
            "stake": self.stake,
            "gross": self.gross,
            "fee": self.fee,
            "net": self.net,
        }


@dataclass(frozen=True)
class SettlementResult:
    pot: int
    fee_percent: int
    total_winning_amount: int
    lines: tuple[PayoutLine, ...]

    @property
    def no_winners(self) -> bool:
        return not self.lines

    @property
    def total_payout(self) -> int:
        return sum(line.net for line in self.lines)

    @property
    def total_fee(self) -> int:
        return sum(line.fee for line in self.lines)

    @property
    def residual(self) -> int:
        return self.pot - self.total_payout - self.total_fee


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_payouts(
    pot: int,
    winning_bets: Iterable[Mapping[str, Any]],
    fee_percent: int,
) -> SettlementResult:
    """
    Split ``pot`` across ``winning_bets`` (mappings with bet_id, user_id, amount).

    An empty winner set yields a result with no lines. Raises ValueError on
    inputs that would make the split meaningless (negative pot, fee outside
    0-100, non-positive winning total with winners present) or if the computed
    payouts would exceed the pot.
    """
    if pot < 0:
        raise ValueError(f"Pot cannot be negative: {pot}")
    if fee_percent < 0 or fee_percent > 100:
        raise ValueError(f"Fee percent must be between 0 and 100: {fee_percent}")

    winners = list(winning_bets)
    total_winning = sum(int(bet["amount"]) for bet in winners)
    if not winners:
        return SettlementResult(pot=pot, fee_percent=fee_percent, total_winning_amount=0, lines=())
    if total_winning <= 0:
        raise ValueError("Winning bets have no stake to divide the pot by")

    ratio = Decimal(pot) / Decimal(total_winning)
    fee_rate = Decimal(fee_percent) / _HUNDRED

    lines = []
    for bet in winners:
        stake = int(bet["amount"])
        # amount * pot / total computed before dividing keeps the floor exact
        gross = _floor(Decimal(stake) * Decimal(pot) / Decimal(total_winning))
        fee = _floor(Decimal(gross) * fee_rate)
        lines.append(
            PayoutLine(
                bet_id=bet["bet_id"],
                user_id=bet["user_id"],
                stake=stake,
                gross=gross,
                fee=fee,
                net=gross - fee,
            )
        )

    result = SettlementResult(
        pot=pot,
        fee_percent=fee_percent,
        total_winning_amount=total_winning,
        lines=tuple(lines),
    )
    if result.residual < 0:
        raise ValueError(f"Payouts exceed pot (ratio {ratio}): residual {result.residual}")
    return result


def calculate_odds(pot: int, choice_total: int) -> float | None:
    """
    Decimal odds for a choice: what one unit staked on it would return gross.

    None when nothing is staked on the choice yet.
    """
    if choice_total <= 0:
        return None
    odds = (Decimal(pot) / Decimal(choice_total)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return float(max(odds, _ONE))


def calculate_choice_odds(choices: list[str], totals: Mapping[int, Mapping[str, int]]) -> list[dict]:
    """
    Odds and pot share for every choice.

    ``totals`` maps choice index to {"amount", "count"} for active bets.
    """
    pot = sum(entry["amount"] for entry in totals.values())
    rows = []
    for index, name in enumerate(choices):
        entry = totals.get(index, {"amount": 0, "count": 0})
        amount = entry["amount"]
        share = (
            float((Decimal(amount) * _HUNDRED / Decimal(pot)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
            if pot
            else 0.0
        )
        rows.append(
            {
                "choice_index": index,
                "choice": name,
                "amount": amount,
                "count": entry["count"],
                "odds": calculate_odds(pot, amount),
                "percentage": share,
            }
        )
    return rows
