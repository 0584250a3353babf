"""
Domain services - pure business logic with no side effects.
"""

from domain.services.payout_calculator import (
    PayoutLine,
    SettlementResult,
    calculate_choice_odds,
    calculate_odds,
    calculate_payouts,
)

__all__ = [
    "PayoutLine",
    "SettlementResult",
    "calculate_choice_odds",
    "calculate_odds",
    "calculate_payouts",
]
