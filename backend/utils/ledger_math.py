"""
Balance arithmetic for ledger periods.

Pure functions only; every amount is handled as `Decimal`.
"""
from decimal import Decimal
from typing import Optional

import ledger_settings

PAID = "paid"
UNPAID = "unpaid"


def to_decimal(value) -> Decimal:
    """Normalize a DB/aggregate value (None, int, str, Decimal) to Decimal."""
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # floats only come from drivers without native decimals; go through str
        return Decimal(str(value))
    return Decimal(value)


def compute_closing_balance(opening, increase, payment, return_amount, adjustment) -> Decimal:
    """closing = opening + increase - payment - return - adjustment"""
    return (
        to_decimal(opening)
        + to_decimal(increase)
        - to_decimal(payment)
        - to_decimal(return_amount)
        - to_decimal(adjustment)
    )


def classify_status(closing_balance, threshold: Optional[Decimal] = None) -> str:
    # A small positive remainder is rounding noise, not debt
    if threshold is None:
        threshold = ledger_settings.PAID_THRESHOLD
    return PAID if to_decimal(closing_balance) <= threshold else UNPAID


def within_tolerance(a, b, tolerance: Optional[Decimal] = None) -> bool:
    if tolerance is None:
        tolerance = ledger_settings.BALANCE_TOLERANCE
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance
