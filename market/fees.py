"""Operator fee calculation.

Fees are expressed in basis points (10000 = 100%) and always rounded down, so
the operator never receives more than its rate and ``fee + remainder`` always
equals the settled amount.
"""
from typing import NamedTuple

from .errors import InvalidParameterError

BASIS_POINTS = 10000
DEFAULT_FEE_BPS = 1250  # 12.5%


class FeeSplit(NamedTuple):
    """Result of splitting a settlement amount."""
    amount: int
    fee: int
    remainder: int


class FeeCalculator:
    """Splits amounts into operator fee and remainder at a fixed rate."""

    def __init__(self, rate_bps: int = DEFAULT_FEE_BPS) -> None:
        if not isinstance(rate_bps, int) or isinstance(rate_bps, bool):
            raise InvalidParameterError(f"Fee rate must be an integer, got {rate_bps!r}")
        if rate_bps < 0 or rate_bps > BASIS_POINTS:
            raise InvalidParameterError(
                f"Fee rate must be between 0 and {BASIS_POINTS} basis points, got {rate_bps}"
            )
        self.rate_bps = rate_bps

    def split(self, amount: int) -> FeeSplit:
        """Split ``amount`` into ``(fee, remainder)``.

        Args:
            amount: Settlement amount in the smallest currency unit

        Returns:
            FeeSplit with ``fee = amount * rate // 10000``

        Raises:
            InvalidParameterError: If amount is negative
        """
        if amount < 0:
            raise InvalidParameterError(f"Cannot split a negative amount: {amount}")
        fee = amount * self.rate_bps // BASIS_POINTS
        return FeeSplit(amount=amount, fee=fee, remainder=amount - fee)

    def __repr__(self) -> str:
        return f"FeeCalculator(rate_bps={self.rate_bps})"
