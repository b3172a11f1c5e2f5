"""Exception taxonomy for marketplace operations.

Every operation raises one of these before any side effect takes place, except
``EscrowError`` which signals that an external custody or fund call failed
while an escrow transaction was being applied.
"""
from typing import Optional


class MarketError(Exception):
    """Base exception for marketplace operations."""
    pass


class NotFoundError(MarketError, LookupError):
    """Raised when an asset id is unknown to the market."""
    pass


class UnauthorizedError(MarketError):
    """Raised when the caller lacks the role an operation requires."""
    pass


class InvalidParameterError(MarketError, ValueError):
    """Raised for non-positive amounts, past deadlines and malformed input."""
    pass


class BidTooLowError(InvalidParameterError):
    """Raised when a bid does not beat the reserve or the locked bid."""
    def __init__(self, amount: int, required: int, message: str = "Bid too low"):
        self.amount = amount
        self.required = required
        super().__init__(f"{message}: offered {amount}, must exceed {required}")


class ConflictError(MarketError):
    """Raised when a listing is in the wrong lifecycle state."""
    pass


class DeadlineNotReachedError(ConflictError):
    """Raised when an auction is settled before its deadline."""
    pass


class DeadlinePassedError(MarketError):
    """Raised when an auction action arrives at or after its deadline."""
    pass


class InsufficientFundsError(MarketError):
    """Raised when a payer cannot cover a pull from the fungible ledger."""
    def __init__(
        self,
        account: str,
        requested: int,
        available: Optional[int] = None,
        currency: Optional[str] = None
    ):
        self.account = account
        self.requested = requested
        self.available = available
        self.currency = currency
        detail = f"available {available}, " if available is not None else ""
        super().__init__(
            f"Insufficient funds for {account}: {detail}requested {requested}"
            + (f" {currency}" if currency else "")
        )


class NotApprovedError(MarketError):
    """Raised when the marketplace lacks an allowance or custodian approval."""
    pass


class EscrowError(MarketError):
    """Raised when an external escrow call fails during commit."""
    pass


__all__ = [
    'MarketError',
    'NotFoundError',
    'UnauthorizedError',
    'InvalidParameterError',
    'BidTooLowError',
    'ConflictError',
    'DeadlineNotReachedError',
    'DeadlinePassedError',
    'InsufficientFundsError',
    'NotApprovedError',
    'EscrowError',
]
