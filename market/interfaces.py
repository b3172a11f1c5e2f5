"""Contracts of the external collaborators the marketplace depends on."""
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class AssetRegistry(Protocol):
    """Ownership registry for unique assets, one namespace per collection."""

    def owner_of(self, collection: str, asset_id: int) -> str:
        ...

    def transfer_custody(self, collection: str, asset_id: int, from_account: str, to_account: str) -> None:
        ...

    def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        ...


@runtime_checkable
class FungibleLedger(Protocol):
    """Balance ledger for fungible currencies.

    ``pull`` moves funds the payer has approved the marketplace to spend;
    ``push`` pays out of the marketplace's own account.
    """

    def balance_of(self, account: str, currency: str) -> int:
        ...

    def allowance(self, owner: str, spender: str, currency: str) -> int:
        ...

    def pull(self, from_account: str, to_account: str, amount: int, currency: str) -> None:
        ...

    def push(self, to_account: str, amount: int, currency: str) -> None:
        ...


@runtime_checkable
class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock in whole UNIX seconds."""

    def now(self) -> int:
        return int(time.time())


__all__ = ['AssetRegistry', 'FungibleLedger', 'Clock', 'SystemClock']
