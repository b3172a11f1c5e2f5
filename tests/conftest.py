"""Shared fixtures: in-memory registry and ledger, a controllable clock."""

from typing import Dict, Set, Tuple

import pytest

from database.store import MemoryStore
from market import (
    InsufficientFundsError,
    Marketplace,
    NotApprovedError,
    NotFoundError,
    UnauthorizedError,
)

# Test data
ETHER = 10 ** 18
CURRENCY = "0xWETH"
COLLECTION = "0xCollection"
OTHER_COLLECTION = "0xOtherCollection"
MARKET = "0xMarket"
FEE = "0xFee"
ALICE = "0xAlice"
BOB = "0xBob"
CAROL = "0xCarol"
START = 1_700_000_000
DAY = 86400


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = START):
        self._now = now

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> None:
        self._now += seconds

    def set(self, now: int) -> None:
        self._now = now


class InMemoryRegistry:
    """Asset registry keeping owners and operator approvals in dicts."""

    def __init__(self):
        self.owners: Dict[Tuple[str, int], str] = {}
        self.approvals: Set[Tuple[str, str, str]] = set()
        self.transfers = []
        self.fail_transfers = False

    def mint(self, collection: str, asset_id: int, owner: str) -> None:
        self.owners[(collection, asset_id)] = owner

    def set_approval_for_all(self, collection: str, owner: str, operator: str, approved: bool = True) -> None:
        key = (collection, owner, operator)
        if approved:
            self.approvals.add(key)
        else:
            self.approvals.discard(key)

    def owner_of(self, collection: str, asset_id: int) -> str:
        try:
            return self.owners[(collection, asset_id)]
        except KeyError:
            raise NotFoundError(f"asset {asset_id} does not exist in {collection}")

    def transfer_custody(self, collection: str, asset_id: int, from_account: str, to_account: str) -> None:
        if self.fail_transfers:
            raise RuntimeError("registry node unavailable")
        if self.owner_of(collection, asset_id) != from_account:
            raise UnauthorizedError(f"{from_account} does not own asset {asset_id}")
        self.owners[(collection, asset_id)] = to_account
        self.transfers.append((collection, asset_id, from_account, to_account))

    def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        return (collection, owner, operator) in self.approvals


class InMemoryLedger:
    """Fungible ledger with balances and allowances per currency."""

    def __init__(self, marketplace_address: str = MARKET):
        self.marketplace_address = marketplace_address
        self.balances: Dict[Tuple[str, str], int] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.fail_push_to: Set[str] = set()

    def mint(self, account: str, amount: int, currency: str = CURRENCY) -> None:
        key = (account, currency)
        self.balances[key] = self.balances.get(key, 0) + amount

    def approve(self, owner: str, spender: str, amount: int, currency: str = CURRENCY) -> None:
        self.allowances[(owner, spender, currency)] = amount

    def balance_of(self, account: str, currency: str) -> int:
        return self.balances.get((account, currency), 0)

    def allowance(self, owner: str, spender: str, currency: str) -> int:
        return self.allowances.get((owner, spender, currency), 0)

    def _move(self, from_account: str, to_account: str, amount: int, currency: str) -> None:
        available = self.balance_of(from_account, currency)
        if available < amount:
            raise InsufficientFundsError(from_account, amount, available, currency)
        self.balances[(from_account, currency)] = available - amount
        self.mint(to_account, amount, currency)

    def pull(self, from_account: str, to_account: str, amount: int, currency: str) -> None:
        allowed = self.allowance(from_account, to_account, currency)
        if allowed < amount:
            raise NotApprovedError(f"allowance of {from_account} is {allowed}")
        self._move(from_account, to_account, amount, currency)
        self.allowances[(from_account, to_account, currency)] = allowed - amount

    def push(self, to_account: str, amount: int, currency: str) -> None:
        if to_account in self.fail_push_to:
            raise RuntimeError(f"ledger rejected transfer to {to_account}")
        self._move(self.marketplace_address, to_account, amount, currency)

    def fund(self, account: str, amount: int, currency: str = CURRENCY) -> None:
        """Mint ``amount`` to ``account`` and approve the marketplace to spend it."""
        self.mint(account, amount, currency)
        key = (account, self.marketplace_address, currency)
        self.allowances[key] = self.allowances.get(key, 0) + amount


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return InMemoryRegistry()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def marketplace(registry, ledger, clock, store):
    """Marketplace at the default 12.5% fee wired to the in-memory fakes."""
    return Marketplace(
        registry=registry,
        ledger=ledger,
        marketplace_address=MARKET,
        fee_address=FEE,
        clock=clock,
        store=store
    )


@pytest.fixture
def owned_asset(registry):
    """Mint asset 1 to Alice with the marketplace approved as custodian."""
    def _mint(asset_id: int = 1, owner: str = ALICE, collection: str = COLLECTION) -> int:
        registry.mint(collection, asset_id, owner)
        registry.set_approval_for_all(collection, owner, MARKET)
        return asset_id
    return _mint
