"""Custody of assets and funds held by the marketplace.

Operations run in two phases. The ``require_*`` checks query the registry and
ledger without changing anything, so a failing precondition aborts before any
external effect. The act phase then runs inside an ``EscrowTransaction``:
reversible steps first, then payouts, then the release of the asset.
"""
import logging
from typing import Any, Callable, List, Tuple

from .errors import (
    EscrowError,
    InsufficientFundsError,
    MarketError,
    NotApprovedError,
    UnauthorizedError,
)
from .fees import FeeCalculator, FeeSplit
from .interfaces import AssetRegistry, FungibleLedger

logger = logging.getLogger(__name__)


def _call(description: str, func: Callable[..., Any], *args) -> Any:
    """Invoke an external collaborator, normalizing foreign exceptions."""
    try:
        return func(*args)
    except MarketError:
        raise
    except Exception as e:
        raise EscrowError(f"{description} failed: {e}") from e


class EscrowCoordinator:
    """Wraps the asset registry and fungible ledger for the marketplace account."""

    def __init__(
        self,
        registry: AssetRegistry,
        ledger: FungibleLedger,
        marketplace_address: str,
        fee_address: str,
        fees: FeeCalculator
    ) -> None:
        self.registry = registry
        self.ledger = ledger
        self.marketplace_address = marketplace_address
        self.fee_address = fee_address
        self.fees = fees

    # Read-only checks

    def owner_of(self, collection: str, asset_id: int) -> str:
        return _call(
            f"ownerOf({collection}, {asset_id})",
            self.registry.owner_of, collection, asset_id
        )

    def require_owner(self, collection: str, asset_id: int, account: str) -> None:
        """Raise UnauthorizedError unless ``account`` currently owns the asset."""
        owner = self.owner_of(collection, asset_id)
        if owner != account:
            raise UnauthorizedError(
                f"{account} is not the owner of asset {asset_id} in {collection}"
            )

    def require_custody_approval(self, collection: str, owner: str) -> None:
        """Raise NotApprovedError unless the marketplace may move ``owner``'s assets."""
        approved = _call(
            f"isApprovedForAll({collection}, {owner})",
            self.registry.is_approved_for_all, collection, owner, self.marketplace_address
        )
        if not approved:
            raise NotApprovedError(
                f"Marketplace is not approved to move assets of {owner} in {collection}"
            )

    def require_funds(self, account: str, amount: int, currency: str) -> None:
        """Simulate a pull of ``amount`` from ``account``.

        Raises:
            InsufficientFundsError: If the balance is short
            NotApprovedError: If the allowance granted to the marketplace is short
        """
        balance = _call(
            f"balanceOf({account}, {currency})",
            self.ledger.balance_of, account, currency
        )
        if balance < amount:
            raise InsufficientFundsError(account, amount, balance, currency)
        allowance = _call(
            f"allowance({account}, {currency})",
            self.ledger.allowance, account, self.marketplace_address, currency
        )
        if allowance < amount:
            raise NotApprovedError(
                f"Allowance of {account} for {currency} is {allowance}, {amount} required"
            )

    def require_held(self, amount: int, currency: str) -> None:
        """Raise EscrowError unless the marketplace account holds ``amount``."""
        held = _call(
            f"balanceOf({self.marketplace_address}, {currency})",
            self.ledger.balance_of, self.marketplace_address, currency
        )
        if held < amount:
            raise EscrowError(
                f"Marketplace holds {held} {currency}, {amount} required for payouts"
            )

    def transaction(self) -> 'EscrowTransaction':
        return EscrowTransaction(self)


class EscrowTransaction:
    """Applies external custody changes in two phases.

    Pulling funds and taking an asset into custody can be undone, so a
    failure while only those steps have run is compensated in reverse order.
    Payouts and releases out of custody cannot be undone. Once one of them
    has succeeded the transaction is settled: later failures are recorded in
    ``failures`` instead of raised, the caller records the outcome and then
    calls ``raise_for_failures``.

    Usage::

        with escrow.transaction() as tx:
            tx.collect(buyer, price, currency)
            tx.settle(offeror, price, currency)
            tx.release_asset(collection, asset_id, buyer)
        ...commit the sale...
        tx.raise_for_failures()
    """

    def __init__(self, coordinator: EscrowCoordinator) -> None:
        self.coordinator = coordinator
        self._steps: List[Tuple[str, Callable[[], None]]] = []
        self.settled = False
        self.failures: List[Tuple[str, Exception]] = []

    def __enter__(self) -> 'EscrowTransaction':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            return False
        if self.settled:
            logger.error(f"Escrow failed after settlement started, not compensating: {exc}")
            return False
        self._rollback(exc)
        return False

    def _rollback(self, cause: BaseException) -> None:
        if not self._steps:
            return
        logger.warning(f"Escrow step failed ({cause}); compensating {len(self._steps)} step(s)")
        failed = []
        for description, undo in reversed(self._steps):
            try:
                undo()
                logger.info(f"Compensated escrow step: {description}")
            except Exception as e:
                logger.error(f"Compensation of '{description}' failed: {e}")
                failed.append(f"{description} ({e})")
        self._steps.clear()
        if failed:
            raise EscrowError(
                f"Escrow step failed ({cause}) and could not be compensated: {'; '.join(failed)}"
            ) from cause

    def _final(self, description: str, func: Callable[..., Any], *args) -> bool:
        """Run a step that cannot be undone.

        Returns False if the step failed after settlement started.
        """
        try:
            _call(description, func, *args)
        except MarketError as e:
            if not self.settled:
                raise
            logger.error(f"Escrow step failed after settlement: {e}")
            self.failures.append((description, e))
            return False
        self.settled = True
        return True

    def raise_for_failures(self) -> None:
        """Raise EscrowError naming every step that failed after settlement."""
        if not self.failures:
            return
        names = '; '.join(f"{description} ({error})" for description, error in self.failures)
        raise EscrowError(f"Settlement incomplete: {names}") from self.failures[0][1]

    @property
    def market(self) -> str:
        return self.coordinator.marketplace_address

    def take_asset(self, collection: str, asset_id: int, owner: str) -> None:
        """Move an asset from ``owner`` into marketplace custody."""
        registry = self.coordinator.registry
        _call(
            f"transfer of asset {asset_id} into custody",
            registry.transfer_custody, collection, asset_id, owner, self.market
        )
        logger.debug(f"Asset {asset_id} ({collection}) taken into custody from {owner}")
        self._steps.append((
            f"take asset {asset_id} from {owner}",
            lambda: registry.transfer_custody(collection, asset_id, self.market, owner)
        ))

    def release_asset(self, collection: str, asset_id: int, to_account: str) -> None:
        """Move an asset out of marketplace custody."""
        if self._final(
            f"transfer of asset {asset_id} out of custody to {to_account}",
            self.coordinator.registry.transfer_custody,
            collection, asset_id, self.market, to_account
        ):
            logger.debug(f"Asset {asset_id} ({collection}) released to {to_account}")

    def collect(self, payer: str, amount: int, currency: str) -> None:
        """Pull ``amount`` from ``payer`` into the marketplace account."""
        if amount <= 0:
            return
        ledger = self.coordinator.ledger
        _call(
            f"pull of {amount} {currency} from {payer}",
            ledger.pull, payer, self.market, amount, currency
        )
        logger.debug(f"Collected {amount} {currency} from {payer}")
        self._steps.append((
            f"collect {amount} {currency} from {payer}",
            lambda: ledger.push(payer, amount, currency)
        ))

    def pay(self, to_account: str, amount: int, currency: str) -> None:
        """Push ``amount`` from the marketplace account to ``to_account``."""
        if amount <= 0:
            return
        if self._final(
            f"push of {amount} {currency} to {to_account}",
            self.coordinator.ledger.push, to_account, amount, currency
        ):
            logger.debug(f"Paid {amount} {currency} to {to_account}")

    def settle(self, beneficiary: str, amount: int, currency: str) -> FeeSplit:
        """Pay the operator fee on ``amount`` and the remainder to ``beneficiary``.

        Raises:
            EscrowError: If the marketplace does not hold ``amount``; checked
                         before either payout
        """
        split = self.coordinator.fees.split(amount)
        self.coordinator.require_held(amount, currency)
        self.pay(self.coordinator.fee_address, split.fee, currency)
        self.pay(beneficiary, split.remainder, currency)
        return split


__all__ = ['EscrowCoordinator', 'EscrowTransaction']
