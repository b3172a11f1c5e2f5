"""Creator monetization: timed registrations and one-off tips."""
import logging
from typing import List

from .context import MarketContext
from .errors import InvalidParameterError
from .events import Registered, Tiped
from .models import Registration
from .state import StateChanges

logger = logging.getLogger(__name__)


class CreatorMonetization:
    """Payments to creators, each carrying the operator fee.

    Registrations are never deleted. Expired ones are simply left out of
    ``fetch_my_registrations``.
    """

    def __init__(self, ctx: MarketContext) -> None:
        self.ctx = ctx

    def _lock_key(self, account: str):
        return ('account', account)

    async def register(self, price: int, creator: str, expiry: int, currency: str, caller: str) -> Registration:
        """Pay ``price`` to subscribe to ``creator`` until ``expiry``.

        Raises:
            InvalidParameterError: If price is not positive or expiry is not in the future
            InsufficientFundsError: If the subscriber cannot cover the price
            EscrowError: If the creator payout failed after the fee was paid;
                         the registration is recorded regardless
        """
        async with self.ctx.locks.hold(self._lock_key(caller)):
            if price <= 0:
                raise InvalidParameterError("price must be greater than 0")
            if expiry <= self.ctx.now():
                raise InvalidParameterError("invalid end date: registration must expire in the future")
            if not creator:
                raise InvalidParameterError("a creator is required")
            self.ctx.escrow.require_funds(caller, price, currency)

            with self.ctx.escrow.transaction() as tx:
                tx.collect(caller, price, currency)
                split = tx.settle(creator, price, currency)

            registration = Registration(
                owner=caller,
                creator=creator,
                price=price,
                currency=currency,
                expiry=expiry
            )
            changes = StateChanges()
            self.ctx.state.add_registration(registration, changes)
            logger.info(
                f"{caller} registered to {creator} until {expiry} for {price} {currency} "
                f"(fee {split.fee})"
            )
            await self.ctx.commit(changes, [
                Registered(owner=caller, price=price, creator=creator, currency=currency)
            ])
            tx.raise_for_failures()
            return registration.model_copy()

    async def tip(self, amount: int, creator: str, currency: str, caller: str) -> int:
        """Send a one-off tip to ``creator``.

        Returns:
            The amount the creator received after the operator fee

        Raises:
            InvalidParameterError: If amount is not positive
            InsufficientFundsError: If the donator cannot cover the tip
            EscrowError: If the creator payout failed after the fee was paid
        """
        async with self.ctx.locks.hold(self._lock_key(caller)):
            if amount <= 0:
                raise InvalidParameterError("tip: amount should be greater than 0")
            if not creator:
                raise InvalidParameterError("a creator is required")
            self.ctx.escrow.require_funds(caller, amount, currency)

            with self.ctx.escrow.transaction() as tx:
                tx.collect(caller, amount, currency)
                split = tx.settle(creator, amount, currency)

            logger.info(f"{caller} tipped {creator} {amount} {currency} (fee {split.fee})")
            await self.ctx.commit(StateChanges(), [
                Tiped(donator=caller, amount=amount, creator=creator, currency=currency)
            ])
            tx.raise_for_failures()
            return split.remainder

    async def fetch_my_registrations(self, caller: str) -> List[Registration]:
        """Registrations owned by ``caller`` that have not expired yet."""
        now = self.ctx.now()
        return [
            registration.model_copy()
            for registration in self.ctx.state.registrations
            if registration.owner == caller and registration.is_live(now)
        ]
