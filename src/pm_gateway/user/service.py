"""User domain service: lookups, PIN setup/change, email change, share trades.

Every read goes through the user CacheAsideRepository; every write goes
through ``update_by_id`` so the user's cache keys are purged by the repository
itself. Changes that other components cache (chain balances, profiles) are
announced on the event bus for the InvalidationRouter to pick up.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import (
    EmailExistsError,
    PinAlreadySetError,
    PinNotSetError,
    UserNotFoundError,
)
from src.pm_events.application.bus import InProcessEventBus
from src.pm_events.domain.events import EmailUpdated, SharesBought, SharesSold
from src.pm_gateway.auth.password import check_pin_format, hash_pin
from src.pm_gateway.auth.pin_lockout import PinLockout, raise_for_decision
from src.pm_gateway.user.models import User
from src.pm_store.application.service import CacheAsideRepository


class UserService:
    """Stateless service — instantiate once, reuse across requests."""

    def __init__(
        self,
        users: CacheAsideRepository[User],
        lockout: PinLockout,
        bus: InProcessEventBus,
    ) -> None:
        self._users = users
        self._lockout = lockout
        self._bus = bus

    async def get_by_id(self, db: AsyncSession, user_id: str) -> User | None:
        return await self._users.get_by_id(db, user_id)

    async def get_by_wallet_address(self, db: AsyncSession, address: str) -> User | None:
        return await self._users.get_by_key(db, f"wallet_address:{address.lower()}")

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        return await self._users.get_by_key(db, f"email:{email.lower()}")

    async def _require(self, db: AsyncSession, user_id: str) -> User:
        user = await self._users.get_by_id(db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    # ------------------------------------------------------------------
    # PIN
    # ------------------------------------------------------------------

    async def setup_pin(self, db: AsyncSession, user_id: str, pin: str) -> None:
        check_pin_format(pin)
        user = await self._require(db, user_id)
        if user.pin_secret:
            raise PinAlreadySetError()
        await self._users.update_by_id(db, user_id, {"pin_secret": hash_pin(pin)})

    async def change_pin(
        self, db: AsyncSession, user_id: str, old_pin: str, new_pin: str
    ) -> None:
        check_pin_format(new_pin)
        user = await self._require(db, user_id)
        if not user.pin_secret:
            raise PinNotSetError()

        decision = await self._lockout.validate_pin(db, user_id, old_pin)
        raise_for_decision(decision, user_id)

        await self._users.update_by_id(db, user_id, {"pin_secret": hash_pin(new_pin)})

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def update_email(
        self, db: AsyncSession, log_id: str, user_id: str, new_email: str
    ) -> None:
        """Change a user's email. Uniqueness is checked on the lower-cased value."""
        email = new_email.lower()
        user = await self._require(db, user_id)

        existing = await self._users.find_one(db, {"email": email}, with_deleted=True)
        if existing is not None and existing.id != user.id:
            raise EmailExistsError()

        await self._users.update_by_id(db, user_id, {"email": email})
        self._bus.publish(
            EmailUpdated(
                log_id=log_id,
                user_id=user_id,
                old_email=user.email,
                new_email=email,
            )
        )

    # ------------------------------------------------------------------
    # Share trades (the chain call itself happens upstream)
    # ------------------------------------------------------------------

    async def record_share_purchase(
        self,
        db: AsyncSession,
        log_id: str,
        buyer: User,
        owner: User,
        quantity: int = 1,
        tx_hash: str | None = None,
        buy_price: str | None = None,
    ) -> None:
        await self._users.increment_by_id(db, owner.id, "shared", quantity)
        self._bus.publish(
            SharesBought(
                log_id=log_id,
                buyer_id=buyer.id,
                buyer_address=(buyer.wallet_address or "").lower(),
                owner_id=owner.id,
                owner_address=(owner.wallet_address or "").lower(),
                quantity=quantity,
                tx_hash=tx_hash,
                buy_price=buy_price,
            )
        )

    async def record_share_sale(
        self,
        db: AsyncSession,
        log_id: str,
        seller: User,
        owner: User,
        quantity: int = 1,
        tx_hash: str | None = None,
        sell_price: str | None = None,
    ) -> None:
        await self._users.increment_by_id(db, owner.id, "shared", -quantity)
        self._bus.publish(
            SharesSold(
                log_id=log_id,
                seller_id=seller.id,
                seller_address=(seller.wallet_address or "").lower(),
                owner_id=owner.id,
                owner_address=(owner.wallet_address or "").lower(),
                quantity=quantity,
                tx_hash=tx_hash,
                sell_price=sell_price,
            )
        )
