"""Default invalidation rules for the trading, transfer and profile events.

Namespaces:
  blockchain         proxied chain reads (balances, prices, trade history)
  user_profile       rendered public profiles
  users              the user CacheAsideRepository
  viewIntegrateUser  partner-integration user lookups by reference id
"""

from src.pm_events.application.invalidation import InvalidationRouter, InvalidationTarget
from src.pm_events.domain.events import (
    EmailUpdated,
    FundsTransferred,
    SharesBought,
    SharesSold,
    TokenTransferred,
    UserUpdated,
)
from src.pm_gateway.user.repository import USERS_NAMESPACE

BLOCKCHAIN_NAMESPACE = "blockchain"
USER_PROFILE_NAMESPACE = "user_profile"
INTEGRATION_NAMESPACE = "viewIntegrateUser"


def _chain(template: str, prefix: bool = False) -> InvalidationTarget:
    return InvalidationTarget(BLOCKCHAIN_NAMESPACE, template, prefix=prefix)


def _trade_targets(trader: str) -> list[InvalidationTarget]:
    """Keys touched by a share trade between ``trader`` and the share owner."""
    targets = [_chain("getRecentTrades", prefix=True)]
    for address in (f"{{{trader}_address}}", "{owner_address}"):
        targets += [
            _chain(f"viewUserBalance:{address}"),
            _chain(f"viewUserSharesCount:{address}"),
            _chain(f"viewUserTradingVolume:{address}"),
            _chain(f"viewUserTradeHistory:{address}:", prefix=True),
        ]
    targets += [
        _chain("viewSharesPrice:{owner_address}"),
        _chain("viewUserEarnedFees:{owner_address}"),
        InvalidationTarget(USERS_NAMESPACE, "{owner_id}"),
    ]
    return targets


def register_default_rules(router: InvalidationRouter) -> InvalidationRouter:
    router.register(SharesBought, *_trade_targets("buyer"))
    router.register(SharesSold, *_trade_targets("seller"))

    router.register(
        FundsTransferred,
        _chain("viewUserBalance:{from_address}"),
        _chain("viewUserBalance:{to_address}"),
        _chain("viewUserListTokenBalance:{from_address}"),
        _chain("viewUserListTokenBalance:{to_address}"),
    )
    router.register(
        TokenTransferred,
        _chain("viewUserTokenBalance:{from_address}:{token_address}"),
        _chain("viewUserTokenBalance:{to_address}:{token_address}"),
        _chain("viewUserListTokenBalance:{from_address}"),
        _chain("viewUserListTokenBalance:{to_address}"),
    )

    router.register(
        EmailUpdated,
        InvalidationTarget(USER_PROFILE_NAMESPACE, "{user_id}"),
        InvalidationTarget(USERS_NAMESPACE, "{user_id}"),
        InvalidationTarget(USERS_NAMESPACE, "email:{old_email}", lowercase=True),
        InvalidationTarget(USERS_NAMESPACE, "email:{new_email}", lowercase=True),
    )
    router.register(
        UserUpdated,
        InvalidationTarget(USER_PROFILE_NAMESPACE, "{user_id}"),
        InvalidationTarget(USERS_NAMESPACE, "{user_id}"),
        InvalidationTarget(INTEGRATION_NAMESPACE, "{reference_id}"),
    )
    return router
