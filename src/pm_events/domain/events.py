"""Domain events for cache invalidation.

Producers (trade, transfer and profile flows) publish these after the
external call or store write has succeeded. Address and email fields are
expected lower-cased by the producer; reference ids upper-cased.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SharesBought:
    log_id: str
    buyer_id: str
    buyer_address: str
    owner_id: str
    owner_address: str
    quantity: int = 1
    tx_hash: str | None = None
    buy_price: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SharesSold:
    log_id: str
    seller_id: str
    seller_address: str
    owner_id: str
    owner_address: str
    quantity: int = 1
    tx_hash: str | None = None
    sell_price: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class FundsTransferred:
    log_id: str
    from_user_id: str
    from_address: str
    to_user_id: str | None
    to_address: str
    amount: str
    tx_hash: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class TokenTransferred:
    log_id: str
    from_user_id: str
    from_address: str
    to_user_id: str | None
    to_address: str
    token: str
    token_address: str
    amount: str
    tx_hash: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class EmailUpdated:
    log_id: str
    user_id: str
    old_email: str | None
    new_email: str
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class UserUpdated:
    log_id: str
    user_id: str
    reference_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)
