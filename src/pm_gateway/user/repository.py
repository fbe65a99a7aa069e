"""User repository wiring: cache keys and the SQLAlchemy-backed store.

A user resolves under its id, and under each non-empty sub key:
    users:<id>
    users:wallet_address:<lower-cased address>
    users:twitter_screen_name:<screen name>
    users:email:<lower-cased email>
"""

from config.settings import settings
from src.pm_cache.domain.cache import KeyValueCacheProtocol
from src.pm_cache.domain.descriptor import EntityDescriptor
from src.pm_gateway.user.db_models import UserModel
from src.pm_gateway.user.models import User
from src.pm_store.application.service import CacheAsideRepository
from src.pm_store.domain.repository import EntityStoreProtocol
from src.pm_store.infrastructure.persistence import SqlAlchemyEntityStore

USERS_NAMESPACE = "users"

USER_DESCRIPTOR: EntityDescriptor[User] = EntityDescriptor(
    entity_type=User,
    primary_key="id",
    sub_keys=("wallet_address", "twitter_screen_name", "email"),
    casefold_keys=frozenset({"wallet_address", "email"}),
    ttl_seconds=settings.USER_CACHE_TTL_SECONDS,
    soft_delete_field="deleted_at",
)


def build_user_repository(
    cache: KeyValueCacheProtocol,
    store: EntityStoreProtocol[User] | None = None,
) -> CacheAsideRepository[User]:
    return CacheAsideRepository(
        namespace=USERS_NAMESPACE,
        descriptor=USER_DESCRIPTOR,
        store=store or SqlAlchemyEntityStore(UserModel.__table__, User),  # type: ignore[arg-type]
        cache=cache,
    )
