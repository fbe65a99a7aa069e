"""EntityDescriptor — per-repository cache configuration, validated up front."""

import dataclasses
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from src.pm_common.errors import ConfigurationError

T = TypeVar("T")


@dataclass(frozen=True)
class EntityDescriptor(Generic[T]):
    """How one entity type is keyed in the cache.

    ``sub_keys`` are secondary fields that also resolve to the entity;
    ``casefold_keys`` is the subset whose values are lower-cased before they
    become keys (wallet addresses, emails). When ``soft_delete_field`` is set,
    a snapshot with that field filled is never served to a default lookup.
    """

    entity_type: type[T]
    primary_key: str = "id"
    sub_keys: tuple[str, ...] = ()
    casefold_keys: frozenset[str] = field(default_factory=frozenset)
    ttl_seconds: int = 3600
    soft_delete_field: str | None = None

    def __post_init__(self) -> None:
        if not dataclasses.is_dataclass(self.entity_type):
            raise ConfigurationError(
                f"{self.entity_type!r} must be a dataclass to be cached"
            )
        names = self.field_names()
        for name in (self.primary_key, *self.sub_keys):
            if name not in names:
                raise ConfigurationError(
                    f"{self.entity_type.__name__} has no field {name!r}"
                )
        if self.primary_key in self.sub_keys:
            raise ConfigurationError(
                f"{self.primary_key!r} is the primary key and cannot be a sub key"
            )
        if not self.casefold_keys <= set(self.sub_keys):
            extra = sorted(self.casefold_keys - set(self.sub_keys))
            raise ConfigurationError(f"casefold keys {extra} are not sub keys")
        if self.ttl_seconds <= 0:
            raise ConfigurationError("ttl_seconds must be positive")
        if self.soft_delete_field is not None and self.soft_delete_field not in names:
            raise ConfigurationError(
                f"{self.entity_type.__name__} has no field {self.soft_delete_field!r}"
            )

    def field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in dataclasses.fields(self.entity_type))  # type: ignore[arg-type]
