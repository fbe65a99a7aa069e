"""InvalidationRouter — purge cache keys owned by others when a domain event fires.

Each event type maps to a fixed list of key templates rendered from the
event's fields. Invalidation only deletes; the next read repopulates through
the owner's own cache-aside path, so the router never needs to know how a
value is built.

Ordering is fire-and-forget relative to the event: a read racing ahead of the
purge may see the old value for at most one TTL.
"""

import dataclasses
import logging
import string
from collections import defaultdict
from dataclasses import dataclass

from src.pm_cache.domain.cache import KeyValueCacheProtocol
from src.pm_common.errors import ConfigurationError
from src.pm_events.application.bus import InProcessEventBus

logger = logging.getLogger("pm.events")

_formatter = string.Formatter()


@dataclass(frozen=True)
class InvalidationTarget:
    """``"<namespace>:<template rendered>"`` as an exact key, or as a prefix."""

    namespace: str
    template: str
    prefix: bool = False
    lowercase: bool = False

    def placeholders(self) -> list[str]:
        return [name for _, name, _, _ in _formatter.parse(self.template) if name]


def _fields(event: object) -> dict[str, object]:
    return {f.name: getattr(event, f.name) for f in dataclasses.fields(event)}  # type: ignore[arg-type]


class InvalidationRouter:
    def __init__(self, cache: KeyValueCacheProtocol) -> None:
        self._cache = cache
        self._rules: dict[type, list[InvalidationTarget]] = defaultdict(list)

    def register(self, event_type: type, *targets: InvalidationTarget) -> None:
        if not dataclasses.is_dataclass(event_type):
            raise ConfigurationError(f"{event_type!r} must be a dataclass event")
        names = {f.name for f in dataclasses.fields(event_type)}
        for target in targets:
            unknown = [p for p in target.placeholders() if p not in names]
            if unknown:
                raise ConfigurationError(
                    f"{event_type.__name__} has no fields {unknown} "
                    f"(template {target.template!r})"
                )
        self._rules[event_type].extend(targets)

    def event_types(self) -> list[type]:
        return list(self._rules)

    def keys_for(self, event: object) -> list[tuple[str, bool]]:
        """Rendered ``(key, is_prefix)`` pairs; targets with an empty field are skipped."""
        values = _fields(event)
        keys: list[tuple[str, bool]] = []
        for target in self._rules.get(type(event), []):
            if any(values.get(name) in (None, "") for name in target.placeholders()):
                continue
            payload = target.template.format(**values)
            if target.lowercase:
                payload = payload.lower()
            keys.append((f"{target.namespace}:{payload}", target.prefix))
        return keys

    async def handle(self, event: object) -> None:
        keys = self.keys_for(event)
        if not keys:
            logger.debug("nothing to invalidate for %s", type(event).__name__)
            return

        exact = [key for key, is_prefix in keys if not is_prefix]
        if exact:
            await self._cache.delete(*exact)
        for key, is_prefix in keys:
            if is_prefix:
                await self._cache.delete_by_prefix(key)

        logger.debug(
            "[%s]: invalidated %d keys for %s",
            getattr(event, "log_id", "-"),
            len(keys),
            type(event).__name__,
        )

    def attach(self, bus: InProcessEventBus) -> None:
        for event_type in self._rules:
            bus.subscribe(event_type, self.handle)
