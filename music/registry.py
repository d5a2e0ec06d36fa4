from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator

from .metrics import active_instances

if TYPE_CHECKING:
    from .instance import Instance

log = logging.getLogger(__name__)


class InstanceRegistry:
    """Guild id -> playback Instance. At most one instance per guild."""

    def __init__(self) -> None:
        self._instances: dict[int, Instance] = {}

    def get(self, guild_id: int) -> Instance | None:
        return self._instances.get(guild_id)

    def add(self, guild_id: int, instance: Instance) -> None:
        existing = self._instances.get(guild_id)
        if existing is not None and existing is not instance:
            raise ValueError(f"Guild {guild_id} already has an instance")
        self._instances[guild_id] = instance
        active_instances.set(len(self._instances))
        log.info("Created new instance for %s", guild_id)

    def remove(self, guild_id: int, instance: Instance | None = None) -> bool:
        """Drop the guild's instance. With *instance*, only if it is the registered one."""
        current = self._instances.get(guild_id)
        if current is None or (instance is not None and current is not instance):
            return False
        del self._instances[guild_id]
        active_instances.set(len(self._instances))
        log.info("Deleted instance for %s", guild_id)
        return True

    def __contains__(self, guild_id: object) -> bool:
        return guild_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._instances))
