"""Plugin manager — discovers session listeners via entry points."""

from __future__ import annotations

import logging
from importlib.metadata import entry_points

logger = logging.getLogger(__name__)

LISTENER_GROUP = "rhythmtap.listeners"


class PluginManager:
    """Discovers and manages listener plugins from entry points."""

    def __init__(self) -> None:
        self._listeners: list[object] = []

    def discover(self, group: str = LISTENER_GROUP) -> None:
        """Scan entry points for rhythmtap listener plugins."""
        try:
            eps = entry_points(group=group)
        except TypeError:
            eps = entry_points().get(group, [])
        for ep in eps:
            try:
                cls = ep.load()
                self.register(cls())
            except Exception as exc:
                logger.warning("Failed to load plugin %s: %s", ep.name, exc)

    def register(self, plugin: object) -> None:
        if any(callable(getattr(plugin, name, None)) for name in _LISTENER_METHODS):
            self._listeners.append(plugin)
        else:
            logger.warning("Plugin %r implements no listener methods, skipped", plugin)

    def get_listeners(self) -> list[object]:
        return list(self._listeners)


_LISTENER_METHODS = (
    "on_note_scored",
    "on_miss",
    "on_rest_violation",
    "on_bonus_awarded",
    "on_session_state_change",
    "on_count_in",
    "on_beat",
)
