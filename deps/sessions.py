from __future__ import annotations

import random
from typing import Callable, Dict, Optional

from engine.session import SessionEngine
from engine.store import SnapshotStore
from engine.timer import AsyncioScheduler, Clock, Scheduler


class SessionRegistry:
    """Live engines keyed by storage key.

    All session endpoints are ``async def``, so engine calls and timer ticks
    run on the event loop thread one at a time.
    """

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        *,
        scheduler_factory: Callable[[], Scheduler] = AsyncioScheduler,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store or SnapshotStore()
        self._scheduler_factory = scheduler_factory
        self._clock = clock
        self._engines: Dict[str, SessionEngine] = {}

    def get(self, storage_key: str) -> Optional[SessionEngine]:
        return self._engines.get(storage_key)

    def create(self, storage_key: str, *, seed: Optional[int] = None) -> SessionEngine:
        """A new engine for ``storage_key``; any live one under that key is stopped first."""
        self.drop(storage_key)
        engine = SessionEngine(
            self.store,
            scheduler=self._scheduler_factory(),
            clock=self._clock,
            rng=random.Random(seed) if seed is not None else None,
        )
        self._engines[storage_key] = engine
        return engine

    def drop(self, storage_key: str) -> None:
        engine = self._engines.pop(storage_key, None)
        if engine is not None:
            engine.timer.stop()

    def sync_sound(self, enabled: bool) -> None:
        for engine in self._engines.values():
            engine.sound_enabled = enabled


_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry
