from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import pandas as pd

from trendboard.data import TREND_COLUMNS, SourceConfig, TrendFetchError, load_raw_trends, normalize_trends, prepare_context
from trendboard.filters import TrendFilters

logger = logging.getLogger(__name__)

CONTEXT_CACHE_SIZE = 16


class TrendSnapshotStore:
    """Current normalized trend snapshot plus refresh bookkeeping.

    Each refresh takes a generation number from `begin_refresh`. Only the most
    recently started refresh may commit, so a slow request that finishes after
    a newer one never replaces the newer snapshot.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._generation = 0
        self._version = 0
        self._trends = pd.DataFrame(columns=TREND_COLUMNS)
        self._loaded_at: Optional[float] = None
        self._error: Optional[str] = None
        self._contexts: Dict[Tuple[int, TrendFilters], Dict[str, object]] = {}

    @property
    def version(self) -> int:
        return self._version

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def loaded(self) -> bool:
        return self._loaded_at is not None

    def begin_refresh(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def commit(self, generation: int, raw: Iterable[Any] | pd.DataFrame | None) -> bool:
        trends = normalize_trends(raw)
        with self._lock:
            if generation != self._generation:
                logger.info("discarding stale trend snapshot (generation %d, latest %d)", generation, self._generation)
                return False
            self._trends = trends
            self._version += 1
            self._loaded_at = self._clock()
            self._error = None
            self._contexts.clear()
        logger.info("trend snapshot v%d committed with %d records", self._version, len(trends))
        return True

    def fail(self, generation: int, message: str) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self._error = message
            # Keep the previous snapshot; retry on the next poll.
            self._loaded_at = self._clock()
        return True

    def refresh(self, fetch: Callable[[], Iterable[Any]]) -> bool:
        generation = self.begin_refresh()
        try:
            raw = fetch()
        except TrendFetchError as exc:
            logger.warning("trend refresh failed: %s", exc)
            self.fail(generation, str(exc))
            return False
        return self.commit(generation, raw)

    def is_stale(self, max_age_s: float) -> bool:
        if self._loaded_at is None:
            return True
        return (self._clock() - self._loaded_at) >= max_age_s

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "trends": self._trends,
                "version": self._version,
                "loaded_at": self._loaded_at,
                "error": self._error,
            }

    def context(self, filters: TrendFilters) -> Dict[str, object]:
        data_ctx = self.snapshot()
        key = (int(data_ctx["version"]), filters)
        with self._lock:
            cached = self._contexts.get(key)
        if cached is not None:
            return cached
        ctx = prepare_context(filters, data_ctx)
        with self._lock:
            if key[0] == self._version:
                if len(self._contexts) >= CONTEXT_CACHE_SIZE:
                    self._contexts.pop(next(iter(self._contexts)))
                self._contexts[key] = ctx
        return ctx


_STORE = TrendSnapshotStore()


def get_store() -> TrendSnapshotStore:
    return _STORE


def load_dashboard_data(force: bool = False, config: Optional[SourceConfig] = None) -> Dict[str, object]:
    """Return the current snapshot, refreshing it first when it is older than the poll interval."""
    config = config or SourceConfig.from_env()
    store = get_store()
    if force or store.is_stale(config.refresh_seconds):
        store.refresh(lambda: load_raw_trends(config))
    return store.snapshot()


def dashboard_context(filters: TrendFilters, force: bool = False, config: Optional[SourceConfig] = None) -> Dict[str, object]:
    """Filtered context for the current snapshot, memoized per snapshot version and filters."""
    load_dashboard_data(force=force, config=config)
    return get_store().context(filters)
