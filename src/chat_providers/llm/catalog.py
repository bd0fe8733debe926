"""Per-provider model catalog with a TTL cache.

Lookup order for a single model: configured entries (never expire), the
cached live catalog while it is younger than the TTL, then a live fetch.
Configured entries win over live entries with the same id on every path.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

from chat_providers.llm.errors import ModelNotFoundError, NoFreeModelsError
from chat_providers.types import ModelInfo

_logger = logging.getLogger(__name__)

MODELS_CACHE_TTL = 30 * 60  # seconds

FetchModels = Callable[[], Awaitable[dict[str, ModelInfo]]]


@dataclass(frozen=True)
class _Snapshot:
    models: Mapping[str, ModelInfo]
    synced_at: float


def _free_only(models: Mapping[str, ModelInfo]) -> dict[str, ModelInfo]:
    return {mid: m for mid, m in models.items() if m.is_free()}


class ModelCatalog:
    """Model catalog for one provider.

    Parameters
    ----------
    provider_name:
        Owning provider, stamped on placeholders and errors.
    fetch:
        Coroutine function returning the live catalog keyed by id, or
        ``None`` for configuration-only catalogs.
    static_models:
        Operator-configured entries.
    only_free:
        Restrict the catalog to free models on every live fetch.
    """

    def __init__(
        self,
        provider_name: str,
        fetch: FetchModels | None = None,
        static_models: Mapping[str, ModelInfo] | None = None,
        only_free: bool = False,
        ttl: float = MODELS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.only_free = only_free
        self._fetch = fetch
        self._static = MappingProxyType(dict(static_models or {}))
        self._ttl = ttl
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._snapshot: _Snapshot | None = None

    # ------------------------------------------------------------------
    # Cache state
    # ------------------------------------------------------------------

    @property
    def static_models(self) -> Mapping[str, ModelInfo]:
        return self._static

    def _fresh_snapshot(self) -> _Snapshot | None:
        with self._lock:
            snap = self._snapshot
        if snap is None or not snap.models:
            return None
        if self._clock() - snap.synced_at >= self._ttl:
            return None
        return snap

    def _store(self, models: dict[str, ModelInfo]) -> None:
        snap = _Snapshot(MappingProxyType(dict(models)), self._clock())
        with self._lock:
            self._snapshot = snap

    def is_fresh(self) -> bool:
        return self._fresh_snapshot() is not None

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_models(self, only_free: bool = False, fresh: bool = False) -> dict[str, ModelInfo]:
        """Return the catalog, refreshing it when stale or when *fresh* is set."""
        if self._fetch is None:
            models = dict(self._static)
            return _free_only(models) if only_free else models

        if not fresh:
            snap = self._fresh_snapshot()
            if snap is not None:
                models = dict(snap.models)
                return _free_only(models) if only_free else models

        models = await self._fetch()
        models.update(self._static)
        if only_free or self.only_free:
            models = _free_only(models)

        # an ad-hoc free view must not replace the full catalog
        if self.only_free or not only_free:
            self._store(models)
            _logger.debug(
                "Model catalog for %s refreshed (%d models)", self.provider_name, len(models),
            )
        return models

    async def get_model_info(self, name: str) -> ModelInfo:
        """Resolve *name*, raising :class:`ModelNotFoundError` when unknown."""
        model = self._static.get(name)
        if model is not None:
            return model

        snap = self._fresh_snapshot()
        if snap is not None and name in snap.models:
            return snap.models[name]

        if self._fetch is not None:
            models = await self.get_models(only_free=False, fresh=True)
            if name in models:
                return models[name]

        raise ModelNotFoundError(ModelInfo.placeholder(name, self.provider_name))

    async def get_random_free_model(self) -> str:
        """Uniformly sample the id of one free model."""
        models = await self.get_models(only_free=True, fresh=False)
        if not models:
            raise NoFreeModelsError("no free models available", provider=self.provider_name)
        return self._rng.choice(sorted(models))
