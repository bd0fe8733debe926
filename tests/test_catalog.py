"""Tests for the per-provider model catalog cache."""

from __future__ import annotations

import random

import pytest

from chat_providers.llm.catalog import ModelCatalog
from chat_providers.llm.errors import AIError, ModelNotFoundError, NoFreeModelsError
from chat_providers.types import ModelArchitecture, ModelInfo, ModelPricing

PAID = ModelPricing(prompt="0.001", completion="0.002", image="0", web_search="0")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetch:
    """Live catalog double that counts calls."""

    def __init__(self, models: dict[str, ModelInfo] | None = None, error: Exception | None = None):
        self.models = models or {}
        self.error = error
        self.calls = 0

    async def __call__(self) -> dict[str, ModelInfo]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return dict(self.models)


def _live() -> dict[str, ModelInfo]:
    return {
        "paid-a": ModelInfo(id="paid-a", provider="p", pricing=PAID),
        "free-b": ModelInfo(id="free-b", provider="p", pricing=ModelPricing.free()),
        "free-c": ModelInfo(id="free-c", provider="p", pricing=ModelPricing.free()),
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestTTL:
    async def test_fresh_cache_skips_fetch(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, ttl=60, clock=clock)

        await catalog.get_models()
        clock.advance(59)
        models = await catalog.get_models()
        assert fetch.calls == 1
        assert set(models) == {"paid-a", "free-b", "free-c"}

    async def test_stale_cache_fetches(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, ttl=60, clock=clock)

        await catalog.get_models()
        clock.advance(60)
        await catalog.get_models()
        assert fetch.calls == 2

    async def test_fresh_flag_bypasses_cache(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, clock=clock)
        await catalog.get_models()
        await catalog.get_models(fresh=True)
        assert fetch.calls == 2

    async def test_empty_cache_is_not_fresh(self, clock: FakeClock):
        fetch = FakeFetch({})
        catalog = ModelCatalog("p", fetch, clock=clock)
        await catalog.get_models()
        await catalog.get_models()
        assert fetch.calls == 2
        assert not catalog.is_fresh()

    async def test_invalidate(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, clock=clock)
        await catalog.get_models()
        catalog.invalidate()
        await catalog.get_models()
        assert fetch.calls == 2


class TestModelInfoLookup:
    async def test_static_entry_never_fetches(self):
        fetch = FakeFetch(_live())
        static = {"mine": ModelInfo(id="mine", provider="p")}
        catalog = ModelCatalog("p", fetch, static_models=static)
        assert (await catalog.get_model_info("mine")).id == "mine"
        assert fetch.calls == 0

    async def test_cache_then_live_fetch(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, clock=clock)

        assert (await catalog.get_model_info("paid-a")).id == "paid-a"
        assert fetch.calls == 1
        assert (await catalog.get_model_info("free-b")).id == "free-b"
        assert fetch.calls == 1

    async def test_not_found_carries_placeholder(self):
        catalog = ModelCatalog("p", FakeFetch(_live()))
        with pytest.raises(ModelNotFoundError) as excinfo:
            await catalog.get_model_info("ghost")
        assert excinfo.value.placeholder == ModelInfo.placeholder("ghost", "p")

    async def test_fetch_failure_propagates(self):
        catalog = ModelCatalog("p", FakeFetch(error=AIError("down", status_code=503)))
        with pytest.raises(AIError) as excinfo:
            await catalog.get_model_info("anything")
        assert not isinstance(excinfo.value, ModelNotFoundError)
        assert excinfo.value.status_code == 503


class TestPrecedence:
    async def test_configured_entry_wins_on_every_path(self):
        configured = ModelInfo(
            id="paid-a",
            provider="p",
            pricing=ModelPricing.free(),
            architecture=ModelArchitecture(input_modalities=("text",), output_modalities=("text",)),
        )
        catalog = ModelCatalog("p", FakeFetch(_live()), static_models={"paid-a": configured})

        models = await catalog.get_models(fresh=True)
        assert models["paid-a"] is configured
        assert (await catalog.get_model_info("paid-a")) is configured
        assert "paid-a" in await catalog.get_models(only_free=True)


class TestFreeModels:
    async def test_ad_hoc_free_view_not_cached(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, clock=clock)

        free = await catalog.get_models(only_free=True)
        assert set(free) == {"free-b", "free-c"}
        assert not catalog.is_fresh()

        everything = await catalog.get_models()
        assert set(everything) == {"paid-a", "free-b", "free-c"}
        assert set(await catalog.get_models(only_free=True)) == {"free-b", "free-c"}
        assert fetch.calls == 2

    async def test_only_free_flag_filters_and_caches(self, clock: FakeClock):
        fetch = FakeFetch(_live())
        catalog = ModelCatalog("p", fetch, only_free=True, clock=clock)

        assert set(await catalog.get_models()) == {"free-b", "free-c"}
        assert catalog.is_fresh()
        assert set(await catalog.get_models()) == {"free-b", "free-c"}
        assert fetch.calls == 1

    async def test_random_free_model(self):
        catalog = ModelCatalog("p", FakeFetch(_live()), rng=random.Random(7))
        picks = {await catalog.get_random_free_model() for _ in range(30)}
        assert picks <= {"free-b", "free-c"}
        assert picks == {"free-b", "free-c"}

    async def test_no_free_models(self):
        paid = {"paid-a": _live()["paid-a"]}
        catalog = ModelCatalog("p", FakeFetch(paid))
        with pytest.raises(NoFreeModelsError):
            await catalog.get_random_free_model()


class TestConfigOnly:
    async def test_static_models_only(self):
        static = {
            "a": ModelInfo(id="a", provider="local", pricing=ModelPricing.free()),
            "b": ModelInfo(id="b", provider="local"),
        }
        catalog = ModelCatalog("local", None, static_models=static)
        assert set(await catalog.get_models(fresh=True)) == {"a", "b"}
        assert set(await catalog.get_models(only_free=True)) == {"a"}
        with pytest.raises(ModelNotFoundError):
            await catalog.get_model_info("c")
