"""
Pytest configuration and shared fixtures for the test suite.
"""
import asyncio
import random
from typing import Any, Dict, List, Optional

import pytest

from app.schemas.prediction import (
    InterventionSuggestion,
    InterventionType,
    PredictionDetail,
    RiskFactor,
)
from app.ml.prediction.engine import derive_level
from app.services.data_source import MockPredictionDataSource
from app.services.level_change import LevelChangeDetector
from app.services.prediction_state import TTL_MS, PredictionStateManager
from app.services.prediction_store import InMemoryKeyValueStore

NOW = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingNotifier:
    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    def show(self, message: str, *, type: str = "info", duration_ms: int = 4000) -> None:
        self.messages.append({"message": message, "type": type, "duration_ms": duration_ms})


class RecordingTelemetry:
    def __init__(self):
        self.events: List[tuple] = []

    def track(self, event, payload: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((str(event), payload or {}))

    def named(self, name: str) -> List[Dict[str, Any]]:
        return [p for e, p in self.events if e == name]


class CountingSource:
    """Wraps another data source and counts fetches. Raises ``error`` when set."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0
        self.error: Optional[Exception] = None

    async def fetch_latest(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return await self.inner.fetch_latest()


class ScriptedSource:
    """Returns the given results in order, repeating the last one."""

    def __init__(self, results: list):
        self.results = list(results)
        self.calls = 0

    async def fetch_latest(self):
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        return result


class CountingStore(InMemoryKeyValueStore):
    """In-memory store that counts writes and can fail or stall on demand."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.writes = 0
        self.writes_started = 0
        self.fail_reads = False
        self.fail_writes = False
        self.read_delay = 0.0
        self.first_write_delay = 0.0

    async def get(self, key):
        if self.fail_reads:
            raise OSError("storage unavailable")
        value = await super().get(key)
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        return value

    async def set(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        self.writes_started += 1
        if self.writes_started == 1 and self.first_write_delay:
            await asyncio.sleep(self.first_write_delay)
        self.writes += 1
        await super().set(key, value)


def make_detail(score: float, detail_id: str = "d1", generated_at: int = NOW) -> PredictionDetail:
    level, label = derive_level(score)
    return PredictionDetail(
        id=detail_id,
        score=score,
        level=level,
        label=label,
        confidence=0.8,
        generated_at=generated_at,
        factors=[
            RiskFactor(id="a", category="Mood", label="A", weight=0.3, description="", suggestion=""),
            RiskFactor(id="b", category="Routine", label="B", weight=0.1, description="", suggestion=""),
        ],
        interventions=[
            InterventionSuggestion(
                id="breathing_box", title="Box breathing", emoji="🫁", benefit="calm",
                estimated_minutes=3, type=InterventionType.BREATHING,
            ),
            InterventionSuggestion(
                id="gratitude_mini", title="Gratitude", emoji="🙏", benefit="focus",
                estimated_minutes=2, type=InterventionType.JOURNAL,
            ),
        ],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def source(clock):
    return CountingSource(MockPredictionDataSource(rng=random.Random(42), clock=clock))


@pytest.fixture
def make_manager(store, notifier, telemetry, clock):
    """Factory so tests can swap in their own data source."""

    def _make(data_source, **kwargs) -> PredictionStateManager:
        kwargs.setdefault("delay_s", 0)
        kwargs.setdefault("ttl_ms", TTL_MS)
        return PredictionStateManager(
            data_source=data_source,
            store=store,
            level_change=LevelChangeDetector(notifier, telemetry),
            telemetry=telemetry,
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def manager(make_manager, source):
    return make_manager(source)
