"""Cached, persisted prediction state and the only operations allowed to change it."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Union

from app.schemas.prediction import (
    InsufficientDataState,
    InsufficientDataView,
    PredictionDetail,
    PredictionState,
    ReadyView,
)
from app.services.data_source import PredictionDataSource
from app.services.level_change import LevelChangeDetector
from app.services.notifications import Telemetry, TelemetryEvent
from app.services.prediction_store import KeyValueStore
from app.utils.time import now_ms

logger = logging.getLogger(__name__)

STORAGE_KEY = "prediction_state_v2"
TTL_MS = 3 * 60 * 60 * 1000
HISTORY_LIMIT = 20
ARTIFICIAL_DELAY_S = 0.4


class StateLoadError(Exception):
    """A persisted record exists but cannot be turned back into a PredictionState."""


def dump_state(state: PredictionState) -> str:
    """Serialize for storage. ``loading`` never survives a restart, so it is written as false."""
    return state.model_copy(update={"loading": False}).model_dump_json()


def load_state(raw: str) -> PredictionState:
    try:
        state = PredictionState.model_validate_json(raw)
    except ValueError as e:
        raise StateLoadError(str(e)) from e
    return state.model_copy(update={"loading": False})


class PredictionStateManager:
    """Owns the single PredictionState of a session.

    Every mutation replaces the whole state object and is followed by a
    whole-state write to the store. ``loading`` doubles as the in-flight
    guard: at most one regeneration runs at a time and extra triggers are
    dropped, not queued.
    """

    def __init__(
        self,
        data_source: PredictionDataSource,
        store: KeyValueStore,
        level_change: LevelChangeDetector,
        telemetry: Telemetry,
        *,
        storage_key: str = STORAGE_KEY,
        ttl_ms: int = TTL_MS,
        history_limit: int = HISTORY_LIMIT,
        delay_s: float = ARTIFICIAL_DELAY_S,
        clock: Callable[[], int] = now_ms,
    ):
        self.data_source = data_source
        self.store = store
        self.level_change = level_change
        self.telemetry = telemetry
        self.storage_key = storage_key
        self.ttl_ms = ttl_ms
        self.history_limit = history_limit
        self.delay_s = delay_s
        self.clock = clock

        self._state = PredictionState()
        self._initialized = False
        self._task: Optional[asyncio.Task] = None
        # bumped whenever prediction content (not flags) changes in this session
        self._revision = 0
        self._persist_lock: Optional[asyncio.Lock] = None

    @property
    def state(self) -> PredictionState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state.loading

    def is_fresh(self, state: Optional[PredictionState] = None) -> bool:
        """A state is fresh only while it holds a prediction younger than the TTL."""
        s = state if state is not None else self._state
        if s.current is None or s.last_updated is None:
            return False
        return self.clock() - s.last_updated < self.ttl_ms

    def view(self) -> Union[ReadyView, InsufficientDataView]:
        s = self._state
        if s.insufficient_data is not None:
            return InsufficientDataView(
                insufficient_data=s.insufficient_data,
                loading=s.loading,
                onboarding_seen=s.onboarding_seen,
                last_updated=s.last_updated,
            )
        return ReadyView(state=s)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Adopt any persisted state, then schedule a regeneration if it is stale or absent."""
        if self._initialized:
            return
        self._initialized = True

        revision = self._revision
        restored = await self._restore()
        if restored is not None:
            await self._adopt(restored, superseded=self._revision != revision)

        if self._state.loading or self.is_fresh():
            return

        logger.info("Prediction state %s, regenerating", "stale" if restored is not None else "absent")
        self._schedule_regenerate()

    async def _adopt(self, restored: PredictionState, superseded: bool) -> None:
        """Merge a persisted record into the session state.

        When this session already produced or edited a prediction while the
        read was suspended, the in-memory content wins and only the
        onboarding latch is carried over.
        """
        onboarding_seen = restored.onboarding_seen or self._state.onboarding_seen
        if superseded:
            logger.info("Persisted prediction state superseded in-session, keeping current one")
            if onboarding_seen and not self._state.onboarding_seen:
                self._state = self._state.model_copy(update={"onboarding_seen": True})
                await self._persist()
            return

        self._state = restored.model_copy(
            update={"loading": self._state.loading, "onboarding_seen": onboarding_seen}
        )
        logger.info("Restored prediction state (last_updated=%s)", restored.last_updated)
        if onboarding_seen != restored.onboarding_seen:
            # the latch was written over the record while it was being read
            await self._persist()

    async def initialize_if_needed(self) -> None:
        """Lazy entry point for the first render of a prediction surface."""
        if not self._initialized:
            await self.initialize()
            return
        if self._state.loading or self.is_fresh():
            return
        await self.regenerate()

    async def wait_until_idle(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    def _schedule_regenerate(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self.regenerate())

    async def _restore(self) -> Optional[PredictionState]:
        try:
            raw = await self.store.get(self.storage_key)
        except Exception:
            logger.warning("Could not read persisted prediction state", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return load_state(raw)
        except StateLoadError as e:
            logger.warning("Discarding unreadable prediction state: %s", e)
            return None

    # ------------------------------------------------------------------
    # regeneration
    # ------------------------------------------------------------------

    async def regenerate(self) -> None:
        if self._state.loading:
            logger.debug("Regeneration already in flight, ignoring trigger")
            return
        self._state = self._state.model_copy(update={"loading": True})

        try:
            await asyncio.sleep(self.delay_s)
            result = await self.data_source.fetch_latest()
        except Exception:
            logger.exception("Prediction data source failed, keeping last known state")
            self._state = self._state.model_copy(update={"loading": False})
            return

        if isinstance(result, InsufficientDataState):
            await self._apply_insufficient(result)
            return

        await self._apply_detail(result)

    async def refresh(self) -> None:
        """Manual trigger. Dropped silently while a regeneration is in flight."""
        if self._state.loading:
            return
        await self.regenerate()

    async def _apply_detail(self, detail: PredictionDetail) -> None:
        s = self._state
        previous_level = s.current.level if s.current is not None else None
        summary = detail.summary()

        self._state = PredictionState(
            current=summary,
            history=[summary, *s.history][: self.history_limit],
            factors=list(detail.factors),
            interventions=list(detail.interventions),
            loading=False,
            last_updated=self.clock(),
            onboarding_seen=s.onboarding_seen,
            insufficient_data=None,
        )
        self._revision += 1
        logger.info("New prediction %s level=%s score=%.2f", summary.id, summary.level, summary.score)

        await self._persist()
        self.level_change.on_level_transition(previous_level, summary.level)

    async def _apply_insufficient(self, result: InsufficientDataState) -> None:
        logger.info("Insufficient data for prediction: %s", result.message)
        self._revision += 1
        self._state = self._state.model_copy(
            update={
                "current": None,
                "factors": [],
                "interventions": [],
                "loading": False,
                "last_updated": self.clock(),
                "insufficient_data": result,
            }
        )
        await self._persist()

    async def _persist(self) -> None:
        """Write the whole state. Writes are serialized and snapshot the state only
        once they hold the lock, so the newest state always lands last."""
        if self._persist_lock is None:
            self._persist_lock = asyncio.Lock()
        async with self._persist_lock:
            try:
                await self.store.set(self.storage_key, dump_state(self._state))
            except Exception:
                logger.warning("Could not persist prediction state, keeping it in memory only", exc_info=True)

    # ------------------------------------------------------------------
    # user mutations
    # ------------------------------------------------------------------

    async def mark_intervention_completed(self, intervention_id: str) -> bool:
        """Flag one suggestion as done. Unknown ids are ignored; returns whether the id exists."""
        interventions = self._state.interventions
        target = next((i for i in interventions if i.id == intervention_id), None)
        if target is None:
            return False
        if target.completed:
            return True

        self._state = self._state.model_copy(
            update={
                "interventions": [
                    i.model_copy(update={"completed": True}) if i.id == intervention_id else i
                    for i in interventions
                ]
            }
        )
        self._revision += 1
        self.telemetry.track(TelemetryEvent.INTERVENTION_COMPLETE, {"id": intervention_id})
        await self._persist()
        return True

    async def mark_onboarding_seen(self) -> None:
        if self._state.onboarding_seen:
            return
        self._state = self._state.model_copy(update={"onboarding_seen": True})
        self.telemetry.track(TelemetryEvent.ONBOARDING_DISMISS, {})
        await self._persist()
