"""Fire-and-forget side-effect ports: user-visible toasts and telemetry."""
from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from app.utils.time import now_ms

logger = logging.getLogger(__name__)


class TelemetryEvent(str, Enum):
    RISK_LEVEL_CHANGE = "prediction_risk_level_change"
    INTERVENTION_COMPLETE = "prediction_intervention_complete"
    DASHBOARD_REFRESH = "prediction_dashboard_refresh"
    ONBOARDING_DISMISS = "prediction_onboarding_dismiss"

    def __str__(self) -> str:
        return self.value


class Notifier(Protocol):
    def show(self, message: str, *, type: str = "info", duration_ms: int = 4000) -> None:
        ...


class Telemetry(Protocol):
    def track(self, event: TelemetryEvent, payload: Optional[Dict[str, Any]] = None) -> None:
        ...


class LogNotifier:
    """Logs each toast and keeps the most recent ones for the UI to poll."""

    def __init__(self, maxlen: int = 50, clock: Callable[[], int] = now_ms):
        self._feed: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self._clock = clock

    def show(self, message: str, *, type: str = "info", duration_ms: int = 4000) -> None:
        logger.info("toast[%s] %s", type, message)
        self._feed.appendleft(
            {
                "message": message,
                "type": type,
                "duration_ms": duration_ms,
                "shown_at": self._clock(),
            }
        )

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Newest first."""
        return list(self._feed)[:limit]


class LogTelemetry:
    """Telemetry sink that only logs. Replace with a real analytics client."""

    def track(self, event: TelemetryEvent, payload: Optional[Dict[str, Any]] = None) -> None:
        logger.info("telemetry %s %s", event, payload or {})
