from __future__ import annotations

import logging
from typing import Optional

from app.schemas.prediction import RiskLevel
from app.services.notifications import Notifier, Telemetry, TelemetryEvent

logger = logging.getLogger(__name__)


def level_changed(previous: Optional[RiskLevel], next_level: RiskLevel) -> bool:
    """True only when a previous level exists and differs (equality, not magnitude)."""
    return previous is not None and previous != next_level


def format_level_change(previous: RiskLevel, next_level: RiskLevel) -> str:
    return f"Level changed: {previous} → {next_level}"


class LevelChangeDetector:
    """Raises a toast and a telemetry event whenever the risk level moves.

    Stateless: calling twice with the same pair notifies twice.
    """

    def __init__(self, notifier: Notifier, telemetry: Telemetry, duration_ms: int = 4000):
        self.notifier = notifier
        self.telemetry = telemetry
        self.duration_ms = duration_ms

    def on_level_transition(self, previous: Optional[RiskLevel], next_level: RiskLevel) -> bool:
        if not level_changed(previous, next_level):
            return False

        logger.info("Risk level changed %s -> %s", previous, next_level)
        self.telemetry.track(
            TelemetryEvent.RISK_LEVEL_CHANGE,
            {"from": str(previous), "to": str(next_level)},
        )
        self.notifier.show(
            format_level_change(previous, next_level),
            type="info",
            duration_ms=self.duration_ms,
        )
        return True
