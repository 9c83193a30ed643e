"""Where PredictionDetails come from: the bundled mock generator or the remote API."""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests
from pydantic import ValidationError

from app.config import ApiSourceSettings, Settings
from app.ml.prediction.engine import LEVEL_LABELS, generate_prediction
from app.schemas.prediction import (
    InsufficientDataState,
    InterventionSuggestion,
    InterventionType,
    PredictionDetail,
    PredictionResult,
    RiskFactor,
    RiskLevel,
)
from app.utils.time import iso_to_ms, now_ms

logger = logging.getLogger(__name__)


class PredictionFetchError(Exception):
    """The data source could not produce a result (network, timeout, bad payload)."""


class PredictionDataSource(Protocol):
    async def fetch_latest(self) -> PredictionResult:
        ...


class MockPredictionDataSource:
    def __init__(self, rng: Optional[random.Random] = None, clock: Callable[[], int] = now_ms):
        self.rng = rng or random.Random()
        self.clock = clock

    def generate(self) -> PredictionDetail:
        return generate_prediction(self.rng, self.clock)

    async def fetch_latest(self) -> PredictionResult:
        return self.generate()


# ---------------------------------------------------------------------------
# Remote API mapping
# ---------------------------------------------------------------------------

DEFAULT_SUGGESTIONS = [
    "Log your mood at least 3 times",
    "Write at least 2 journal entries",
    "Use the app for a few days so patterns can emerge",
]
REQUIRED_ACTIONS = [
    "Log your mood daily",
    "Write journal entries",
    "Wait a few days for the analysis",
]
NOT_ENOUGH_DATA = "We don't have enough data yet to build your personal analysis."

FACTOR_TYPES: Dict[str, Dict[str, str]] = {
    "mood_decline": {
        "category": "Mood",
        "label": "Recent mood swings",
        "suggestion": "Note possible triggers right after logging your mood",
    },
    "negative_sentiment": {
        "category": "Writing",
        "label": "Negative sentiment in journal",
        "suggestion": "Practice cognitive reframing",
    },
    "stress_keywords": {
        "category": "Language",
        "label": "Stress keywords",
        "suggestion": "Breathing and mindfulness exercises",
    },
    "journal_frequency": {
        "category": "Behavior",
        "label": "Check-in frequency",
        "suggestion": "Set a gentle daily reminder",
    },
    "temporal_trend": {
        "category": "Trend",
        "label": "Trend over time",
        "suggestion": "Keep an eye on patterns over time",
    },
}
FALLBACK_FACTOR = {
    "category": "Analysis",
    "label": "Analysis factor",
    "suggestion": "Keep up your self-care practices",
}

INTERVENTION_TYPES = {
    "breathing": InterventionType.BREATHING,
    "journaling": InterventionType.JOURNAL,
    "journal": InterventionType.JOURNAL,
    "professional_help": InterventionType.MINDFULNESS,
    "emergency_contact": InterventionType.MINDFULNESS,
    "mindfulness": InterventionType.MINDFULNESS,
}
INTERVENTION_EMOJI = {
    "breathing": "🫁",
    "journaling": "📝",
    "journal": "📝",
    "professional_help": "👨‍⚕️",
    "emergency_contact": "📞",
    "self_care": "🧘",
}


def insufficient_data(message: str, suggestions: Optional[List[str]] = None) -> InsufficientDataState:
    return InsufficientDataState(
        message=message,
        suggestions=suggestions or list(DEFAULT_SUGGESTIONS),
        required_actions=list(REQUIRED_ACTIONS),
    )


def map_risk_level(raw: Optional[str]) -> RiskLevel:
    """Backend levels to ours; ``critical`` folds into high, unknown into medium."""
    value = (raw or "").lower()
    if value == "low":
        return RiskLevel.LOW
    if value in ("high", "critical"):
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if data.get(k) is not None:
            return data[k]
    return default


def map_factor(raw: Dict[str, Any], index: int) -> RiskFactor:
    ftype = raw.get("type") or ""
    meta = FACTOR_TYPES.get(ftype, FALLBACK_FACTOR)
    description = str(raw.get("description") or "Analysis factor")
    description = description.replace("NaN", "still being analyzed")
    return RiskFactor(
        id=ftype or raw.get("id") or f"factor_{index}",
        category=meta["category"],
        label=meta["label"],
        weight=float(raw.get("weight") or 0.0),
        description=description,
        suggestion=meta["suggestion"],
    )


def map_intervention(raw: Dict[str, Any], index: int) -> InterventionSuggestion:
    itype = str(raw.get("type") or "").lower()
    return InterventionSuggestion(
        id=raw.get("id") or f"intervention_{index}",
        title=raw.get("title") or "Recommended activity",
        emoji=INTERVENTION_EMOJI.get(itype, "💡"),
        benefit=raw.get("description") or "Supports emotional wellbeing",
        estimated_minutes=int(_first(raw, "estimated_time", "estimatedTime", default=5)),
        type=INTERVENTION_TYPES.get(itype, InterventionType.REFRAME),
        completed=False,
    )


def map_api_prediction(data: Dict[str, Any], clock: Callable[[], int] = now_ms) -> PredictionDetail:
    """Translate a backend prediction payload (snake or camel case) into a PredictionDetail."""
    level = map_risk_level(_first(data, "risk_level", "riskLevel"))
    factors = [map_factor(f, i) for i, f in enumerate(data.get("factors") or [])]
    factors.sort(key=lambda f: f.weight, reverse=True)
    interventions = [map_intervention(it, i) for i, it in enumerate(data.get("interventions") or [])]

    generated_at = iso_to_ms(_first(data, "created_at", "createdAt")) or clock()
    return PredictionDetail(
        id=str(data.get("id") or f"pred_{generated_at}"),
        score=float(_first(data, "risk_score", "riskScore", default=0.0)),
        level=level,
        label=LEVEL_LABELS[level],
        confidence=float(_first(data, "confidence_score", "confidenceScore", default=0.0)),
        generated_at=generated_at,
        factors=factors,
        interventions=interventions,
    )


class ApiPredictionDataSource:
    """Fetches the latest prediction from the backend over HTTP.

    Missing auth, 404 and explicit ``success: false`` answers become an
    InsufficientDataState. Transport failures, timeouts and malformed payloads
    raise PredictionFetchError once retries are exhausted.
    """

    def __init__(
        self,
        settings: ApiSourceSettings,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        token_refresher: Optional[Callable[[], bool]] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.token_provider = token_provider or (lambda: settings.auth_token)
        self.token_refresher = token_refresher
        self.session = session or requests.Session()
        self.sleep = sleep

    @property
    def url(self) -> str:
        return self.settings.base_url.rstrip("/") + self.settings.endpoint

    async def fetch_latest(self) -> PredictionResult:
        return await asyncio.to_thread(self.fetch_latest_sync)

    def fetch_latest_sync(self) -> PredictionResult:
        token = self.token_provider()
        if not token:
            logger.warning("No auth token available for prediction fetch")
            return insufficient_data("You need to be signed in to see your wellness analysis.")

        resp = self._get(token, self.settings.retries)

        if resp.status_code == 401:
            logger.info("Prediction fetch got 401, attempting token refresh")
            if self.token_refresher is not None and self.token_refresher():
                resp = self._get(self.token_provider() or "", 1)
            if resp.status_code == 401:
                return insufficient_data("Session expired. Please sign in again.")

        if resp.status_code == 404:
            return insufficient_data(
                NOT_ENOUGH_DATA,
                [
                    "Keep logging your mood daily",
                    "Write at least 2-3 journal entries",
                    "Use the app on a few consecutive days",
                    "Come back in a few days to see your analysis",
                ],
            )

        if not resp.ok:
            raise PredictionFetchError(f"Prediction API returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise PredictionFetchError("Prediction API returned invalid JSON") from e

        return self._parse_body(body)

    def _get(self, token: str, attempts: int) -> requests.Response:
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                resp = self.session.get(self.url, headers=headers, timeout=self.settings.timeout_s)
                if resp.status_code < 500:
                    return resp
                last_error = PredictionFetchError(f"Prediction API returned HTTP {resp.status_code}")
            except requests.RequestException as e:
                last_error = e

            logger.warning("Prediction fetch attempt %d/%d failed: %s", attempt + 1, attempts, last_error)
            if attempt + 1 < attempts:
                self.sleep(self.settings.retry_delay_s * (2 ** attempt))

        raise PredictionFetchError(f"Prediction fetch failed after {attempts} attempts") from last_error

    def _parse_body(self, body: Any) -> PredictionResult:
        if not isinstance(body, dict):
            raise PredictionFetchError("Prediction API returned an unexpected payload")

        if "success" in body:
            if body["success"] is True and body.get("data"):
                payload = body["data"]
            elif body["success"] is False:
                logger.warning("Prediction API reported failure: %s", body.get("message"))
                return insufficient_data(body.get("message") or NOT_ENOUGH_DATA)
            else:
                payload = body
        else:
            payload = body

        try:
            return map_api_prediction(payload)
        except (ValidationError, AttributeError, TypeError, ValueError) as e:
            raise PredictionFetchError(f"Could not map prediction payload: {e}") from e


def build_data_source(settings: Settings) -> PredictionDataSource:
    if settings.engine.data_source == "api":
        return ApiPredictionDataSource(settings.api)
    seed = settings.engine.mock_seed
    return MockPredictionDataSource(rng=random.Random(seed) if seed is not None else None)
