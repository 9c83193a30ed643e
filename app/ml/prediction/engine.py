from __future__ import annotations

import random
from typing import Callable, List, Optional, Tuple

from app.ml.prediction.catalog import FACTOR_CATALOG, INTERVENTION_CATALOG
from app.schemas.prediction import (
    InterventionSuggestion,
    PredictionDetail,
    RiskFactor,
    RiskLevel,
)
from app.utils.time import now_ms


BASE_SCORE_RANGE = (0.20, 0.85)
JITTER_SPAN = 0.05
SCORE_FLOOR = 0.05
SCORE_CEIL = 0.95
CONFIDENCE_RANGE = (0.55, 0.95)

MEDIUM_THRESHOLD = 0.40
HIGH_THRESHOLD = 0.70

LEVEL_LABELS = {
    RiskLevel.LOW: "balanced",
    RiskLevel.MEDIUM: "mild attention",
    RiskLevel.HIGH: "attention signal",
}


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(x)))


def derive_level(score: float) -> Tuple[RiskLevel, str]:
    """Map a score to its level and label. Total over all reals."""
    if score < MEDIUM_THRESHOLD:
        level = RiskLevel.LOW
    elif score < HIGH_THRESHOLD:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.HIGH
    return level, LEVEL_LABELS[level]


def draw_score(rng: random.Random) -> float:
    base = rng.uniform(*BASE_SCORE_RANGE)
    jitter = (rng.random() - 0.5) * JITTER_SPAN
    return clamp(base + jitter, SCORE_FLOOR, SCORE_CEIL)


def build_factors(rng: random.Random) -> List[RiskFactor]:
    """Weight every catalog factor inside its own range, strongest first."""
    factors = [
        RiskFactor(
            id=item["id"],
            category=item["category"],
            label=item["label"],
            weight=rng.uniform(*item["weight_range"]),
            description=item["description"],
            suggestion=item["suggestion"],
        )
        for item in FACTOR_CATALOG
    ]
    factors.sort(key=lambda f: f.weight, reverse=True)
    return factors


def build_interventions() -> List[InterventionSuggestion]:
    return [InterventionSuggestion(**item, completed=False) for item in INTERVENTION_CATALOG]


def generate_prediction(
    rng: Optional[random.Random] = None,
    clock: Callable[[], int] = now_ms,
) -> PredictionDetail:
    """Produce one randomized PredictionDetail.

    Placeholder scorer with the shape a real model would fill: bounded score,
    threshold-derived level, independent confidence, weighted factors sorted
    descending, and a fresh (uncompleted) set of interventions.
    Pass a seeded ``random.Random`` for reproducible output.
    """
    rng = rng or random.Random()

    score = draw_score(rng)
    level, label = derive_level(score)
    confidence = rng.uniform(*CONFIDENCE_RANGE)
    generated_at = clock()

    return PredictionDetail(
        id=f"{generated_at}-{rng.getrandbits(32):08x}",
        score=score,
        level=level,
        label=label,
        confidence=confidence,
        generated_at=generated_at,
        factors=build_factors(rng),
        interventions=build_interventions(),
    )
