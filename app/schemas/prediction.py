from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __str__(self) -> str:
        return self.value


class InterventionType(str, Enum):
    BREATHING = "breathing"
    REFRAME = "reframe"
    JOURNAL = "journal"
    MINDFULNESS = "mindfulness"

    def __str__(self) -> str:
        return self.value


class PredictionSummary(BaseModel):
    """One generation cycle's headline result. Superseded, never edited."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float = Field(..., ge=0.0, le=1.0)
    level: RiskLevel
    label: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    generated_at: int = Field(..., description="Milliseconds since epoch")


class RiskFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    category: str
    label: str
    weight: float
    description: str
    suggestion: str


class InterventionSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    emoji: str
    benefit: str
    estimated_minutes: int = Field(..., ge=0)
    type: InterventionType
    completed: bool = False


class PredictionDetail(PredictionSummary):
    type: Literal["prediction"] = "prediction"
    factors: List[RiskFactor] = Field(default_factory=list)
    interventions: List[InterventionSuggestion] = Field(default_factory=list)

    def summary(self) -> PredictionSummary:
        return PredictionSummary(
            id=self.id,
            score=self.score,
            level=self.level,
            label=self.label,
            confidence=self.confidence,
            generated_at=self.generated_at,
        )


class InsufficientDataState(BaseModel):
    """Returned instead of a detail when no meaningful score can be produced yet."""

    model_config = ConfigDict(frozen=True)

    type: Literal["insufficient_data"] = "insufficient_data"
    message: str
    suggestions: List[str] = Field(default_factory=list)
    required_actions: List[str] = Field(default_factory=list)


PredictionResult = Annotated[
    Union[PredictionDetail, InsufficientDataState],
    Field(discriminator="type"),
]


class PredictionState(BaseModel):
    """Root of truth held by the state manager. Replaced wholesale on every change."""

    current: Optional[PredictionSummary] = None
    history: List[PredictionSummary] = Field(default_factory=list)
    factors: List[RiskFactor] = Field(default_factory=list)
    interventions: List[InterventionSuggestion] = Field(default_factory=list)
    loading: bool = False
    last_updated: Optional[int] = None
    onboarding_seen: bool = False
    insufficient_data: Optional[InsufficientDataState] = None


class ReadyView(BaseModel):
    kind: Literal["prediction"] = "prediction"
    state: PredictionState


class InsufficientDataView(BaseModel):
    kind: Literal["insufficient_data"] = "insufficient_data"
    insufficient_data: InsufficientDataState
    loading: bool
    onboarding_seen: bool
    last_updated: Optional[int] = None


PredictionView = Annotated[
    Union[ReadyView, InsufficientDataView],
    Field(discriminator="kind"),
]


class InterventionCompleteResponse(BaseModel):
    id: str
    completed: bool


class NotificationOut(BaseModel):
    message: str
    type: str
    duration_ms: int
    shown_at: int
