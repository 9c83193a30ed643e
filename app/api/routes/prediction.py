from __future__ import annotations

from typing import List, Union

from fastapi import APIRouter, Depends, HTTPException, Request

from app.schemas.prediction import (
    InsufficientDataView,
    InterventionCompleteResponse,
    NotificationOut,
    ReadyView,
)
from app.services.notifications import LogNotifier, Telemetry, TelemetryEvent
from app.services.prediction_state import PredictionStateManager


router = APIRouter(prefix="/prediction", tags=["prediction"])

ViewOut = Union[ReadyView, InsufficientDataView]


def get_manager(request: Request) -> PredictionStateManager:
    return request.app.state.prediction


def get_notifier(request: Request) -> LogNotifier:
    return request.app.state.notifier


def get_telemetry(request: Request) -> Telemetry:
    return request.app.state.telemetry


@router.get("/state", response_model=ViewOut)
def read_state(manager: PredictionStateManager = Depends(get_manager)) -> ViewOut:
    """Current state as a tagged view. ``state.current`` may be stale while ``loading`` is true."""
    return manager.view()


@router.post("/initialize", response_model=ViewOut)
async def initialize(manager: PredictionStateManager = Depends(get_manager)) -> ViewOut:
    try:
        await manager.initialize_if_needed()
        await manager.wait_until_idle()
        return manager.view()
    except Exception as e:  # pragma: no cover - engine degrades instead of raising
        raise HTTPException(status_code=500, detail=f"Initialization failed: {e}")


@router.post("/refresh", response_model=ViewOut)
async def refresh(
    manager: PredictionStateManager = Depends(get_manager),
    telemetry: Telemetry = Depends(get_telemetry),
) -> ViewOut:
    telemetry.track(TelemetryEvent.DASHBOARD_REFRESH, {})
    await manager.refresh()
    return manager.view()


@router.post("/interventions/{intervention_id}/complete", response_model=InterventionCompleteResponse)
async def complete_intervention(
    intervention_id: str,
    manager: PredictionStateManager = Depends(get_manager),
) -> InterventionCompleteResponse:
    found = await manager.mark_intervention_completed(intervention_id)
    return InterventionCompleteResponse(id=intervention_id, completed=found)


@router.post("/onboarding/seen", response_model=ViewOut)
async def onboarding_seen(manager: PredictionStateManager = Depends(get_manager)) -> ViewOut:
    await manager.mark_onboarding_seen()
    return manager.view()


@router.get("/notifications", response_model=List[NotificationOut])
def notifications(limit: int = 20, notifier: LogNotifier = Depends(get_notifier)) -> List[NotificationOut]:
    return [NotificationOut(**n) for n in notifier.recent(limit)]
