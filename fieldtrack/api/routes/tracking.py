from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fieldtrack.core.dependencies import get_clock, get_current_user, get_db, get_tracking_registry
from fieldtrack.models.user import User
from fieldtrack.schemas.tracking import (
    LocationSampleIn,
    TickResponse,
    TrackingStatusResponse,
)
from fieldtrack.schemas.visit import VisitResponse
from fieldtrack.services.audit_service import log_action
from fieldtrack.services.tracking_service import LocationSample, TrackingRegistry


router = APIRouter(prefix="/tracking", tags=["Tracking"])


def _to_sample(payload: LocationSampleIn, clock) -> LocationSample:
    return LocationSample(
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy=payload.accuracy,
        address=payload.address,
        received_at=clock.now(),
    )


def _log_started(db: Session, user: User, visit, source: str):
    log_action(
        db=db,
        user_id=user.id,
        action="START_VISIT",
        entity_type="Visit",
        entity_id=visit.id,
        details=f"Source: {source} | Known location: {visit.is_known_location}"
    )


@router.get("/status", response_model=TrackingStatusResponse)
def tracking_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry),
):
    return vars(registry.for_user(user).status(db))


@router.post("/samples", response_model=TickResponse)
def record_sample(
    payload: LocationSampleIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry),
    clock=Depends(get_clock),
):
    controller = registry.for_user(user)
    controller.record_sample(_to_sample(payload, clock))

    result = controller.tick(db)
    if result.started_visit is not None:
        _log_started(db, user, result.started_visit, "auto")

    return vars(result)


@router.post("/tick", response_model=TickResponse)
def tick(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry),
):
    result = registry.for_user(user).tick(db)
    if result.started_visit is not None:
        _log_started(db, user, result.started_visit, "auto")

    return vars(result)


@router.post("/start", response_model=VisitResponse)
def start_tracking(
    payload: LocationSampleIn | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry),
    clock=Depends(get_clock),
):
    sample = None
    if payload is not None and (payload.latitude is not None or payload.longitude is not None):
        sample = _to_sample(payload, clock)

    visit = registry.for_user(user).start_manual(db, sample)
    _log_started(db, user, visit, "manual")

    return visit


@router.post("/stop", response_model=VisitResponse | None)
def stop_tracking(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry),
):
    visit = registry.for_user(user).stop_manual(db)

    if visit is not None:
        log_action(
            db=db,
            user_id=user.id,
            action="END_VISIT",
            entity_type="Visit",
            entity_id=visit.id,
            details=f"Source: manual stop | Duration: {visit.duration} min"
        )

    return visit
