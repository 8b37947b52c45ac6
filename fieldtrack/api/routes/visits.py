from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from fieldtrack.core.dependencies import get_clock, get_current_user, get_db, get_geocoder
from fieldtrack.models.user import User
from fieldtrack.schemas.visit import VisitResponse, VisitStart
from fieldtrack.services import visit_service
from fieldtrack.services.audit_service import log_action
from fieldtrack.services.geo_matcher import valid_point


router = APIRouter(prefix="/visits", tags=["Visits"])


@router.get("", response_model=list[VisitResponse])
def get_visits(
    date: Optional[date_type] = Query(default=None),
    client_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    since = until = None
    if date is not None:
        since, until = visit_service.local_day_bounds(date, user.timezone)

    return visit_service.list_visits(
        db, user.id, client_id=client_id, since=since, until=until
    )


# =========================
# CHECK-IN / CHECK-OUT
# =========================
@router.post("/start", status_code=status.HTTP_201_CREATED, response_model=VisitResponse)
def start_visit(
    payload: VisitStart,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
    geocoder=Depends(get_geocoder),
):
    address = payload.address
    if not address and geocoder is not None and valid_point(payload.latitude, payload.longitude):
        address = geocoder(payload.latitude, payload.longitude)

    visit = visit_service.start_visit(
        db,
        user.id,
        payload.latitude,
        payload.longitude,
        address=address,
        client_id=payload.client_id,
        service_type=payload.service_type,
        service_details=payload.service_details,
        billable_amount=payload.billable_amount,
        notes=payload.notes,
        clock=clock,
    )

    log_action(
        db=db,
        user_id=user.id,
        action="START_VISIT",
        entity_type="Visit",
        entity_id=visit.id,
        details=(
            f"Client: {visit.client_id or 'N/A'} | "
            f"Known location: {visit.is_known_location} | Address: {visit.address}"
        ),
    )

    return visit


@router.post("/{visit_id}/end", response_model=VisitResponse)
def end_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    visit = visit_service.end_visit(db, visit_id, user.id, clock=clock)

    log_action(
        db=db,
        user_id=user.id,
        action="END_VISIT",
        entity_type="Visit",
        entity_id=visit.id,
        details=f"Duration: {visit.duration} min"
    )

    return visit


# =========================
# QUERIES
# =========================
@router.get("/current", response_model=VisitResponse)
def get_current_visit(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    visit = visit_service.current_open_visit(db, user.id)

    if not visit:
        raise HTTPException(status_code=404, detail="No active visit found")

    return visit


@router.get("/uninvoiced", response_model=list[VisitResponse])
def get_uninvoiced_visits(
    newest_first: bool = Query(default=False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return visit_service.uninvoiced_visits(db, user.id, newest_first=newest_first)


@router.get("/{visit_id}", response_model=VisitResponse)
def get_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return visit_service.get_visit(db, visit_id, user.id)
