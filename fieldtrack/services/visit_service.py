import logging
import math
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldtrack.core.clock import system_clock
from fieldtrack.core.config import settings
from fieldtrack.core.errors import (
    AlreadyEnded,
    Forbidden,
    InvalidAmount,
    InvalidLocation,
    NotFound,
    VisitAlreadyOpen,
)
from fieldtrack.models.client import Client
from fieldtrack.models.visit import Visit
from fieldtrack.services.business_hours import zone_for
from fieldtrack.services.geo_matcher import candidates_from_clients, match, valid_point
from fieldtrack.services.user_locks import user_locks

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown location"


def duration_minutes(start_time: datetime, end_time: datetime) -> int:
    minutes = (end_time - start_time).total_seconds() / 60.0
    # Half-up rounding, never negative
    return max(0, int(math.floor(minutes + 0.5)))


def _validate_billable_amount(value) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidAmount("Billable amount must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidAmount("Billable amount must be a number")
    if not math.isfinite(amount) or amount < 0:
        raise InvalidAmount("Billable amount must be a non-negative number")
    return amount


def get_owned_client(db: Session, client_id: int, user_id: int) -> Client:
    client = db.query(Client).filter(Client.id == client_id).first()

    if not client:
        raise NotFound("Client", client_id)

    if client.user_id != user_id:
        raise Forbidden("Client", client_id)

    return client


def get_visit(db: Session, visit_id: int, user_id: int) -> Visit:
    visit = db.query(Visit).filter(Visit.id == visit_id).first()

    if not visit:
        raise NotFound("Visit", visit_id)

    if visit.user_id != user_id:
        raise Forbidden("Visit", visit_id)

    return visit


def current_open_visit(db: Session, user_id: int) -> Visit | None:
    return (
        db.query(Visit)
        .filter(
            Visit.user_id == user_id,
            Visit.end_time.is_(None)
        )
        .order_by(Visit.id.asc())
        .first()
    )


# =========================
# CHECK-IN
# =========================
def start_visit(
    db: Session,
    user_id: int,
    latitude,
    longitude,
    address: str | None = None,
    client_id: int | None = None,
    service_type: str | None = None,
    service_details: str | None = None,
    billable_amount: float | None = None,
    notes: str | None = None,
    radius_km: float | None = None,
    clock=system_clock,
) -> Visit:
    point = valid_point(latitude, longitude)
    if point is None:
        raise InvalidLocation(
            "Latitude and longitude are required",
            {"latitude": latitude, "longitude": longitude},
        )

    billable_amount = _validate_billable_amount(billable_amount)
    if radius_km is None:
        radius_km = settings.MATCH_RADIUS_KM

    with user_locks.hold(user_id):
        existing = current_open_visit(db, user_id)
        if existing is not None:
            raise VisitAlreadyOpen(
                "An active visit already exists",
                {"visit_id": existing.id},
            )

        clients = (
            db.query(Client)
            .filter(Client.user_id == user_id)
            .order_by(Client.id.asc())
            .all()
        )
        matched_id = match(point, candidates_from_clients(clients), radius_km)
        matched_client = next((c for c in clients if c.id == matched_id), None)

        # Location match wins over whatever the caller picked
        if matched_client is not None:
            final_client_id = matched_client.id
        elif client_id is not None:
            final_client_id = get_owned_client(db, client_id, user_id).id
        else:
            final_client_id = None

        if matched_client is not None and matched_client.address:
            visit_address = matched_client.address
        else:
            visit_address = (address or "").strip() or UNKNOWN_LOCATION

        now = clock.now()
        visit = Visit(
            user_id=user_id,
            client_id=final_client_id,
            address=visit_address,
            date=now,
            start_time=now,
            end_time=None,
            duration=None,
            latitude=point.latitude,
            longitude=point.longitude,
            is_known_location=matched_client is not None,
            has_invoice=False,
            service_type=service_type,
            service_details=service_details,
            billable_amount=billable_amount,
            notes=notes,
        )

        db.add(visit)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = current_open_visit(db, user_id)
            if existing is None:
                raise
            raise VisitAlreadyOpen(
                "An active visit already exists",
                {"visit_id": existing.id},
            )
        db.refresh(visit)

    logger.info(
        "Visit %s started for user %s (client=%s, known=%s)",
        visit.id, user_id, visit.client_id, visit.is_known_location,
    )
    return visit


# =========================
# CHECK-OUT
# =========================
def end_visit(db: Session, visit_id: int, user_id: int, clock=system_clock) -> Visit:
    with user_locks.hold(user_id):
        visit = get_visit(db, visit_id, user_id)

        if visit.end_time is not None:
            raise AlreadyEnded("Visit already ended", {"visit_id": visit_id})

        end_time = clock.now()
        duration = duration_minutes(visit.start_time, end_time)

        # Conditional write: only an open visit can be closed
        updated = (
            db.query(Visit)
            .filter(
                Visit.id == visit.id,
                Visit.end_time.is_(None)
            )
            .update(
                {Visit.end_time: end_time, Visit.duration: duration},
                synchronize_session=False,
            )
        )
        if not updated:
            db.rollback()
            raise AlreadyEnded("Visit already ended", {"visit_id": visit_id})

        db.commit()
        db.refresh(visit)

    logger.info("Visit %s ended for user %s after %s min", visit.id, user_id, visit.duration)
    return visit


# =========================
# QUERIES
# =========================
def uninvoiced_visits(
    db: Session,
    user_id: int,
    since: datetime | None = None,
    until: datetime | None = None,
    newest_first: bool = False,
) -> list[Visit]:
    query = db.query(Visit).filter(
        Visit.user_id == user_id,
        Visit.has_invoice == False,  # noqa: E712
        Visit.end_time.isnot(None)
    )

    if since:
        query = query.filter(Visit.start_time >= since)

    if until:
        query = query.filter(Visit.start_time < until)

    order = Visit.id.desc() if newest_first else Visit.id.asc()
    return query.order_by(order).all()


def list_visits(
    db: Session,
    user_id: int,
    client_id: int | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[Visit]:
    query = db.query(Visit).filter(Visit.user_id == user_id)

    if client_id is not None:
        query = query.filter(Visit.client_id == client_id)

    if since:
        query = query.filter(Visit.start_time >= since)

    if until:
        query = query.filter(Visit.start_time < until)

    return query.order_by(Visit.start_time.desc(), Visit.id.desc()).all()


def local_day_bounds(day: date, tz_name: str | None) -> tuple[datetime, datetime]:
    """Naive-UTC ``[start, end)`` of a calendar day in the user's timezone."""

    zone = zone_for(tz_name)
    start = datetime.combine(day, time.min).replace(tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min).replace(tzinfo=zone)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )
