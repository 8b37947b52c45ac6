from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from fieldtrack.core.errors import (
    AlreadyEnded,
    Forbidden,
    InvalidAmount,
    InvalidLocation,
    NotFound,
    VisitAlreadyOpen,
)
from fieldtrack.models.visit import Visit
from fieldtrack.services import visit_service
from fieldtrack.services.visit_service import UNKNOWN_LOCATION, duration_minutes


def _start(db, user, clock, latitude=40.0, longitude=-73.0, **kwargs):
    return visit_service.start_visit(db, user.id, latitude, longitude, clock=clock, **kwargs)


def test_start_matches_known_client(db, user, clock, make_client):
    client = make_client(user, address="12 Elm Street")

    visit = _start(db, user, clock, address="somewhere else")

    assert visit.client_id == client.id
    assert visit.is_known_location is True
    assert visit.address == "12 Elm Street"
    assert visit.start_time == clock.now()
    assert visit.end_time is None
    assert visit.duration is None
    assert visit.has_invoice is False


def test_location_match_overrides_explicit_client(db, user, clock, make_client):
    nearby = make_client(user, name="Nearby")
    chosen = make_client(user, name="Chosen", latitude=41.0, longitude=-74.0)

    visit = _start(db, user, clock, client_id=chosen.id)

    assert visit.client_id == nearby.id
    assert visit.is_known_location is True


def test_explicit_client_used_when_nothing_matches(db, user, clock, make_client):
    chosen = make_client(user, latitude=41.0, longitude=-74.0)

    visit = _start(db, user, clock, address="Roadside", client_id=chosen.id)

    assert visit.client_id == chosen.id
    assert visit.is_known_location is False
    assert visit.address == "Roadside"


def test_unmatched_visit_without_address(db, user, clock):
    visit = _start(db, user, clock)

    assert visit.client_id is None
    assert visit.is_known_location is False
    assert visit.address == UNKNOWN_LOCATION


def test_other_users_clients_never_match(db, user, other_user, clock, make_client):
    make_client(other_user)

    visit = _start(db, user, clock)

    assert visit.client_id is None
    assert visit.is_known_location is False


def test_explicit_client_of_other_user_is_forbidden(db, user, other_user, clock, make_client):
    foreign = make_client(other_user, latitude=41.0, longitude=-74.0)

    with pytest.raises(Forbidden):
        _start(db, user, clock, client_id=foreign.id)


@pytest.mark.parametrize("latitude,longitude", [(None, -73.0), (40.0, None), (None, None), (95.0, 0.0)])
def test_start_requires_valid_coordinates(db, user, clock, latitude, longitude):
    with pytest.raises(InvalidLocation):
        _start(db, user, clock, latitude=latitude, longitude=longitude)

    assert db.query(Visit).count() == 0


def test_zero_coordinates_are_accepted(db, user, clock):
    visit = _start(db, user, clock, latitude=0.0, longitude=0.0)
    assert visit.latitude == 0.0
    assert visit.longitude == 0.0


def test_negative_billable_amount_rejected(db, user, clock):
    with pytest.raises(InvalidAmount):
        _start(db, user, clock, billable_amount=-5)


def test_second_start_is_rejected_while_visit_open(db, user, clock):
    first = _start(db, user, clock)

    with pytest.raises(VisitAlreadyOpen) as excinfo:
        _start(db, user, clock, latitude=41.0, longitude=-74.0)

    assert excinfo.value.details == {"visit_id": first.id}
    open_visits = db.query(Visit).filter(Visit.user_id == user.id, Visit.end_time.is_(None)).count()
    assert open_visits == 1


def test_users_have_independent_open_visits(db, user, other_user, clock):
    _start(db, user, clock)
    _start(db, other_user, clock)

    assert visit_service.current_open_visit(db, user.id).user_id == user.id
    assert visit_service.current_open_visit(db, other_user.id).user_id == other_user.id


def test_database_rejects_two_open_visits(db, user, clock):
    now = clock.now()
    for _ in range(2):
        db.add(Visit(user_id=user.id, start_time=now, date=now, latitude=1.0, longitude=1.0))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_current_open_visit_is_idempotent(db, user, clock):
    assert visit_service.current_open_visit(db, user.id) is None

    visit = _start(db, user, clock)

    assert visit_service.current_open_visit(db, user.id).id == visit.id
    assert visit_service.current_open_visit(db, user.id).id == visit.id


def test_end_visit_records_duration(db, user, clock):
    visit = _start(db, user, clock)
    clock.advance(minutes=90)

    ended = visit_service.end_visit(db, visit.id, user.id, clock=clock)

    assert ended.end_time == clock.now()
    assert ended.duration == 90
    assert visit_service.current_open_visit(db, user.id) is None


def test_end_visit_twice_raises_already_ended(db, user, clock):
    visit = _start(db, user, clock)
    clock.advance(minutes=10)
    visit_service.end_visit(db, visit.id, user.id, clock=clock)
    clock.advance(minutes=10)

    with pytest.raises(AlreadyEnded):
        visit_service.end_visit(db, visit.id, user.id, clock=clock)

    db.refresh(visit)
    assert visit.duration == 10


def test_end_visit_ownership(db, user, other_user, clock):
    visit = _start(db, user, clock)

    with pytest.raises(Forbidden):
        visit_service.end_visit(db, visit.id, other_user.id, clock=clock)

    with pytest.raises(NotFound):
        visit_service.end_visit(db, 9999, user.id, clock=clock)


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, 0), (29, 0), (30, 1), (89 * 60 + 29, 89), (89 * 60 + 30, 90), (-120, 0)],
)
def test_duration_rounds_half_up(seconds, expected):
    start = datetime(2026, 10, 12, 9, 0)
    end = start + timedelta(seconds=seconds)
    assert duration_minutes(start, end) == expected


def test_uninvoiced_visits_excludes_open_and_invoiced(db, user, clock):
    first = _start(db, user, clock)
    clock.advance(minutes=30)
    visit_service.end_visit(db, first.id, user.id, clock=clock)

    second = _start(db, user, clock)
    clock.advance(minutes=30)
    visit_service.end_visit(db, second.id, user.id, clock=clock)
    second.has_invoice = True
    db.commit()

    third = _start(db, user, clock)
    clock.advance(minutes=30)
    visit_service.end_visit(db, third.id, user.id, clock=clock)

    _start(db, user, clock)  # still open

    assert [v.id for v in visit_service.uninvoiced_visits(db, user.id)] == [first.id, third.id]
    assert [v.id for v in visit_service.uninvoiced_visits(db, user.id, newest_first=True)] == [third.id, first.id]


def test_list_visits_filters_by_local_day(db, user, clock):
    monday = _start(db, user, clock)
    clock.advance(minutes=5)
    visit_service.end_visit(db, monday.id, user.id, clock=clock)

    clock.advance(days=1)
    tuesday = _start(db, user, clock)

    since, until = visit_service.local_day_bounds(date(2026, 10, 13), "UTC")
    visits = visit_service.list_visits(db, user.id, since=since, until=until)

    assert [v.id for v in visits] == [tuesday.id]
    assert [v.id for v in visit_service.list_visits(db, user.id)] == [tuesday.id, monday.id]


def test_local_day_bounds_in_user_timezone():
    since, until = visit_service.local_day_bounds(date(2026, 10, 12), "America/New_York")

    assert since == datetime(2026, 10, 12, 4, 0)
    assert until == datetime(2026, 10, 13, 4, 0)
