"""Automatic check-in / end-of-day control loop.

One ``TrackingController`` per user. It is driven by two external event
sources: location samples (``record_sample``) and evaluation ticks (``tick``),
either of which may arrive at any rate. Manual start/stop always wins over
what the next tick would decide on its own.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from sqlalchemy.orm import Session

from fieldtrack.core.clock import system_clock
from fieldtrack.core.errors import VisitAlreadyOpen
from fieldtrack.models.visit import Visit
from fieldtrack.services import visit_service
from fieldtrack.services.business_hours import is_active, localize, parse_business_hours
from fieldtrack.services.geo_matcher import valid_point

logger = logging.getLogger(__name__)

Geocoder = Callable[[float, float], str | None]

MANUAL_STARTED = "started"
MANUAL_STOPPED = "stopped"


@dataclass(frozen=True)
class LocationSample:
    latitude: float
    longitude: float
    accuracy: float | None = None
    address: str | None = None
    received_at: datetime | None = None


@dataclass
class TickResult:
    in_business_hours: bool
    tracking: bool
    started_visit: Visit | None = None
    # Set only on the tick that ends a business-hours window
    end_of_day: list[Visit] | None = None
    open_visit: Visit | None = None


@dataclass
class TrackingStatus:
    tracking: bool
    in_business_hours: bool
    manual_override: str | None
    latest_sample: LocationSample | None
    open_visit: Visit | None = None


class TrackingController:
    def __init__(
        self,
        user_id: int,
        business_hours=None,
        tz_name: str | None = None,
        clock=system_clock,
        geocoder: Geocoder | None = None,
        radius_km: float | None = None,
    ):
        self.user_id = user_id
        self.tz_name = tz_name
        self.clock = clock
        self.geocoder = geocoder
        self.radius_km = radius_km

        self.tracking = False
        self.manual_override: str | None = None
        self.latest_sample: LocationSample | None = None

        self._schedule = parse_business_hours(business_hours)
        self._was_active = False
        self._window_day: date | None = None
        self._stopped_on: date | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def update_schedule(self, business_hours, tz_name: str | None = None) -> None:
        with self._lock:
            self._schedule = parse_business_hours(business_hours)
            if tz_name:
                self.tz_name = tz_name

    def in_business_hours(self, at: datetime | None = None) -> bool:
        at = self.clock.now() if at is None else at
        return is_active(self._schedule, localize(at, self.tz_name))

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------
    def record_sample(self, sample: LocationSample) -> bool:
        """Keep the sample as the latest known position if it is usable."""

        if valid_point(sample.latitude, sample.longitude) is None:
            logger.debug("Dropping invalid location sample for user %s", self.user_id)
            return False

        with self._lock:
            self.latest_sample = sample
        return True

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------
    def tick(self, db: Session, authenticated: bool = True) -> TickResult:
        with self._lock:
            now = self.clock.now()
            local_day = localize(now, self.tz_name).date()
            active = self.in_business_hours(now)
            result = TickResult(in_business_hours=active, tracking=self.tracking)

            new_window = active and (not self._was_active or local_day != self._window_day)

            # The previous window ended, either by leaving hours or by a day change
            if self._was_active and (not active or new_window):
                result.end_of_day = self._end_of_day_visits(db, self._window_day)
                logger.info(
                    "Business hours ended for user %s, %d uninvoiced visit(s)",
                    self.user_id, len(result.end_of_day),
                )

            if new_window:
                # A manual stop made before this window no longer applies
                if self.manual_override == MANUAL_STOPPED and self._stopped_on != local_day:
                    self.manual_override = None
                    self._stopped_on = None
                self._window_day = local_day
                logger.info("Business hours started for user %s", self.user_id)

            self._was_active = active

            sample = None
            open_visit = visit_service.current_open_visit(db, self.user_id)
            if open_visit is not None:
                self.tracking = True
            elif (
                active
                and authenticated
                and self.manual_override != MANUAL_STOPPED
                and self.latest_sample is not None
            ):
                sample = self.latest_sample
            else:
                self.tracking = False

            result.open_visit = open_visit
            if sample is None:
                result.tracking = self.tracking
                return result

        address = self._lookup_address(sample)

        with self._lock:
            visit = self._start_from_sample(db, sample, address)
            result.started_visit = visit
            result.open_visit = visit
            result.tracking = self.tracking
            return result

    def start_manual(self, db: Session, sample: LocationSample | None = None) -> Visit:
        with self._lock:
            if sample is not None:
                self.record_sample(sample)
            self.manual_override = MANUAL_STARTED
            self._stopped_on = None

            open_visit = visit_service.current_open_visit(db, self.user_id)
            if open_visit is not None:
                self.tracking = True
                return open_visit

            sample = sample or self.latest_sample
            if sample is None:
                # start_visit rejects the missing coordinates
                sample = LocationSample(latitude=None, longitude=None)

        address = self._lookup_address(sample)

        with self._lock:
            return self._start_from_sample(db, sample, address)

    def stop_manual(self, db: Session) -> Visit | None:
        with self._lock:
            now = self.clock.now()
            self.manual_override = MANUAL_STOPPED
            self.tracking = False
            # A stop inside business hours also covers the rest of that window
            self._stopped_on = localize(now, self.tz_name).date() if self.in_business_hours(now) else None

            open_visit = visit_service.current_open_visit(db, self.user_id)
            if open_visit is None:
                return None

            logger.info("Tracking stopped manually for user %s", self.user_id)
            return visit_service.end_visit(
                db, open_visit.id, self.user_id, clock=self.clock
            )

    def status(self, db: Session) -> TrackingStatus:
        with self._lock:
            open_visit = visit_service.current_open_visit(db, self.user_id)
            return TrackingStatus(
                tracking=self.tracking or open_visit is not None,
                in_business_hours=self.in_business_hours(),
                manual_override=self.manual_override,
                latest_sample=self.latest_sample,
                open_visit=open_visit,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _lookup_address(self, sample: LocationSample) -> str | None:
        """Sample address, else a reverse-geocoded one. Called without the lock held."""

        if sample.address:
            return sample.address
        if self.geocoder is None or valid_point(sample.latitude, sample.longitude) is None:
            return None
        return self.geocoder(sample.latitude, sample.longitude)

    def _start_from_sample(self, db: Session, sample: LocationSample, address: str | None) -> Visit | None:
        try:
            visit = visit_service.start_visit(
                db,
                self.user_id,
                sample.latitude,
                sample.longitude,
                address=address,
                radius_km=self.radius_km,
                clock=self.clock,
            )
        except VisitAlreadyOpen:
            # Another request opened one in between; adopt it
            visit = visit_service.current_open_visit(db, self.user_id)

        self.tracking = visit is not None
        return visit

    def _end_of_day_visits(self, db: Session, local_day: date) -> list[Visit]:
        since, until = visit_service.local_day_bounds(local_day, self.tz_name)
        return visit_service.uninvoiced_visits(db, self.user_id, since=since, until=until)


class TrackingRegistry:
    """Controllers keyed by user id, created on first use."""

    def __init__(self, clock=system_clock, geocoder: Geocoder | None = None):
        self.clock = clock
        self.geocoder = geocoder
        self._controllers: dict[int, TrackingController] = {}
        self._guard = threading.Lock()

    def for_user(self, user) -> TrackingController:
        with self._guard:
            controller = self._controllers.get(user.id)
            if controller is None:
                controller = TrackingController(
                    user.id,
                    business_hours=user.business_hours,
                    tz_name=user.timezone,
                    clock=self.clock,
                    geocoder=self.geocoder,
                )
                self._controllers[user.id] = controller
            return controller

    def refresh_user(self, user) -> None:
        with self._guard:
            controller = self._controllers.get(user.id)
        if controller is not None:
            controller.update_schedule(user.business_hours, user.timezone)

    def discard(self, user_id: int) -> None:
        with self._guard:
            self._controllers.pop(user_id, None)
