import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldtrack.core.clock import system_clock
from fieldtrack.core.config import settings
from fieldtrack.core.errors import (
    AlreadyInvoiced,
    FieldTrackError,
    Forbidden,
    InvalidAmount,
    InvalidRequest,
    NotFound,
)
from fieldtrack.models.invoice import Invoice
from fieldtrack.models.visit import Visit
from fieldtrack.services.user_locks import user_locks
from fieldtrack.services.visit_service import get_owned_client, get_visit

logger = logging.getLogger(__name__)

END_OF_DAY_NOTE = "Automatically generated from visit"


def _round_money(value: float) -> float:
    return round(float(value or 0), 2)


def _validate_amount(value) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidAmount("Amount is required")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidAmount("Amount must be a number")
    if not math.isfinite(amount):
        raise InvalidAmount("Amount must be a positive number")

    # Check the value that will actually be stored
    amount = _round_money(amount)
    if amount <= 0:
        raise InvalidAmount("Amount must be at least 0.01")
    return amount


# =========================
# INVOICE NUMBERS
# =========================
def generate_invoice_number(now: datetime) -> str:
    return f"INV-{now.year}-{random.randint(100, 999)}"


def _next_invoice_number(db: Session, now: datetime) -> str:
    # Only 900 numbers per year exist; collisions are avoided when cheap and
    # otherwise accepted.
    prefix = f"INV-{now.year}-"
    taken = {
        number
        for (number,) in db.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"{prefix}%"))
        .all()
    }

    attempts = max(1, settings.INVOICE_NUMBER_ATTEMPTS)
    number = generate_invoice_number(now)
    for _ in range(attempts - 1):
        if number not in taken:
            return number
        number = generate_invoice_number(now)

    if number in taken:
        logger.warning("Invoice number %s is already in use, accepting duplicate", number)
    return number


# =========================
# AMOUNT POLICY
# =========================
def billable_amount_for(visit: Visit, hourly_rate: float | None = None) -> float | None:
    if visit.billable_amount is not None:
        return _round_money(visit.billable_amount)

    if visit.duration is None:
        return None

    rate = settings.DEFAULT_HOURLY_RATE if hourly_rate is None else hourly_rate
    return _round_money((visit.duration / 60) * rate)


# =========================
# CREATE INVOICE
# =========================
def create_invoice(
    db: Session,
    user_id: int,
    visit_id: int | None = None,
    client_id: int | None = None,
    amount=None,
    notes: str | None = None,
    is_paid: bool = False,
    hourly_rate: float | None = None,
    clock=system_clock,
) -> Invoice:
    if visit_id is None and client_id is None:
        raise InvalidRequest("Either visit ID or client ID is required")

    if visit_id is None:
        client = get_owned_client(db, client_id, user_id)
        return _store_invoice(
            db,
            user_id=user_id,
            client_id=client.id,
            visit=None,
            amount=_validate_amount(amount),
            notes=notes,
            is_paid=is_paid,
            clock=clock,
        )

    with user_locks.hold(user_id):
        visit = get_visit(db, visit_id, user_id)

        if visit.has_invoice:
            raise AlreadyInvoiced("Visit already has an invoice", {"visit_id": visit_id})

        if visit.end_time is None:
            raise InvalidRequest("Visit is still in progress", {"visit_id": visit_id})

        if amount is None:
            amount = billable_amount_for(visit, hourly_rate)

        return _store_invoice(
            db,
            user_id=user_id,
            client_id=visit.client_id,
            visit=visit,
            amount=_validate_amount(amount),
            notes=notes,
            is_paid=is_paid,
            clock=clock,
        )


def _store_invoice(
    db: Session,
    user_id: int,
    client_id: int | None,
    visit: Visit | None,
    amount: float,
    notes: str | None,
    is_paid: bool,
    clock,
) -> Invoice:
    now = clock.now()
    invoice = Invoice(
        user_id=user_id,
        client_id=client_id,
        visit_id=visit.id if visit is not None else None,
        invoice_number=_next_invoice_number(db, now),
        amount=_round_money(amount),
        date=now,
        is_paid=bool(is_paid),
        notes=notes,
    )

    try:
        db.add(invoice)
        db.flush()

        if visit is not None:
            # 🔒 Flip has_invoice only if nobody did it first
            updated = (
                db.query(Visit)
                .filter(
                    Visit.id == visit.id,
                    Visit.has_invoice == False  # noqa: E712
                )
                .update({Visit.has_invoice: True}, synchronize_session=False)
            )
            if not updated:
                raise AlreadyInvoiced("Visit already has an invoice", {"visit_id": visit.id})

        db.commit()
    except AlreadyInvoiced:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        if visit is not None:
            raise AlreadyInvoiced("Visit already has an invoice", {"visit_id": visit.id})
        raise

    db.refresh(invoice)
    if visit is not None:
        db.refresh(visit)

    logger.info(
        "Invoice %s (%s) created for user %s, visit=%s amount=%.2f",
        invoice.id, invoice.invoice_number, user_id, invoice.visit_id, invoice.amount,
    )
    return invoice


# =========================
# END OF DAY
# =========================
@dataclass
class EndOfDayResult:
    created: list[Invoice] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)


def create_end_of_day_invoices(
    db: Session,
    user_id: int,
    visit_ids: list[int],
    hourly_rate: float | None = None,
    clock=system_clock,
) -> EndOfDayResult:
    result = EndOfDayResult()

    for visit_id in dict.fromkeys(visit_ids):
        try:
            invoice = create_invoice(
                db,
                user_id,
                visit_id=visit_id,
                notes=END_OF_DAY_NOTE,
                hourly_rate=hourly_rate,
                clock=clock,
            )
        except FieldTrackError as exc:
            logger.info("Skipping end-of-day invoice for visit %s: %s", visit_id, exc.message)
            result.failed.append(
                {"visit_id": visit_id, "code": exc.error_code, "detail": exc.message}
            )
            continue
        result.created.append(invoice)

    return result


# =========================
# READ / UPDATE
# =========================
def get_invoice(db: Session, invoice_id: int, user_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()

    if not invoice:
        raise NotFound("Invoice", invoice_id)

    if invoice.user_id != user_id:
        raise Forbidden("Invoice", invoice_id)

    return invoice


def list_invoices(db: Session, user_id: int, client_id: int | None = None) -> list[Invoice]:
    query = db.query(Invoice).filter(Invoice.user_id == user_id)

    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)

    return query.order_by(Invoice.date.desc(), Invoice.id.desc()).all()


def update_invoice(
    db: Session,
    invoice_id: int,
    user_id: int,
    is_paid: bool | None = None,
    notes: str | None = None,
    amount=None,
) -> Invoice:
    invoice = get_invoice(db, invoice_id, user_id)

    if amount is not None:
        invoice.amount = _validate_amount(amount)

    if is_paid is not None:
        invoice.is_paid = bool(is_paid)

    if notes is not None:
        invoice.notes = notes

    db.commit()
    db.refresh(invoice)
    return invoice
