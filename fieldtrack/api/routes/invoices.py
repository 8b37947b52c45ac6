from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fieldtrack.core.dependencies import get_clock, get_current_user, get_db
from fieldtrack.models.user import User
from fieldtrack.schemas.invoice import (
    EndOfDayInvoiceRequest,
    EndOfDayInvoiceResponse,
    InvoiceCreate,
    InvoiceResponse,
    InvoiceUpdate,
)
from fieldtrack.services import billing_service
from fieldtrack.services.audit_service import log_action


router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("", response_model=list[InvoiceResponse])
def get_invoices(
    client_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return billing_service.list_invoices(db, user.id, client_id=client_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=InvoiceResponse)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    invoice = billing_service.create_invoice(
        db,
        user.id,
        visit_id=payload.visit_id,
        client_id=payload.client_id,
        amount=payload.amount,
        notes=payload.notes,
        is_paid=payload.is_paid,
        clock=clock,
    )

    log_action(
        db=db,
        user_id=user.id,
        action="CREATE_INVOICE",
        entity_type="Invoice",
        entity_id=invoice.id,
        details=(
            f"{invoice.invoice_number} | Amount: {invoice.amount} | "
            f"Visit: {invoice.visit_id or 'N/A'} | Client: {invoice.client_id or 'N/A'}"
        ),
    )

    return invoice


# =========================
# END OF DAY
# =========================
@router.post("/end-of-day", response_model=EndOfDayInvoiceResponse)
def create_end_of_day_invoices(
    payload: EndOfDayInvoiceRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    result = billing_service.create_end_of_day_invoices(
        db,
        user.id,
        payload.visit_ids,
        hourly_rate=payload.hourly_rate,
        clock=clock,
    )

    for invoice in result.created:
        log_action(
            db=db,
            user_id=user.id,
            action="CREATE_INVOICE",
            entity_type="Invoice",
            entity_id=invoice.id,
            details=f"{invoice.invoice_number} | End of day | Visit: {invoice.visit_id}"
        )

    return {"created": result.created, "failed": result.failed}


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return billing_service.get_invoice(db, invoice_id, user.id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    invoice = billing_service.update_invoice(
        db,
        invoice_id,
        user.id,
        is_paid=payload.is_paid,
        notes=payload.notes,
        amount=payload.amount,
    )

    log_action(
        db=db,
        user_id=user.id,
        action="UPDATE_INVOICE",
        entity_type="Invoice",
        entity_id=invoice.id,
        details=f"Paid: {invoice.is_paid} | Amount: {invoice.amount}"
    )

    return invoice
