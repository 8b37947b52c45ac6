from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fieldtrack.core.dependencies import get_current_user, get_db
from fieldtrack.models.client import Client
from fieldtrack.models.invoice import Invoice
from fieldtrack.models.user import User
from fieldtrack.models.visit import Visit
from fieldtrack.schemas.client import ClientCreate, ClientResponse, ClientUpdate
from fieldtrack.services.audit_service import log_action
from fieldtrack.services.visit_service import get_owned_client


router = APIRouter(prefix="/clients", tags=["Clients"])


@router.get("", response_model=list[ClientResponse])
def get_clients(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return (
        db.query(Client)
        .filter(Client.user_id == user.id)
        .order_by(Client.name.asc(), Client.id.asc())
        .all()
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ClientResponse)
def create_client(
    client: ClientCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    new_client = Client(user_id=user.id, **client.model_dump())
    db.add(new_client)
    db.commit()
    db.refresh(new_client)

    log_action(
        db=db,
        user_id=user.id,
        action="CREATE_CLIENT",
        entity_type="Client",
        entity_id=new_client.id,
        details=f"Client '{new_client.name}' created"
    )

    return new_client


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return get_owned_client(db, client_id, user.id)


@router.put("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: int,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = get_owned_client(db, client_id, user.id)

    for key, value in payload.model_dump(exclude_unset=True).items():
        if key in ("name", "address") and value is None:
            continue
        setattr(client, key, value)

    db.commit()
    db.refresh(client)

    log_action(
        db=db,
        user_id=user.id,
        action="UPDATE_CLIENT",
        entity_type="Client",
        entity_id=client.id,
        details=f"Client '{client.name}' updated"
    )

    return client


@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    client = get_owned_client(db, client_id, user.id)
    name = client.name

    # Visits and invoices keep their history, only the weak link is cleared
    db.query(Visit).filter(Visit.client_id == client.id).update(
        {Visit.client_id: None}, synchronize_session=False
    )
    db.query(Invoice).filter(Invoice.client_id == client.id).update(
        {Invoice.client_id: None}, synchronize_session=False
    )
    db.delete(client)
    db.commit()

    log_action(
        db=db,
        user_id=user.id,
        action="DELETE_CLIENT",
        entity_type="Client",
        entity_id=client_id,
        details=f"Client '{name}' deleted"
    )

    return {"message": "Client deleted successfully"}
