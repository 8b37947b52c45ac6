from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldtrack.core.config import settings
from fieldtrack.core.dependencies import get_current_user, get_db, get_tracking_registry
from fieldtrack.core.security import create_access_token, hash_password, verify_password
from fieldtrack.models.user import User
from fieldtrack.schemas.user import BusinessHoursUpdate, UserCreate, UserResponse
from fieldtrack.services.audit_service import log_action, log_auth_event
from fieldtrack.services.tracking_service import TrackingRegistry


router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
def register(user: UserCreate, db: Session = Depends(get_db)):
    username = (user.username or "").strip().lower()
    existing_user = db.query(User).filter(func.lower(User.username) == username).first()
    if existing_user:
        raise HTTPException(status_code=409, detail="Username already registered")

    new_user = User(
        username=username,
        hashed_password=hash_password(user.password),
        business_type=(user.business_type or "").strip(),
        business_hours=user.business_hours.to_json(),
        timezone=user.timezone or settings.DEFAULT_TIMEZONE,
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    log_auth_event(
        db=db,
        action="AUTH_REGISTER_SUCCESS",
        username=new_user.username,
        user_id=new_user.id,
        details=f"Business type: {new_user.business_type}"
    )

    return new_user


@router.post("/login")
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    username = (form_data.username or "").strip().lower()
    db_user = db.query(User).filter(func.lower(User.username) == username).first()

    if not db_user or not verify_password(form_data.password, db_user.hashed_password):
        log_auth_event(
            db=db,
            action="AUTH_LOGIN_FAILED",
            username=username,
            details="Invalid credentials"
        )
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access_token = create_access_token(data={"sub": db_user.username})

    log_auth_event(
        db=db,
        action="AUTH_LOGIN_SUCCESS",
        username=db_user.username,
        user_id=db_user.id,
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
    }


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.put("/me/business-hours", response_model=UserResponse)
def update_business_hours(
    payload: BusinessHoursUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry),
):
    user.business_hours = payload.business_hours.to_json()
    if payload.timezone:
        user.timezone = payload.timezone

    db.commit()
    db.refresh(user)

    registry.refresh_user(user)

    log_action(
        db=db,
        user_id=user.id,
        action="UPDATE_BUSINESS_HOURS",
        entity_type="User",
        entity_id=user.id,
        details=f"Business hours: {user.business_hours} | Timezone: {user.timezone}"
    )

    return user
