from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from fieldtrack.core.clock import system_clock
from fieldtrack.core.config import settings
from fieldtrack.db.session import SessionLocal
from fieldtrack.models.user import User
from fieldtrack.services.geocoding_service import default_geocoder
from fieldtrack.services.tracking_service import TrackingRegistry


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

tracking_registry = TrackingRegistry(clock=system_clock, geocoder=default_geocoder())


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock():
    return system_clock


def get_geocoder():
    return tracking_registry.geocoder


def get_tracking_registry() -> TrackingRegistry:
    return tracking_registry


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    if not token:
        raise _unauthorized("Missing authentication token")

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError:
        raise _unauthorized("Invalid authentication token")

    username = payload.get("sub")
    if not isinstance(username, str) or not username.strip():
        raise _unauthorized("Invalid token payload")

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise _unauthorized("User not found")

    return user
