import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldtrack.core.config import settings
from fieldtrack.core.errors import FieldTrackError
from fieldtrack.core.logging_config import configure_logging
from fieldtrack.db.base import Base
from fieldtrack.db.session import engine
from fieldtrack import models  # noqa: F401  (registers tables on Base.metadata)

from fieldtrack.api.routes import (
    auth,
    clients,
    visits,
    invoices,
    tracking,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# ===============================
# CORS CONFIGURATION
# ===============================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===============================
# DOMAIN ERRORS
# ===============================
@app.exception_handler(FieldTrackError)
async def handle_fieldtrack_error(request: Request, exc: FieldTrackError):
    logger.info(
        "%s %s -> %s (%s)", request.method, request.url.path, exc.status_code, exc.error_code
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.error_code},
    )


# ===============================
# CREATE DATABASE TABLES
# ===============================
Base.metadata.create_all(bind=engine)

# ===============================
# INCLUDE ROUTERS
# ===============================
app.include_router(auth.router)
app.include_router(clients.router)
app.include_router(visits.router)
app.include_router(invoices.router)
app.include_router(tracking.router)


# ===============================
# ROOT ENDPOINT
# ===============================
@app.get("/")
def root():
    return {"status": "Backend running successfully"}
