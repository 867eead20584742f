"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.errors import register_exception_handlers
from .api.routes import router as v1_router
from .config import get_settings
from .domain.service import AccountService
from .notifications.mailer import SmtpMailer
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.tokens import SessionIssuer
from .storage.avatars import CloudinaryUploader

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, collaborators, services) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    uploader = CloudinaryUploader.from_settings(settings)
    sessions = SessionIssuer(settings)
    app.state.pool = pool
    app.state.session_issuer = sessions
    app.state.account_service = AccountService(
        AccountRepository(pool),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        sessions=sessions,
        mailer=SmtpMailer.from_settings(settings),
        uploader=uploader,
        settings=settings,
    )
    try:
        yield
    finally:
        uploader.close()
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

register_exception_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
