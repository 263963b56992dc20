"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authcore.config import settings
from authcore.database import create_db_and_tables
from authcore.services.errors import AuthError
from authcore.utils.logging import setup_logging
from authcore.api import auth, passkeys, system

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    if settings.jwt_secret == "change-me-in-production":
        logger.warning("AUTHCORE_JWT_SECRET is the built-in default; set a real secret before serving")
    create_db_and_tables()
    yield


app = FastAPI(
    title="authcore",
    description="Password, TOTP and passkey authentication with stateless challenge tokens",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


# Mount routers
app.include_router(auth.router)
app.include_router(passkeys.router)
app.include_router(system.router)
