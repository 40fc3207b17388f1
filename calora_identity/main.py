"""FastAPI application wiring for the identity service."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import sys

import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as auth_router
from .config import Settings, get_settings
from .domain.service import IdentityService
from .repository import AccountRepository
from .security.passwords import PasswordHasher
from .security.tokens import TokenIssuer

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; the signing key is checked before the pool is opened."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialise shared resources (Postgres pool, services) for the app lifecycle."""
        token_issuer = TokenIssuer(settings)
        pool = ConnectionPool(settings.database_url, open=False)
        pool.open()
        app.state.pool = pool
        app.state.token_issuer = token_issuer
        app.state.identity_service = IdentityService(
            AccountRepository(pool),
            settings,
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
            token_issuer=token_issuer,
        )
        logger.info("%s %s ready", settings.app_name, settings.version)
        try:
            yield
        finally:
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

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str]:
        """Return a minimal readiness indicator used by orchestration systems."""
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(auth_router)
    return app


def run() -> None:
    """Console entry point serving the application with uvicorn."""
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.http_host,
        port=settings.http_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
