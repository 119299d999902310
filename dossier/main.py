"""
Claim dossier API.

Queues research jobs and serves their progress, evidence and verdicts.
Jobs themselves run in the worker process (``python -m dossier.worker``).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from dossier import __version__
from dossier.config import get_settings
from dossier.db.session import check_db_connection, engine
from dossier.prompts.loader import load_prompt

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Templates the worker renders; checked at startup so a bad deploy fails fast.
REQUIRED_PROMPTS = (
    "evidence_extraction_v1",
    "evidence_extraction_system_v1",
    "verdict_synthesis_v1",
    "verdict_synthesis_system_v1",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Claim dossier API starting")
    try:
        try:
            check_db_connection()
        except Exception as e:
            logger.critical("Database not ready: %s", e)
            raise
        logger.info("Database connection and pgvector verified")

        for name in REQUIRED_PROMPTS:
            load_prompt(name)
        logger.info("Prompt templates loaded: %d", len(REQUIRED_PROMPTS))

        if not get_settings().internal_job_token:
            logger.warning("INTERNAL_JOB_TOKEN is empty; POST /research will reject every request")
        yield
    finally:
        engine.dispose()
        logger.info("Claim dossier API stopped; connection pool closed")


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Database unavailable"})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    from dossier.api.research import router as research_router

    app.include_router(research_router, prefix="/api/claims", tags=["research"])

    @app.get("/health")
    def health():
        """Liveness plus database reachability; 503 when Postgres is down."""
        body = {"status": "ok", "version": __version__, "database": "connected"}
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            body.update(status="unhealthy", database="disconnected")
            return JSONResponse(status_code=503, content=body)
        return body

    return app


app = create_app()
