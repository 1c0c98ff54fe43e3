import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import CORS_ORIGINS
from app.core.database import Base, SessionLocal, engine
from app.core.logging_setup import configure_logging
from app.core.startup_checks import prepare_database
from app.middleware.observability import ObservabilityMiddleware
import app.models  # noqa: F401  registers every table on Base.metadata

from app.routers.admin_audit import router as admin_audit_router
from app.routers.admin_auth import router as admin_auth_router
from app.routers.admin_coupons import router as admin_coupons_router
from app.routers.claims import router as claims_router
from app.routers.internal_metrics import router as internal_metrics_router
from app.services.admin_bootstrap import bootstrap_admin_from_env

configure_logging()

logger = logging.getLogger(__name__)
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        prepare_database(engine=engine, metadata=Base.metadata, alembic_config_path=ALEMBIC_CONFIG_PATH)
        with SessionLocal() as db:
            bootstrap_admin_from_env(db)
    except Exception:
        logger.exception("[STARTUP] failed")
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(title="Coupon Drop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    # The public page reads Retry-After to show its countdown.
    expose_headers=["Retry-After", "X-Request-ID"],
)
app.add_middleware(ObservabilityMiddleware)

# Routers
app.include_router(claims_router)
app.include_router(admin_auth_router)
app.include_router(admin_coupons_router)
app.include_router(admin_audit_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
