import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from npd_tracker.config import get_settings
from npd_tracker.exceptions import DomainError

settings = get_settings()
logger = logging.getLogger(__name__)


def _seed_admin_user() -> None:
    """Create the default organization and admin user if no users exist."""
    from npd_tracker.database import SessionLocal
    from npd_tracker.models.organization import Organization
    from npd_tracker.models.usuario import Usuario
    from npd_tracker.utils.constants import ROLE_ADMIN
    from npd_tracker.utils.security import hash_password

    db = SessionLocal()
    try:
        count = db.query(Usuario).count()
        logger.info("[SEED] Users in database: %d", count)
        if count:
            return

        org = (
            db.query(Organization)
            .filter(Organization.kode == settings.SEED_ORGANIZATION_KODE)
            .first()
        )
        if org is None:
            org = Organization(
                kode=settings.SEED_ORGANIZATION_KODE,
                nama=settings.SEED_ORGANIZATION_NAMA,
            )
            db.add(org)
            db.flush()

        db.add(
            Usuario(
                username=settings.SEED_ADMIN_USERNAME,
                email=f"{settings.SEED_ADMIN_USERNAME}@npd-tracker.local",
                password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
                nombre_completo="Administrator",
                rol=ROLE_ADMIN,
                organization_id=org.id,
                activo=True,
            )
        )
        db.commit()
        logger.info("[SEED] Admin created: %s (org %s)", settings.SEED_ADMIN_USERNAME, org.kode)
    except Exception as exc:
        db.rollback()
        logger.error("[SEED] Could not seed admin user: %s", exc)
    finally:
        db.close()


def _sweep_expired_locks() -> int:
    from npd_tracker.database import SessionLocal
    from npd_tracker.services.lock_service import cleanup_expired

    db = SessionLocal()
    try:
        return cleanup_expired(db)
    finally:
        db.close()


async def _lock_sweeper() -> None:
    """Release expired NPD locks every ``LOCK_SWEEP_INTERVAL_SECONDS``."""
    while True:
        await asyncio.sleep(settings.LOCK_SWEEP_INTERVAL_SECONDS)
        try:
            released = await asyncio.to_thread(_sweep_expired_locks)
            if released:
                logger.info("Lock sweep released %d NPD(s)", released)
        except Exception as exc:
            logger.warning("Lock sweep failed: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: seed organization + admin user if DB is empty
    _seed_admin_user()

    sweeper: asyncio.Task | None = None
    if settings.LOCK_SWEEP_ENABLED:
        sweeper = asyncio.create_task(_lock_sweeper())
    yield

    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from npd_tracker.routers import auth  # noqa: E402

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])

# Budget plan
from npd_tracker.routers import rka  # noqa: E402

app.include_router(rka.router, prefix="/api/rka", tags=["RKA"])

# NPD workflow
from npd_tracker.routers import npd  # noqa: E402

app.include_router(npd.router, prefix="/api/npd", tags=["NPD"])

# SP2D and realization
from npd_tracker.routers import sp2d  # noqa: E402

app.include_router(sp2d.router, prefix="/api/sp2d", tags=["SP2D"])

# Dashboard and reports
from npd_tracker.routers import dashboard  # noqa: E402

app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])

# Performance indicators
from npd_tracker.routers import performance  # noqa: E402

app.include_router(performance.router, prefix="/api/performance", tags=["Kinerja"])

# Import module
from npd_tracker.routers import importacion  # noqa: E402

app.include_router(importacion.router, prefix="/api/importacion", tags=["Importasi"])

# Export (Excel + PDF)
from npd_tracker.routers import exportacion  # noqa: E402

app.include_router(exportacion.router, prefix="/api/exportar", tags=["Ekspor"])

# Notifications
from npd_tracker.routers import notifications  # noqa: E402

app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifikasi"])

# Audit log (admin)
from npd_tracker.routers import audit_logs  # noqa: E402

app.include_router(audit_logs.router, prefix="/api/audit-logs", tags=["Audit"])
