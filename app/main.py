from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import BillingError
from app.core.logging import configure_logging
from app.routers.auth import router as auth_router
from app.routers.bordereaux import router as bordereaux_router
from app.routers.closures import router as closures_router
from app.routers.esign import router as esign_router
from app.routers.locks import router as locks_router
from app.routers.projects import router as projects_router
from app.routers.reporting import router as reporting_router
from app.routers.snapshots import router as snapshots_router
from app.routers.time_entries import router as time_entries_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    title="Bordereau Billing",
    lifespan=lifespan,
)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.warning("External service failure", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
    )


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(projects_router)
app.include_router(time_entries_router)
app.include_router(locks_router)
app.include_router(closures_router)
app.include_router(snapshots_router)
app.include_router(bordereaux_router)
app.include_router(esign_router)
app.include_router(reporting_router)


@app.get("/")
def root():
    return {"status": "Bordereau Billing running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
