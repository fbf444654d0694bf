import os
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from filelock import Timeout
from sqlalchemy.exc import OperationalError

from storefront.api.errors import status_for
from storefront.api.health import router as health_router
from storefront.api.routes_admin import router as admin_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_catalogue import router as catalogue_router
from storefront.api.routes_order import router as order_router
from storefront.api.routes_payment import router as payment_router
from storefront.config import settings
from storefront.db import SessionLocal, init_db
from storefront.errors import StorageError, StorefrontError
from storefront.services.payment_service import purge_stale_attempts
from storefront.utils.logging import get_logger

log = get_logger("storefront.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    init_db()

    # scheduler for dropping stale payment attempt markers
    scheduler = BackgroundScheduler()

    def purge_job():
        db = SessionLocal()
        try:
            purge_stale_attempts(db)
        except Exception as e:
            log.warning(f"purge_stale_attempts failed: {e}")
        finally:
            db.close()

    scheduler.add_job(
        purge_job,
        "interval",
        seconds=settings.PAYMENT_ATTEMPT_PURGE_INTERVAL_SECONDS,
        id="purge_payment_attempts",
    )
    scheduler.start()

    try:
        yield
    finally:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Hair Stop Storefront - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(catalogue_router, prefix="/api/products", tags=["catalogue"])

app.include_router(cart_router, tags=["cart"])

app.include_router(order_router, prefix="/api/orders", tags=["orders"])

app.include_router(payment_router, tags=["payments"])

app.include_router(admin_router, tags=["admin"])

os.makedirs(settings.PROOF_UPLOAD_DIR, exist_ok=True)
app.mount(settings.PROOF_BASE_URL, StaticFiles(directory=settings.PROOF_UPLOAD_DIR), name="proofs")


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=status_for(exc), content={"detail": exc.to_dict()})


@app.exception_handler(OperationalError)
async def db_unavailable_handler(request: Request, exc: OperationalError):
    log.error(f"database unavailable on {request.url.path}: {exc}")
    err = StorageError("Database is busy or unavailable; try again")
    return JSONResponse(status_code=503, content={"detail": err.to_dict()})


@app.exception_handler(Timeout)
async def lock_timeout_handler(request: Request, exc: Timeout):
    log.error(f"lock timeout on {request.url.path}: {exc}")
    err = StorageError("Timed out waiting for a stock lock; try again")
    return JSONResponse(status_code=503, content={"detail": err.to_dict()})
