from fastapi import APIRouter
from sqlalchemy import text

from storefront.adapters.notifications import LogNotificationDispatcher
from storefront.adapters.proof_storage import LocalProofStorage
from storefront.db import engine

router = APIRouter()


@router.get("/health", tags=["health"])
def health():
    db_ok = False
    storage_ok = False
    notifier_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        db_ok = False
    try:
        storage_ok = LocalProofStorage.from_settings().health_check()
        notifier_ok = LogNotificationDispatcher().health_check()
    except Exception:
        storage_ok = False
        notifier_ok = False

    return {
        "status": "ok" if db_ok and storage_ok and notifier_ok else "degraded",
        "db": db_ok,
        "proof_storage": storage_ok,
        "notifications": notifier_ok,
    }
