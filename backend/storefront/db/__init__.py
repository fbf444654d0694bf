import importlib
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings
from storefront.utils.logging import get_logger

log = get_logger("storefront.db")

DATABASE_URL = settings.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # busy timeout so a locked database surfaces as an OperationalError instead of a hang
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.DB_TIMEOUT_SECONDS,
            }
        }
    return {"pool_timeout": settings.DB_TIMEOUT_SECONDS, "pool_pre_ping": True}


engine = create_engine(DATABASE_URL, future=True, echo=False, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# add new model modules here so metadata is populated before create_all
MODEL_MODULES = [
    "storefront.models.product",
    "storefront.models.cart_line",
    "storefront.models.order",
    "storefront.models.payment_attempt",
    "storefront.models.uploaded_file",
]


def init_db(reset: bool = False):
    """
    Initialize DB schema.

    Behavior:
      - If `reset` is True or the RESET_DB env var is set to 1/true/yes, drop & recreate tables.
      - Otherwise, leave existing tables in place.
    """
    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
    if reset or env_reset:
        log.info("Resetting database (drop_all)")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.info("Database initialized: %s", DATABASE_URL)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
