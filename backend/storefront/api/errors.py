from fastapi import HTTPException

from storefront.errors import (
    NotFoundError,
    StateGuardError,
    StockError,
    StorageError,
    StorefrontError,
    ValidationError,
)

_GUARD_STATUS = {
    StateGuardError.ALREADY_PROCESSED: 409,
    StateGuardError.NOT_FOUND: 404,
    StateGuardError.NOT_YOURS: 403,
    StateGuardError.INVALID_TRANSITION: 409,
}


def status_for(e: StorefrontError) -> int:
    if isinstance(e, ValidationError):
        return 400
    if isinstance(e, StockError):
        return 409
    if isinstance(e, StateGuardError):
        return _GUARD_STATUS.get(e.reason, 409)
    if isinstance(e, NotFoundError):
        return 404
    if isinstance(e, StorageError):
        return 503
    return 500


def http_error(e: StorefrontError) -> HTTPException:
    return HTTPException(status_code=status_for(e), detail=e.to_dict())
