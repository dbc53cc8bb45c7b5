# cartengine/api/errors.py
from fastapi import HTTPException

from cartengine.domain.errors import (
    AccessDeniedError,
    CartEngineError,
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)


def http_error(e: CartEngineError) -> HTTPException:
    # do klienta idzie tylko komunikat, bez szczegolow bazy
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=e.message)
    if isinstance(e, AccessDeniedError):
        return HTTPException(status_code=403, detail=e.message)
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, (InsufficientStockError, ConcurrencyConflictError)):
        return HTTPException(status_code=409, detail=e.message)
    return HTTPException(status_code=400, detail=e.message)
