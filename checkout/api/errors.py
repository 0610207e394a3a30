# checkout/api/errors.py
from fastapi import HTTPException, status

from checkout.domain.errors import (
    CartValidationError,
    CheckoutError,
    ConcurrencyError,
    EmptyCartError,
    ExternalServiceError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

_STATUS = (
    (CartValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (EmptyCartError, status.HTTP_400_BAD_REQUEST),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (ConcurrencyError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)


def to_http(e: CheckoutError) -> HTTPException:
    """Translate a domain error into an HTTPException with an actionable body."""
    code = next((c for cls, c in _STATUS if isinstance(e, cls)), status.HTTP_400_BAD_REQUEST)

    if isinstance(e, CartValidationError):
        detail = {"message": str(e), "violations": [v.to_dict() for v in e.violations]}
    elif isinstance(e, InsufficientStockError):
        detail = {"message": str(e), "product_id": e.product_id}
    elif isinstance(e, InvalidStateError):
        detail = {"message": str(e), "current": e.current, "requested": e.requested}
    else:
        detail = str(e)

    return HTTPException(status_code=code, detail=detail)
