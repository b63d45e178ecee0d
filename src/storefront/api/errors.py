"""Translate core errors into HTTP responses."""

from contextlib import contextmanager

from fastapi import HTTPException
from protean.exceptions import ValidationError

from storefront.exceptions import (
    InsufficientStock,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    RetryExhausted,
    StockUnavailable,
    TemporarilyUnavailable,
    VariantNotFound,
)

RETRY_AFTER_SECONDS = "1"


@contextmanager
def domain_errors():
    """Re-raise storefront errors as HTTPExceptions with client-usable detail."""
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc
    except StockUnavailable as exc:
        raise HTTPException(status_code=409, detail={"message": str(exc), "items": exc.items}) from exc
    except InsufficientStock as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "available": exc.available, "requested": exc.requested},
        ) from exc
    except VariantNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransition as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "current": exc.current, "target": exc.target},
        ) from exc
    except PermissionDenied as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except (RetryExhausted, TemporarilyUnavailable) as exc:
        raise HTTPException(
            status_code=503,
            detail="Temporarily unavailable, please retry",
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        ) from exc
