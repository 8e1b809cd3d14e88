"""Error taxonomy and the FastAPI handlers that render it"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PriceServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, "details": self.details}


class ValidationError(PriceServiceError):
    """Malformed, missing or out-of-range input."""

    status_code = 400
    error = "validation_error"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, details=[{"field": field, "message": message}])


class ForbiddenError(PriceServiceError):
    status_code = 403
    error = "forbidden"


class NotFoundError(PriceServiceError):
    status_code = 404
    error = "not_found"


class StorageError(PriceServiceError):
    """Storage collaborator failure. Never retried inside the service."""

    status_code = 503
    error = "storage_error"


def pydantic_error_details(errors) -> List[Dict[str, Any]]:
    """Flatten pydantic error dicts into field-level details."""
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        details.append({"field": ".".join(loc) or None, "message": err.get("msg", "invalid value")})
    return details


async def price_service_error_handler(request: Request, exc: PriceServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.error, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError("Invalid request", details=pydantic_error_details(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PriceServiceError, price_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
