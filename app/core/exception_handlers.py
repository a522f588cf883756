import uuid
import logging
from fastapi import FastAPI, Request, HTTPException
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from app.core.exceptions import InventoryError

log = logging.getLogger("uvicorn.error")


# Generate a clean request id for every response
def _rid():
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


# ----------- Exception Handlers (called by FastAPI) -----------

def inventory_exception_handler(request: Request, exc: InventoryError):
    """Handles typed ledger/production errors (400, 404, 409)."""
    log.info(f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}")
    body = {
        "success": False,
        "error": exc.to_dict(),
        "request_id": _rid(),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    body = {
        "success": False,
        "error": {
            "code": "http_error",
            "message": exc.detail,
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors; missing or malformed fields answer 400."""
    body = {
        "success": False,
        "error": {
            "code": "validation_error",
            "message": "Invalid input data",
            "details": jsonable_encoder(exc.errors()),
        },
        "request_id": _rid(),
    }
    return JSONResponse(status_code=400, content=body)


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    request_id = _rid()
    # Path params carry only entity ids, never credentials
    log.error(
        f"Unhandled exception [{request_id}] on {request.method} {request.url.path} "
        f"params={dict(request.path_params)}",
        exc_info=exc,
    )

    body = {
        "success": False,
        "error": {
            "code": "server_error",
            "message": "Internal Server Error",
        },
        "request_id": request_id,
    }
    return JSONResponse(status_code=500, content=body)


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""

    # Register handlers
    app.add_exception_handler(InventoryError, inventory_exception_handler)
    # Starlette base class also covers unmatched routes (404) and wrong methods (405)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
