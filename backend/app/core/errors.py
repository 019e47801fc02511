"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes for stores, lifecycle and channels
    • Consistent JSON error response format
    • Automatic logging of unhandled errors

Store and lifecycle errors are raised synchronously by the failing call and
never leave partial state behind. ChannelDeliveryError is raised only inside
channel adapters and is converted into a failed DeliveryRecord before it can
reach the dispatcher's caller.

Usage:
    from backend.app.core.errors import NotFoundError, InvalidTransitionError

    raise NotFoundError("TriggerCondition", condition_id="TRG-1A2B")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.core.config import get_settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class AlertSystemError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(AlertSystemError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        details = {"resource": resource, **identifiers}
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details=details,
        )


class ValidationError(AlertSystemError):
    """Malformed trigger or alert input (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class InvalidTransitionError(AlertSystemError):
    """Alert lifecycle violation (409). State is left unchanged."""

    def __init__(self, alert_id: str, current: str, action: str):
        super().__init__(
            message=f"Cannot {action} alert {alert_id} while it is {current}",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"alert_id": alert_id, "status": current, "action": action},
        )


class ConfirmationRequiredError(AlertSystemError):
    """Destructive operation requested without operator confirmation (428)."""

    def __init__(self, action: str, **identifiers: Any):
        super().__init__(
            message=f"{action} requires explicit confirmation (confirm=true)",
            status_code=428,
            error_code="CONFIRMATION_REQUIRED",
            details={"action": action, **identifiers},
        )


class ChannelDeliveryError(AlertSystemError):
    """A channel transport failed. Adapters translate this into an outcome."""

    def __init__(self, channel: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Channel '{channel}' delivery failed: {message}",
            status_code=502,
            error_code="CHANNEL_DELIVERY_ERROR",
            details={"channel": channel, **details},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    if request and not get_settings().is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(AlertSystemError)
    async def handle_alert_system_error(request: Request, exc: AlertSystemError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        debug = get_settings().DEBUG
        message = str(exc) if debug else "Internal server error"
        details = (
            {"traceback": traceback.format_exc().split("\n")}
            if debug else None
        )
        return _build_error_response(
            500, "INTERNAL_ERROR", message, details, request,
        )
