"""
FastAPI dependencies shared by the v1 routers.
"""

from __future__ import annotations

from fastapi import Request

from backend.app.alerts.alert_service import AlertService
from backend.app.core.errors import ConfirmationRequiredError


def get_service(request: Request) -> AlertService:
    """The AlertService built for this application instance."""
    return request.app.state.alert_service


def require_confirmation(confirm: bool, action: str, **identifiers) -> None:
    if not confirm:
        raise ConfirmationRequiredError(action, **identifiers)
