"""FastAPI dependencies for authentication and app-state components.

Services and adapters are built once in the application lifespan and
stored on ``app.state``. The getters below hand them to endpoints and
return 503 when a component was not initialized (credentials missing).
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.crm_sync.contacts.crm.adapter import CrmAdapter, SourceStoreAdapter
from src.crm_sync.contacts.operation_log import OperationLog
from src.crm_sync.contacts.service import ReconciliationService
from src.crm_sync.contacts.sync import EmailVerificationSyncService


async def require_bearer_token(request: Request) -> str:
    """Require an ``Authorization: Bearer <token>`` header and return the token.

    Only presence is checked; token validation belongs to the gateway in
    front of this service.

    Raises:
        HTTPException(401): If the header is missing or not a Bearer token.
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


def _get_component(request: Request, name: str, label: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return component


def get_reconciliation_service(request: Request) -> ReconciliationService:
    """Retrieve ReconciliationService from app.state, 503 if not available."""
    return _get_component(request, "reconciliation_service", "Reconciliation")


def get_source_adapter(request: Request) -> SourceStoreAdapter:
    """Retrieve the source-store adapter from app.state, 503 if not available."""
    return _get_component(request, "source_adapter", "Source store")


def get_crm_adapter(request: Request) -> CrmAdapter:
    """Retrieve the CRM adapter from app.state, 503 if not available."""
    return _get_component(request, "crm_adapter", "CRM")


def get_sync_service(request: Request) -> EmailVerificationSyncService:
    """Retrieve EmailVerificationSyncService from app.state, 503 if not available."""
    return _get_component(request, "sync_service", "Email verification sync")


def get_operation_log(request: Request) -> OperationLog:
    """Retrieve the sync operation log from app.state, 503 if not available."""
    return _get_component(request, "operation_log", "Operation log")
