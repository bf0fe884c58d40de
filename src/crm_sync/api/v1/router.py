"""V1 API router -- aggregates all endpoint routers.

Health checks stay unauthenticated; every /v1 route requires a Bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.crm_sync.api.deps import require_bearer_token
from src.crm_sync.api.v1 import comparison, contacts, health, sync

router = APIRouter()

router.include_router(health.router)

v1_router = APIRouter(prefix="/v1", dependencies=[Depends(require_bearer_token)])
v1_router.include_router(comparison.router)
v1_router.include_router(contacts.router)
v1_router.include_router(sync.router)

router.include_router(v1_router)
