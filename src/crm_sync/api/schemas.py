"""Shared response envelope for the contact and sync endpoints."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from src.crm_sync.contacts.schemas import PaginationMeta

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope: ``data`` on success, ``error`` otherwise."""

    success: bool = True
    data: T | None = None
    pagination: PaginationMeta | None = None
    error: str | None = None
