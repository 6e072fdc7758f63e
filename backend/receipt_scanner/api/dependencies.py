"""Common dependencies for FastAPI routes.

The storage and extraction services are long-lived: they are built once
in the application lifespan and kept on ``app.state``.  Database
sessions are per request.  Tests replace ``get_receipt_service`` (or
any of its inputs) through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from receipt_scanner.core.config import settings
from receipt_scanner.core.database import get_db
from receipt_scanner.services.extraction_service import ExtractionService
from receipt_scanner.services.receipt_repository import ReceiptRepository
from receipt_scanner.services.receipt_service import ReceiptService
from receipt_scanner.services.storage_service import StorageService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Alias for `get_db` to be imported in routers."""
    async for session in get_db():
        yield session


def get_storage_service(request: Request) -> StorageService:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        storage = request.app.state.storage = StorageService()
    return storage


def get_extraction_service(request: Request) -> ExtractionService:
    extraction = getattr(request.app.state, "extraction", None)
    if extraction is None:
        extraction = request.app.state.extraction = ExtractionService.from_settings(settings)
    return extraction


async def get_receipt_service(
    db: AsyncSession = Depends(get_db_session),
    storage: StorageService = Depends(get_storage_service),
    extraction: ExtractionService = Depends(get_extraction_service),
) -> ReceiptService:
    return ReceiptService(ReceiptRepository(db), storage, extraction)
