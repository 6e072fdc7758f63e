"""API routes for receipt extraction and retrieval."""

from __future__ import annotations

import mimetypes
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from receipt_scanner.api.dependencies import get_receipt_service
from receipt_scanner.models.schemas import HealthCheckResponse, ImageUpload, ReceiptRead
from receipt_scanner.services.receipt_service import ReceiptService

router = APIRouter(prefix="/receipt", tags=["receipt"])

NO_IMAGE_PROVIDED = "No image file provided. Please upload an image file."


@router.post("/extract-receipt-details", response_model=ReceiptRead)
async def extract_receipt_details(
    image: Optional[UploadFile] = File(None),
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptRead:
    """Upload a receipt image and return the stored extraction."""
    if image is None:
        raise HTTPException(status_code=400, detail=NO_IMAGE_PROVIDED)
    contents = await image.read()
    upload = ImageUpload(
        filename=image.filename or "",
        content_type=image.content_type,
        data=contents,
    )
    return await service.extract_receipt_details(upload)


# Declared before "/{receipt_id}" so "health" is never parsed as an id
@router.get("/health/check", response_model=HealthCheckResponse)
async def health_check(service: ReceiptService = Depends(get_receipt_service)) -> HealthCheckResponse:
    return await service.health()


@router.get("", response_model=List[ReceiptRead])
async def list_receipts(service: ReceiptService = Depends(get_receipt_service)) -> List[ReceiptRead]:
    """List all receipts, newest first."""
    return await service.list_receipts()


@router.get("/{receipt_id}", response_model=ReceiptRead)
async def get_receipt(
    receipt_id: uuid.UUID,
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptRead:
    return await service.get_receipt(str(receipt_id))


@router.get("/{receipt_id}/image")
async def get_receipt_image(
    receipt_id: uuid.UUID,
    service: ReceiptService = Depends(get_receipt_service),
) -> Response:
    """Return the stored image bytes of a receipt."""
    data, filename = await service.get_receipt_image(str(receipt_id))
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.delete("/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_receipt(
    receipt_id: uuid.UUID,
    service: ReceiptService = Depends(get_receipt_service),
) -> Response:
    await service.delete_receipt(str(receipt_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
