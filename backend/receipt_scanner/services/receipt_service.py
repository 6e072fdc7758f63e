"""Receipt upload, extraction and CRUD orchestration.

``extract_receipt_details`` runs the whole upload pipeline:

1. validate the upload (type, extension, size) before any side effect,
2. save the image,
3. run the extraction chain,
4. check the result against the persistence rules, deleting the saved
   image when they fail,
5. store the receipt.

Client faults surface as ``HTTPException`` 400/404, server faults as
500.  An ``HTTPException`` raised anywhere in the pipeline propagates
unchanged; anything else is logged and reported as a generic 500.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import List

from fastapi import HTTPException

from receipt_scanner.core.observability import sentry_breadcrumb
from receipt_scanner.models.enums import HealthStatus
from receipt_scanner.models.schemas import HealthCheckResponse, ImageUpload, ReceiptDetails, ReceiptRead
from receipt_scanner.models.tables import Receipt
from receipt_scanner.services.extraction_service import ExtractionService
from receipt_scanner.services.receipt_repository import ReceiptRepository
from receipt_scanner.services.storage_service import StorageService
from receipt_scanner.utils.helpers import is_number

logger = logging.getLogger(__name__)

INVALID_FILE_TYPE = "Invalid file type. Only .jpg, .jpeg, .png files are allowed."
INVALID_AI_RESPONSE = "AI model returned invalid or incomplete data."


def is_valid_extraction(details: ReceiptDetails | None) -> bool:
    """True when ``details`` satisfies every rule required to store it."""
    if details is None:
        return False
    return bool(
        details.date
        and details.currency
        and details.vendor_name
        and details.receipt_items
        and is_number(details.tax)
        and is_number(details.total)
        and details.tax >= 0
        and details.total >= 0
    )


def to_response(receipt: Receipt) -> ReceiptRead:
    return ReceiptRead(
        id=receipt.id,
        date=receipt.date,
        currency=receipt.currency,
        vendor_name=receipt.vendor_name,
        receipt_items=receipt.get_receipt_items(),
        tax=float(receipt.tax),
        total=float(receipt.total),
        image_url=receipt.image_url,
        created_at=receipt.created_at,
        updated_at=receipt.updated_at,
    )


class ReceiptService:
    def __init__(
        self,
        repository: ReceiptRepository,
        storage: StorageService,
        extraction: ExtractionService,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.extraction = extraction

    async def _discard_image(self, image_url: str) -> None:
        try:
            await self.storage.delete_image(image_url)
        except Exception as exc:
            logger.warning("Failed to delete image %s: %s", image_url, exc)

    def _validate_upload(self, upload: ImageUpload) -> None:
        if upload.content_type not in self.storage.allowed_mime_types:
            raise HTTPException(status_code=400, detail=INVALID_FILE_TYPE)
        self.storage.validate(upload)

    async def extract_receipt_details(self, upload: ImageUpload) -> ReceiptRead:
        logger.info("Starting receipt extraction for file: %s", upload.filename)
        try:
            self._validate_upload(upload)

            image_url = await self.storage.save_image(upload)
            logger.info("Image saved to: %s", image_url)

            details = await self.extraction.extract(upload.data)
            logger.info("AI extraction completed for vendor: %s", details.vendor_name)

            if not is_valid_extraction(details):
                await self._discard_image(image_url)
                raise HTTPException(status_code=500, detail=INVALID_AI_RESPONSE)

            receipt = await self.repository.create(details, image_url)
            logger.info("Receipt saved to database with ID: %s", receipt.id)
            sentry_breadcrumb(
                category="receipt",
                message="receipt.extracted",
                data={"receipt_id": receipt.id, "currency": receipt.currency},
            )
            return to_response(receipt)
        except HTTPException as exc:
            logger.error("Receipt extraction failed: %s", exc.detail)
            raise
        except Exception:
            logger.exception("Receipt extraction failed")
            raise HTTPException(status_code=500, detail="Failed to extract receipt details.")

    async def _get_or_404(self, receipt_id: str) -> Receipt:
        receipt = await self.repository.get(receipt_id)
        if not receipt:
            raise HTTPException(status_code=404, detail=f"Receipt with ID {receipt_id} not found.")
        return receipt

    async def get_receipt(self, receipt_id: str) -> ReceiptRead:
        try:
            return to_response(await self._get_or_404(receipt_id))
        except HTTPException:
            raise
        except Exception:
            logger.exception("Failed to get receipt by ID: %s", receipt_id)
            raise HTTPException(status_code=500, detail="Failed to retrieve receipt.")

    async def list_receipts(self) -> List[ReceiptRead]:
        try:
            receipts = await self.repository.list_all()
        except Exception:
            logger.exception("Failed to get all receipts")
            raise HTTPException(status_code=500, detail="Failed to retrieve receipts.")
        return [to_response(r) for r in receipts]

    async def get_receipt_image(self, receipt_id: str) -> tuple[bytes, str]:
        """Return ``(bytes, filename)`` of the image stored for a receipt."""
        receipt = await self._get_or_404(receipt_id)
        info = await self.storage.get_image_info(receipt.image_url)
        if not info.get("exists"):
            logger.warning("Image for receipt %s is missing: %s", receipt_id, receipt.image_url)
            raise HTTPException(status_code=404, detail="Receipt image not found.")
        try:
            data = await self.storage.load_image(receipt.image_url)
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail="Receipt image not found.")
        return data, receipt.image_url.rsplit("/", 1)[-1]

    async def delete_receipt(self, receipt_id: str) -> None:
        try:
            receipt = await self._get_or_404(receipt_id)
            # Image removal is best-effort and never blocks the row delete
            await self._discard_image(receipt.image_url)
            await self.repository.delete(receipt)
            logger.info("Receipt deleted successfully: %s", receipt_id)
        except HTTPException:
            raise
        except Exception:
            logger.exception("Failed to delete receipt: %s", receipt_id)
            raise HTTPException(status_code=500, detail="Failed to delete receipt.")

    async def health(self) -> HealthCheckResponse:
        try:
            healthy = await self.repository.ping() and await self.extraction.is_healthy()
        except Exception as exc:
            logger.error("Receipt service health check failed: %s", exc)
            healthy = False
        return HealthCheckResponse(
            status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            timestamp=dt.datetime.now(dt.timezone.utc),
        )
