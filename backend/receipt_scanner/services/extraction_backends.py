"""Extraction backends for receipt images.

Three interchangeable strategies share one small interface
(``ExtractionBackend``): ``extract(image_bytes)`` returns
``ReceiptDetails`` or raises, and ``is_healthy()`` probes the remote
service.

* ``StructuredVisionBackend`` asks an OpenAI vision model for a JSON
  object and coerces it field by field.
* ``OcrVisionBackend`` runs Google Cloud Vision text detection and hands
  the text to the heuristic parser.
* ``LocalOcrBackend`` runs Tesseract locally.  It is the end of the
  chain and never raises; OCR errors produce ``minimal_receipt()``.

Clients are injected so the orchestrator's composition root (see
``ExtractionService.from_settings``) owns their construction.
"""

from __future__ import annotations

import asyncio
import base64
import datetime as dt
import json
import logging
import re
from io import BytesIO
from typing import Any, Callable, Optional, Protocol

from receipt_scanner.models.enums import ExtractionBackendName
from receipt_scanner.models.schemas import ReceiptDetails, ReceiptItem
from receipt_scanner.services.text_parser import (
    DEFAULT_CURRENCY,
    GENERAL_ITEMS,
    UNKNOWN_VENDOR,
    parse_receipt_text,
)
from receipt_scanner.utils.helpers import is_number, round_money, today_iso, today_locale_string
from receipt_scanner.utils.prompts import get_default_extraction_prompt

logger = logging.getLogger(__name__)

UNKNOWN_ITEM = "Unknown Item"
OCR_FAILED_VENDOR = "Unknown Vendor (OCR failed)"
OCR_FAILED_ITEMS = "Receipt Items"

# 1x1 transparent PNG used for health probes
_PROBE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ExtractionError(RuntimeError):
    """A backend could not produce a result; the chain moves on."""


class ExtractionBackend(Protocol):
    name: ExtractionBackendName

    async def extract(self, image_bytes: bytes) -> ReceiptDetails: ...

    async def is_healthy(self) -> bool: ...


def minimal_receipt(today: Optional[dt.date] = None) -> ReceiptDetails:
    """Placeholder record returned when no backend could read the image."""
    return ReceiptDetails(
        date=today_locale_string(today),
        currency=DEFAULT_CURRENCY,
        vendor_name=OCR_FAILED_VENDOR,
        receipt_items=[ReceiptItem(item_name=OCR_FAILED_ITEMS, item_cost=0)],
        tax=0,
        total=0,
    )


def _preview(text: str, limit: int = 200) -> str:
    return text[:limit].replace("\n", " | ")


# ---------------------------------------------------------------------------
# Structured vision (OpenAI)


def coerce_structured_response(data: Any, today: Optional[dt.date] = None) -> ReceiptDetails:
    """Turn the model's untyped JSON into ``ReceiptDetails``.

    Every field gets a default rather than an error; only a payload that
    is not a JSON object at all is rejected.  When the model reports a
    zero total but lists items, the total is rebuilt from the items plus
    tax.
    """
    if not isinstance(data, dict):
        raise ExtractionError(f"expected a JSON object, got {type(data).__name__}")

    date = data.get("date")
    if not isinstance(date, str) or not date.strip():
        date = today_iso(today)

    currency = data.get("currency")
    if not isinstance(currency, str) or not currency.strip():
        currency = DEFAULT_CURRENCY

    vendor_name = data.get("vendor_name")
    if not isinstance(vendor_name, str) or not vendor_name.strip():
        vendor_name = UNKNOWN_VENDOR

    raw_items = data.get("receipt_items")
    items: list[ReceiptItem] = []
    if isinstance(raw_items, list):
        for raw in raw_items:
            raw = raw if isinstance(raw, dict) else {}
            name = raw.get("item_name")
            cost = raw.get("item_cost")
            items.append(
                ReceiptItem(
                    item_name=name if isinstance(name, str) and name else UNKNOWN_ITEM,
                    item_cost=cost if is_number(cost) else 0,
                )
            )
    if not items:
        items = [ReceiptItem(item_name=GENERAL_ITEMS, item_cost=0)]

    tax = data.get("tax")
    tax = tax if is_number(tax) else 0
    total = data.get("total")
    total = total if is_number(total) else 0

    if total == 0 and items:
        total = round_money(sum(item.item_cost for item in items) + tax)

    return ReceiptDetails(
        date=date,
        currency=currency,
        vendor_name=vendor_name,
        receipt_items=items,
        tax=tax,
        total=total,
    )


def decode_json_content(content: str) -> Any:
    """Decode model output, tolerating a surrounding markdown code fence."""
    cleaned = _CODE_FENCE.sub("", content.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"model returned invalid JSON: {exc}") from exc


class StructuredVisionBackend:
    """OpenAI vision model returning the receipt as a JSON object."""

    name = ExtractionBackendName.STRUCTURED_VISION

    def __init__(self, client: Any, model: str = "gpt-4o", max_tokens: int = 1000, prompt: Optional[str] = None) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.prompt = prompt or get_default_extraction_prompt()

    def _image_to_data_url(self, data: bytes) -> str:
        """Encode raw image bytes as a base64 data URL."""
        return f"data:image/jpeg;base64,{base64.b64encode(data).decode('utf-8')}"

    async def extract(self, image_bytes: bytes) -> ReceiptDetails:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.prompt},
                        {"type": "image_url", "image_url": {"url": self._image_to_data_url(image_bytes)}},
                    ],
                }
            ],
            response_format={"type": "json_object"},
            max_tokens=self.max_tokens,
            temperature=0,
        )
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ExtractionError("model returned no content")
        logger.debug("Structured vision raw output: %s", _preview(content))
        return coerce_structured_response(decode_json_content(content))

    async def is_healthy(self) -> bool:
        try:
            await self.client.models.retrieve(self.model)
            return True
        except Exception as exc:
            logger.error("Structured vision health check failed: %s", exc)
            return False


# ---------------------------------------------------------------------------
# OCR vision (Google Cloud Vision)


class OcrVisionBackend:
    """Google Cloud Vision text detection followed by the heuristic parser."""

    name = ExtractionBackendName.OCR_VISION

    def __init__(self, client: Any) -> None:
        self.client = client

    def _detect_text(self, image_bytes: bytes) -> str:
        from google.cloud import vision

        response = self.client.text_detection(image=vision.Image(content=image_bytes))
        error = getattr(response, "error", None)
        if error is not None and getattr(error, "message", ""):
            raise ExtractionError(f"vision API error: {error.message}")
        annotation = getattr(response, "full_text_annotation", None)
        return (getattr(annotation, "text", None) or "") if annotation is not None else ""

    async def extract(self, image_bytes: bytes) -> ReceiptDetails:
        text = await asyncio.to_thread(self._detect_text, image_bytes)
        logger.debug("OCR vision extracted text: %s...", _preview(text))
        return parse_receipt_text(text)

    async def is_healthy(self) -> bool:
        try:
            await asyncio.to_thread(self._detect_text, _PROBE_PNG)
            return True
        except Exception as exc:
            logger.error("OCR vision health check failed: %s", exc)
            return False


# ---------------------------------------------------------------------------
# Local OCR (Tesseract)


def run_tesseract(image_bytes: bytes, languages: str = "eng+deu", tesseract_cmd: Optional[str] = None) -> str:
    """Run Tesseract over raw image bytes and return the recognised text."""
    import pytesseract
    from PIL import Image

    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
    with Image.open(BytesIO(image_bytes)) as image:
        return str(pytesseract.image_to_string(image, lang=languages))


class LocalOcrBackend:
    """Tesseract OCR over the raw image; the chain's terminal backend."""

    name = ExtractionBackendName.LOCAL_OCR

    def __init__(
        self,
        languages: str = "eng+deu",
        tesseract_cmd: Optional[str] = None,
        ocr: Optional[Callable[[bytes], str]] = None,
    ) -> None:
        self.languages = languages
        self.tesseract_cmd = tesseract_cmd
        self._ocr = ocr or (lambda data: run_tesseract(data, self.languages, self.tesseract_cmd))

    async def extract(self, image_bytes: bytes) -> ReceiptDetails:
        logger.info("Running local OCR (languages=%s)", self.languages)
        try:
            text = await asyncio.to_thread(self._ocr, image_bytes)
        except Exception as exc:
            logger.error("Local OCR failed: %s", exc)
            return minimal_receipt()
        logger.info("Local OCR extracted text: %s...", _preview(text))
        return parse_receipt_text(text)

    async def is_healthy(self) -> bool:
        return True
