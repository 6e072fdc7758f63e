"""Receipt extraction service.

Walks an ordered chain of extraction backends and returns the first
successful ``ReceiptDetails``:

1. Structured vision (OpenAI), when ``OPENAI_API_KEY`` is set.
2. OCR vision (Google Cloud Vision), when the project id, private key
   and client email are all set.
3. Local OCR (Tesseract), always.

Each configured backend gets exactly one attempt per image.  A failure
is logged and the next backend is tried; earlier backends are never
revisited.  The local backend terminates the chain and cannot fail
outward, so ``extract`` always returns a record.

Clients are built once in ``from_settings`` (the composition root) and
shared by every request through ``app.state``.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from receipt_scanner.core.config import Settings, get_google_private_key
from receipt_scanner.core.observability import sentry_breadcrumb
from receipt_scanner.models.schemas import ReceiptDetails
from receipt_scanner.services.extraction_backends import (
    ExtractionBackend,
    LocalOcrBackend,
    OcrVisionBackend,
    StructuredVisionBackend,
    minimal_receipt,
)

logger = logging.getLogger(__name__)

_GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def build_openai_client(settings: Settings):
    from openai import AsyncOpenAI

    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY)


def build_vision_client(settings: Settings):
    from google.cloud import vision
    from google.oauth2 import service_account

    credentials = service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "project_id": settings.GOOGLE_CLOUD_PROJECT_ID,
            "private_key": get_google_private_key(settings),
            "client_email": settings.GOOGLE_CLOUD_CLIENT_EMAIL,
            "token_uri": _GOOGLE_TOKEN_URI,
        }
    )
    return vision.ImageAnnotatorClient(credentials=credentials)


class ExtractionService:
    """Priority-ordered fallback over the configured extraction backends."""

    def __init__(self, backends: Sequence[ExtractionBackend], terminal: Optional[LocalOcrBackend] = None) -> None:
        self.backends: List[ExtractionBackend] = list(backends)
        self.terminal = terminal or LocalOcrBackend()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExtractionService":
        """Build the chain from whichever credentials are configured.

        A backend without credentials is left out of the chain entirely,
        as is one whose client cannot be constructed.
        """
        backends: List[ExtractionBackend] = []

        if settings.has_openai_credentials:
            try:
                backends.append(
                    StructuredVisionBackend(
                        build_openai_client(settings),
                        model=settings.OPENAI_MODEL,
                        max_tokens=settings.OPENAI_MAX_TOKENS,
                    )
                )
                logger.info("Structured vision backend enabled (model=%s)", settings.OPENAI_MODEL)
            except Exception as exc:
                logger.error("Failed to initialise OpenAI client: %s", exc)
        else:
            logger.warning("OPENAI_API_KEY not set; structured vision backend disabled")

        if settings.has_google_credentials:
            try:
                backends.append(OcrVisionBackend(build_vision_client(settings)))
                logger.info("Google Cloud Vision backend enabled (project=%s)", settings.GOOGLE_CLOUD_PROJECT_ID)
            except Exception as exc:
                logger.error("Failed to initialise Google Cloud Vision client: %s", exc)
        else:
            logger.warning("Google Cloud Vision credentials not found; OCR vision backend disabled")

        terminal = LocalOcrBackend(
            languages=settings.TESSERACT_LANGUAGES,
            tesseract_cmd=settings.TESSERACT_CMD,
        )
        return cls(backends, terminal)

    @property
    def backend_names(self) -> List[str]:
        return [b.name.value for b in self.backends] + [self.terminal.name.value]

    async def extract(self, image_bytes: bytes) -> ReceiptDetails:
        """Return the first successful extraction; never raises."""
        logger.info("Starting receipt data extraction (chain=%s)", self.backend_names)

        for backend in self.backends:
            try:
                details = await backend.extract(image_bytes)
            except Exception as exc:
                logger.warning("Backend %s failed, trying next: %s", backend.name.value, exc)
                sentry_breadcrumb(
                    category="extraction",
                    message="extraction.backend_failed",
                    level="warning",
                    data={"backend": backend.name.value},
                )
                continue
            logger.info("Extraction succeeded with %s (vendor=%s)", backend.name.value, details.vendor_name)
            return details

        try:
            details = await self.terminal.extract(image_bytes)
        except Exception as exc:
            logger.error("Local OCR raised unexpectedly: %s", exc)
            return minimal_receipt()
        logger.info("Extraction finished with %s (vendor=%s)", self.terminal.name.value, details.vendor_name)
        return details

    async def is_healthy(self) -> bool:
        """Probe the highest-priority remote backend, if any is configured."""
        if not self.backends:
            return True
        try:
            return bool(await self.backends[0].is_healthy())
        except Exception as exc:
            logger.error("Extraction health check failed: %s", exc)
            return False
