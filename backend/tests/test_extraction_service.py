from __future__ import annotations

import pytest

from receipt_scanner.core.config import Settings
from receipt_scanner.models.enums import ExtractionBackendName
from receipt_scanner.models.schemas import ReceiptDetails, ReceiptItem
from receipt_scanner.services import extraction_service as es
from receipt_scanner.services.extraction_backends import OCR_FAILED_VENDOR, LocalOcrBackend
from receipt_scanner.services.extraction_service import ExtractionService


def _details(vendor: str) -> ReceiptDetails:
    return ReceiptDetails(
        date="2024-01-15",
        currency="USD",
        vendor_name=vendor,
        receipt_items=[ReceiptItem(item_name="Item", item_cost=1.0)],
        tax=0.1,
        total=1.1,
    )


class DummyBackend:
    def __init__(self, name, result=None, error=None, healthy=True):
        self.name = name
        self.result = result
        self.error = error
        self.healthy = healthy
        self.calls = 0

    async def extract(self, image_bytes):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result

    async def is_healthy(self):
        return self.healthy


class DummyTerminal(DummyBackend):
    def __init__(self, **kwargs):
        super().__init__(ExtractionBackendName.LOCAL_OCR, **kwargs)


@pytest.mark.asyncio
async def test_first_successful_backend_wins():
    first = DummyBackend(ExtractionBackendName.STRUCTURED_VISION, result=_details("First"))
    second = DummyBackend(ExtractionBackendName.OCR_VISION, result=_details("Second"))
    terminal = DummyTerminal(result=_details("Local"))

    details = await ExtractionService([first, second], terminal).extract(b"img")

    assert details.vendor_name == "First"
    assert (first.calls, second.calls, terminal.calls) == (1, 0, 0)


@pytest.mark.asyncio
async def test_failures_advance_once_through_the_chain():
    first = DummyBackend(ExtractionBackendName.STRUCTURED_VISION, error=RuntimeError("rate limited"))
    second = DummyBackend(ExtractionBackendName.OCR_VISION, error=RuntimeError("bad key"))
    terminal = DummyTerminal(result=_details("Local"))

    details = await ExtractionService([first, second], terminal).extract(b"img")

    assert details.vendor_name == "Local"
    assert (first.calls, second.calls, terminal.calls) == (1, 1, 1)


@pytest.mark.asyncio
async def test_terminal_error_yields_minimal_receipt():
    terminal = DummyTerminal(error=RuntimeError("unexpected"))
    details = await ExtractionService([], terminal).extract(b"img")
    assert details.vendor_name == OCR_FAILED_VENDOR


@pytest.mark.asyncio
async def test_health_uses_first_remote_backend():
    healthy = DummyBackend(ExtractionBackendName.STRUCTURED_VISION, healthy=True)
    unhealthy = DummyBackend(ExtractionBackendName.STRUCTURED_VISION, healthy=False)

    assert await ExtractionService([], DummyTerminal()).is_healthy() is True
    assert await ExtractionService([healthy], DummyTerminal()).is_healthy() is True
    assert await ExtractionService([unhealthy, healthy], DummyTerminal()).is_healthy() is False


def test_from_settings_without_credentials_is_local_only():
    settings = Settings(OPENAI_API_KEY=None, GOOGLE_CLOUD_PROJECT_ID=None)
    service = ExtractionService.from_settings(settings)

    assert service.backends == []
    assert isinstance(service.terminal, LocalOcrBackend)
    assert service.backend_names == ["local_ocr"]


def test_from_settings_orders_backends_by_priority(monkeypatch):
    monkeypatch.setattr(es, "build_openai_client", lambda s: object())
    monkeypatch.setattr(es, "build_vision_client", lambda s: object())
    settings = Settings(
        OPENAI_API_KEY="sk-test",
        GOOGLE_CLOUD_PROJECT_ID="proj",
        GOOGLE_CLOUD_PRIVATE_KEY="key",
        GOOGLE_CLOUD_CLIENT_EMAIL="svc@proj.iam.gserviceaccount.com",
    )

    service = ExtractionService.from_settings(settings)

    assert service.backend_names == ["structured_vision", "ocr_vision", "local_ocr"]


def test_from_settings_skips_backend_whose_client_fails(monkeypatch):
    def broken(settings):
        raise ValueError("could not deserialize key")

    monkeypatch.setattr(es, "build_openai_client", lambda s: object())
    monkeypatch.setattr(es, "build_vision_client", broken)
    settings = Settings(
        OPENAI_API_KEY="sk-test",
        GOOGLE_CLOUD_PROJECT_ID="proj",
        GOOGLE_CLOUD_PRIVATE_KEY="not-a-pem",
        GOOGLE_CLOUD_CLIENT_EMAIL="svc@proj.iam.gserviceaccount.com",
    )

    service = ExtractionService.from_settings(settings)

    assert service.backend_names == ["structured_vision", "local_ocr"]


def test_vision_client_uses_private_key_from_given_settings(monkeypatch):
    from google.cloud import vision
    from google.oauth2 import service_account

    captured = {}

    def fake_from_info(info):
        captured.update(info)
        return "creds"

    monkeypatch.delenv("GOOGLE_CLOUD_PRIVATE_KEY", raising=False)
    monkeypatch.setattr(service_account.Credentials, "from_service_account_info", staticmethod(fake_from_info))
    monkeypatch.setattr(vision, "ImageAnnotatorClient", lambda credentials: ("client", credentials))
    settings = Settings(
        GOOGLE_CLOUD_PROJECT_ID="proj",
        GOOGLE_CLOUD_PRIVATE_KEY="-----BEGIN\\nKEY",
        GOOGLE_CLOUD_CLIENT_EMAIL="svc@proj.iam.gserviceaccount.com",
    )

    client = es.build_vision_client(settings)

    assert client == ("client", "creds")
    assert captured["private_key"] == "-----BEGIN\nKEY"
    assert captured["project_id"] == "proj"
    assert captured["client_email"] == "svc@proj.iam.gserviceaccount.com"
