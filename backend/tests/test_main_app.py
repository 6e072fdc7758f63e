import datetime as dt

from fastapi.testclient import TestClient

from receipt_scanner.api.dependencies import get_receipt_service
from receipt_scanner.api.main import app
from receipt_scanner.models.enums import HealthStatus
from receipt_scanner.models.schemas import HealthCheckResponse


class DummyReceiptService:
    async def health(self):
        return HealthCheckResponse(status=HealthStatus.HEALTHY, timestamp=dt.datetime.now(dt.timezone.utc))

    async def list_receipts(self):
        return []


def test_root_and_liveness_endpoints():
    # No context manager: the lifespan (database + clients) is not started
    client = TestClient(app)

    assert "Welcome" in client.get("/").json()["message"]
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.head("/health").status_code == 200
    assert client.get("/debug/db").status_code == 404


def test_receipt_routes_are_mounted():
    app.dependency_overrides[get_receipt_service] = lambda: DummyReceiptService()
    try:
        client = TestClient(app)

        assert client.get("/receipt/health/check").json()["status"] == "healthy"
        assert client.get("/receipt").json() == []
        assert client.get("/receipt/not-a-uuid").status_code == 422
        assert client.get("/receipt/not-a-uuid/image").status_code == 422
        assert client.delete("/receipt/not-a-uuid").status_code == 422
        missing = client.post("/receipt/extract-receipt-details")
        assert missing.status_code == 400
    finally:
        app.dependency_overrides.clear()
