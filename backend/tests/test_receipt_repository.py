from __future__ import annotations

import datetime as dt

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from receipt_scanner.core.database import Base
from receipt_scanner.models.schemas import ReceiptDetails, ReceiptItem
from receipt_scanner.models.tables import Receipt
from receipt_scanner.services.receipt_repository import ReceiptRepository


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
    await engine.dispose()


def _details(vendor="Test Store", total=12.09):
    return ReceiptDetails(
        date="2024-01-15",
        currency="USD",
        vendor_name=vendor,
        receipt_items=[ReceiptItem(item_name="Test Item", item_cost=10.99)],
        tax=1.1,
        total=total,
    )


@pytest.mark.asyncio
async def test_create_assigns_uuid_and_timestamps(session):
    repo = ReceiptRepository(session)
    receipt = await repo.create(_details(), "/uploads/a.png")

    assert len(receipt.id) == 36
    assert receipt.created_at is not None
    assert receipt.get_receipt_items() == [{"item_name": "Test Item", "item_cost": 10.99}]
    assert receipt.total == 12.09

    fetched = await repo.get(receipt.id)
    assert fetched is not None
    assert fetched.vendor_name == "Test Store"
    assert fetched.image_url == "/uploads/a.png"


@pytest.mark.asyncio
async def test_get_unknown_returns_none(session):
    assert await ReceiptRepository(session).get("00000000-0000-0000-0000-000000000000") is None


@pytest.mark.asyncio
async def test_list_all_newest_first(session):
    repo = ReceiptRepository(session)
    older = await repo.create(_details(vendor="Older"), "/uploads/old.png")
    newer = await repo.create(_details(vendor="Newer"), "/uploads/new.png")
    older.created_at = dt.datetime(2020, 1, 1, tzinfo=dt.timezone.utc)
    await session.commit()

    receipts = await repo.list_all()

    assert [r.id for r in receipts] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_delete_removes_row(session):
    repo = ReceiptRepository(session)
    receipt = await repo.create(_details(), "/uploads/a.png")

    await repo.delete(receipt)

    assert await repo.get(receipt.id) is None
    assert await repo.list_all() == []


@pytest.mark.asyncio
async def test_ping(session):
    assert await ReceiptRepository(session).ping() is True


def test_receipt_items_tolerates_malformed_rows():
    assert Receipt(receipt_items="oops").get_receipt_items() == []
    assert Receipt(receipt_items=[{"item_name": "a", "item_cost": 1}, 3]).get_receipt_items() == [
        {"item_name": "a", "item_cost": 1}
    ]
