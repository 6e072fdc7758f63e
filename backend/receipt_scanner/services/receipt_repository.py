"""Persistence for extracted receipts.

Thin wrapper over an ``AsyncSession`` so the receipt service can be
exercised without a database.  Writes are committed once per call, so a
receipt row is either stored whole or not at all.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from receipt_scanner.core.database import ping_database
from receipt_scanner.models.schemas import ReceiptDetails
from receipt_scanner.models.tables import Receipt


class ReceiptRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, details: ReceiptDetails, image_url: str) -> Receipt:
        receipt = Receipt(
            date=details.date,
            currency=details.currency,
            vendor_name=details.vendor_name,
            receipt_items=[item.model_dump() for item in details.receipt_items],
            tax=details.tax,
            total=details.total,
            image_url=image_url,
        )
        self.session.add(receipt)
        await self.session.commit()
        await self.session.refresh(receipt)
        return receipt

    async def get(self, receipt_id: str) -> Optional[Receipt]:
        result = await self.session.execute(select(Receipt).where(Receipt.id == receipt_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> List[Receipt]:
        """All receipts, most recently created first."""
        result = await self.session.execute(select(Receipt).order_by(Receipt.created_at.desc()))
        return list(result.scalars().all())

    async def delete(self, receipt: Receipt) -> None:
        await self.session.delete(receipt)
        await self.session.commit()

    async def ping(self) -> bool:
        return await ping_database(self.session)
