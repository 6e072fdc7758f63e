"""SQLAlchemy ORM models for the receipt scanner.

A single ``receipts`` table holds every extracted receipt.  Line items
are stored in a JSON column so the table stays portable between SQLite
and PostgreSQL.  Call the ``init_db`` helper during development to
create the table.
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Column, String, DateTime, Numeric, JSON

from receipt_scanner.core.database import Base


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Receipt(Base):
    """Extracted receipt and the reference to its stored image."""

    __tablename__ = "receipts"

    id = Column(String(36), primary_key=True, default=_new_id)
    date = Column(String(100), nullable=False)
    currency = Column(String(3), nullable=False)
    vendor_name = Column(String(255), nullable=False)
    receipt_items = Column(JSON, nullable=False, default=list)
    tax = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    total = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    image_url = Column(String(500), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def get_receipt_items(self) -> list[dict]:
        """Return the stored line items, tolerating legacy malformed rows."""
        items = self.receipt_items
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]
