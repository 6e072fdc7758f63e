"""Receipt scanner backend.

This package turns photos of receipts into structured records.  It
includes the database model, Pydantic schemas, the tiered extraction
chain (OpenAI vision, Google Cloud Vision, local Tesseract), image
storage and the FastAPI routers that expose them.

To run the API locally you can execute (from ``backend/``):

```bash
uvicorn receipt_scanner.api.main:app --reload --port 3001
```

The default configuration uses a local SQLite database stored in
``receipts.db`` and keeps uploads under ``./uploads``.  You can override
configuration values using environment variables or a ``.env`` file at
the project root.
"""

__all__: list[str] = []
