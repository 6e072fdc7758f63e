"""Run the extraction chain against a local receipt image.

Usage:
  python scripts/extract_receipt.py path/to/receipt.jpg [--verbose]

Backends are chosen from the same environment / ``.env`` values the API
uses.  Nothing is saved; the extracted receipt is printed as JSON.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend folder to sys.path so `import receipt_scanner...` works from a checkout
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from receipt_scanner.core.config import settings  # noqa: E402
from receipt_scanner.services.extraction_service import ExtractionService  # noqa: E402
from receipt_scanner.services.storage_service import file_extension  # noqa: E402


async def run(image_path: Path) -> str:
    service = ExtractionService.from_settings(settings)
    print(f"Extraction chain: {', '.join(service.backend_names) or '(local only)'}", file=sys.stderr)
    details = await service.extract(image_path.read_bytes())
    return details.model_dump_json(indent=2)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract structured data from a receipt image")
    parser.add_argument("image", type=Path, help="Path to a .jpg, .jpeg or .png receipt image")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log backend attempts")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if file_extension(args.image.name) not in settings.ALLOWED_EXTENSIONS:
        print(f"Unsupported file type: {args.image.name}", file=sys.stderr)
        return 2
    if not args.image.is_file():
        print(f"File not found: {args.image}", file=sys.stderr)
        return 2

    print(asyncio.run(run(args.image)))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
