"""Initialize database tables."""

import asyncio
import sys
from pathlib import Path

# Add backend folder to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from receipt_scanner.core.database import get_db_debug_info, init_db  # noqa: E402


async def main():
    print(f"Initializing database tables at {get_db_debug_info().get('url')}...")
    await init_db()
    print("Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main())
