"""Script to initialize the database without running migrations."""

import asyncio

from petcare.config import settings
from petcare.database import Database


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    database = Database(settings.async_database_url)
    database.connect()
    try:
        await database.create_all()
        print("✓ Database initialized successfully!")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
