#!/usr/bin/env python3
"""
Initialize database with all tables
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import get_settings
from app.database import Database
from app.models.base import Base


async def init_database():
    """Create all tables"""
    settings = get_settings()
    database = Database(settings)

    print(f"🗄️  Initializing database at {settings.database_url}...")
    await database.connect(create_tables=True)
    print(f"Created tables: {', '.join([t.name for t in Base.metadata.sorted_tables])}")
    await database.disconnect()

    print("✅ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
