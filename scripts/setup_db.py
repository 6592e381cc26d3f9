#!/usr/bin/env python3
"""
Database setup script for the autotent pipeline.

Creates the autotent database and the tables the internal-link ranker
reads (projects, topic_clusters, articles_metadata).

Usage:
    python scripts/setup_db.py
"""
import asyncio
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncpg

# Default connection (to postgres db for creating new database)
POSTGRES_USER = "autotent"
POSTGRES_PASSWORD = "autotent"
POSTGRES_HOST = "localhost"
POSTGRES_PORT = 5432
AUTOTENT_DB = "autotent"
AUTOTENT_URL = f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{AUTOTENT_DB}"


async def create_database():
    """Create the autotent database if it doesn't exist."""
    conn = await asyncpg.connect(
        user=POSTGRES_USER,
        password=POSTGRES_PASSWORD,
        host=POSTGRES_HOST,
        port=POSTGRES_PORT,
        database="postgres",
    )

    try:
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1",
            AUTOTENT_DB,
        )

        if not exists:
            await conn.execute(f'CREATE DATABASE "{AUTOTENT_DB}"')
            print(f"✓ Created database: {AUTOTENT_DB}")
        else:
            print(f"✓ Database already exists: {AUTOTENT_DB}")

    finally:
        await conn.close()


async def create_tables():
    """Create all tables using SQLAlchemy models."""
    from shared.database import init_db, engine
    from shared.models import Base

    await init_db()
    await engine.dispose()

    print("✓ Created tables:")
    for table_name in Base.metadata.tables.keys():
        print(f"  - {table_name}")


async def main():
    print("=" * 60)
    print("AUTOTENT DATABASE SETUP")
    print("=" * 60)
    print()

    print("1. Creating database...")
    await create_database()
    print()

    print("2. Creating tables...")
    await create_tables()
    print()

    print("=" * 60)
    print("✓ Setup complete!")
    print()
    print("Add to your .env:")
    print(f"  AUTOTENT_DATABASE_URL={AUTOTENT_URL}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
