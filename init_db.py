"""Initialize the database schema for the intake backend.

Creates the submissions table (and the unique email index when enabled).
Pass --drop to recreate everything from scratch.
"""

import argparse
import asyncio
import sys
import traceback

from intake.config import get_settings
from intake.db import Database
from intake.models import Base


async def init_database(drop: bool) -> None:
    """Create all database tables."""
    settings = get_settings()
    database = Database(settings.db.url, echo=settings.db.echo)
    print(f"Initializing database: {settings.db.url}")

    await database.connect(unique_email=settings.unique_email)
    try:
        if drop:
            await database.create_all(unique_email=settings.unique_email, drop=True)
            print("✓ Dropped and recreated tables")
        else:
            print("✓ Ensured tables exist")
        print(f"Unique email index: {'on' if settings.unique_email else 'off'}")
    finally:
        await database.dispose()

    print("\n✅ Database initialization complete!")
    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    try:
        asyncio.run(init_database(args.drop))
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
