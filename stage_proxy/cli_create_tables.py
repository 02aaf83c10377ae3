"""CLI script to create database tables."""
import asyncio

from stage_proxy.db import engine, Base
from stage_proxy.models import Option, Transient  # noqa: F401  (registers the tables)


async def create_tables():
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created successfully!")


def main():
    asyncio.run(create_tables())


if __name__ == "__main__":
    main()
