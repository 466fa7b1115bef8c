"""Script to create the scheduling tables without running migrations."""

import asyncio

from sqlalchemy import text

from clinic_scheduler.database import engine
from clinic_scheduler.models import metadata


async def init_db() -> None:
    """Create the schedule, exception, block and appointment tables."""
    async with engine.begin() as conn:
        # gen_random_uuid() lives in pgcrypto on older PostgreSQL releases
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Created tables: {', '.join(sorted(metadata.tables))}")


if __name__ == "__main__":
    asyncio.run(init_db())
