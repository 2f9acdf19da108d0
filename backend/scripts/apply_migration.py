"""Apply one SQL file from backend/migrations inside a single transaction.

Usage: python backend/scripts/apply_migration.py 0001_circle_core.sql
"""

import asyncio
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from circle.infra.postgres import close_pool, get_pool  # noqa: E402

MIGRATIONS_DIR = BACKEND_DIR / "migrations"


async def apply_migration(filename: str) -> None:
    migration_path = MIGRATIONS_DIR / filename
    if not migration_path.exists():
        print(f"Migration file not found: {migration_path}")
        return

    print(f"Applying migration: {filename}")
    sql = migration_path.read_text(encoding="utf-8")
    pool = await get_pool()
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(sql)
    finally:
        await close_pool()
    print("Migration applied successfully.")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python apply_migration.py <migration_filename>")
        sys.exit(1)
    asyncio.run(apply_migration(sys.argv[1]))
