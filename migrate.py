#!/usr/bin/env python3
"""
Database migration runner for the Affilia back-office
Applies any sql/migrations/*.sql file not recorded in schema_migrations
"""
import asyncio
import hashlib
import sys
import time
from pathlib import Path
from typing import Dict, List, Tuple

import asyncpg

from lib.settings import settings

MIGRATIONS_DIR = Path(__file__).parent / "sql" / "migrations"

EXPECTED_TABLES = {
    "schema_migrations", "users", "campaigns", "tracking_links", "daily_metrics"
}


def read_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> List[Tuple[int, Path, str]]:
    """(version, path, sha256) for every migration file, sorted by version"""
    migrations = []
    for file in migrations_dir.glob("*.sql"):
        try:
            version = int(file.name.split("_")[0])
        except ValueError:
            print(f"[WARN] Skipping invalid migration filename: {file.name}")
            continue
        checksum = hashlib.sha256(file.read_bytes()).hexdigest()
        migrations.append((version, file, checksum))
    return sorted(migrations, key=lambda m: m[0])


class MigrationRunner:
    def __init__(self, migrations_dir: Path = MIGRATIONS_DIR):
        self.migrations_dir = migrations_dir
        self.conn = None

    async def ensure_migrations_table(self):
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                checksum TEXT NOT NULL,
                applied_at TIMESTAMPTZ DEFAULT NOW(),
                execution_time_ms INTEGER
            )
        """)

    async def applied_checksums(self) -> Dict[int, str]:
        rows = await self.conn.fetch("SELECT version, checksum FROM schema_migrations")
        return {row["version"]: row["checksum"] for row in rows}

    async def apply(self, version: int, file: Path, checksum: str):
        """Run one file and record it, in a single transaction"""
        print(f"[MIGRATE] Applying {file.stem}...")
        start = time.time()

        async with self.conn.transaction():
            await self.conn.execute(file.read_text(encoding="utf-8"))
            elapsed_ms = int((time.time() - start) * 1000)
            await self.conn.execute("""
                INSERT INTO schema_migrations (version, name, checksum, execution_time_ms)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (version) DO UPDATE SET
                    checksum = $3,
                    applied_at = NOW(),
                    execution_time_ms = $4
            """, version, file.stem, checksum, elapsed_ms)

        print(f"[OK] {file.stem} applied in {elapsed_ms}ms")

    async def run(self, force: bool = False):
        self.conn = await asyncpg.connect(str(settings.database_url))
        try:
            await self.ensure_migrations_table()
            applied = await self.applied_checksums()
            migrations = read_migrations(self.migrations_dir)

            if not migrations:
                print("[INFO] No migration files found")
                return

            applied_count = 0
            for version, file, checksum in migrations:
                if version not in applied:
                    await self.apply(version, file, checksum)
                    applied_count += 1
                elif applied[version] == checksum:
                    print(f"[SKIP] {file.stem} already applied")
                elif force:
                    print(f"[FORCE] Re-applying {file.stem} (checksum changed)")
                    await self.apply(version, file, checksum)
                    applied_count += 1
                else:
                    print(f"[WARN] {file.stem} has changed but not re-applying (use --force)")

            print(f"\n[SUMMARY] {len(migrations)} migrations, {applied_count} applied")
            await self.verify_schema()
        finally:
            await self.conn.close()

    async def verify_schema(self):
        rows = await self.conn.fetch("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
        """)
        missing = EXPECTED_TABLES - {row["table_name"] for row in rows}
        if missing:
            print(f"[WARN] Missing expected tables: {', '.join(sorted(missing))}")
        else:
            print(f"[OK] All {len(EXPECTED_TABLES)} expected tables present")


async def main():
    await MigrationRunner().run(force="--force" in sys.argv)


if __name__ == "__main__":
    asyncio.run(main())
