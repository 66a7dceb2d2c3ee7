"""Apply bundled SQL migrations against the asyncpg pool."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"

logger = logging.getLogger(__name__)


async def apply_migrations(pool: asyncpg.Pool, directory: Path = MIGRATIONS_DIR) -> list[str]:
	paths = sorted(directory.glob("*.sql"))
	applied_now: list[str] = []
	async with pool.acquire() as conn:
		await conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS schema_migrations (
				version TEXT PRIMARY KEY,
				applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
			)
			"""
		)
		rows = await conn.fetch("SELECT version FROM schema_migrations")
		applied = {row["version"] for row in rows}
		for path in paths:
			version = path.stem
			if version in applied:
				continue
			async with conn.transaction():
				await conn.execute(path.read_text(encoding="utf-8"))
				await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", version)
			logger.info("migration_applied", extra={"version": version})
			applied_now.append(version)
	return applied_now
