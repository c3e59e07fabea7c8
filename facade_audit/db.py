"""SQLite storage of facade audit results."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from .models import FacadeAuditResult
from .utils import extract_registered_domain, now_iso

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL UNIQUE,
    domain TEXT NOT NULL,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS audit_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    page_id INTEGER NOT NULL REFERENCES pages(id),
    audited_at TEXT NOT NULL,
    main_entity TEXT,
    score REAL NOT NULL,
    not_applicable BOOLEAN NOT NULL,
    display_value TEXT,
    wasted_bytes INTEGER DEFAULT 0,
    wasted_ms REAL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS facade_rows (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id INTEGER NOT NULL REFERENCES audit_runs(id),
    product_label TEXT NOT NULL,
    product_name TEXT NOT NULL,
    entity TEXT NOT NULL,
    transfer_size INTEGER,
    blocking_time REAL,
    facades TEXT
);

CREATE TABLE IF NOT EXISTS facade_urls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    row_id INTEGER NOT NULL REFERENCES facade_rows(id),
    url TEXT NOT NULL,
    first_start_time REAL,
    first_end_time REAL,
    transfer_size INTEGER,
    blocking_time REAL
);

CREATE INDEX IF NOT EXISTS idx_runs_page ON audit_runs(page_id);
CREATE INDEX IF NOT EXISTS idx_rows_run ON facade_rows(run_id);
CREATE INDEX IF NOT EXISTS idx_rows_product ON facade_rows(product_name);
CREATE INDEX IF NOT EXISTS idx_urls_row ON facade_urls(row_id);
"""


class Database:
    """Async SQLite database for facade audit results."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection and create tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("Database connected: %s", self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def upsert_page(self, url: str) -> int:
        """Insert a page or return its existing ID."""
        assert self._conn is not None
        cursor = await self._conn.execute("SELECT id FROM pages WHERE url = ?", (url,))
        row = await cursor.fetchone()
        if row:
            return row[0]

        cursor = await self._conn.execute(
            "INSERT INTO pages (url, domain) VALUES (?, ?)",
            (url, extract_registered_domain(url)),
        )
        await self._conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def save_audit_result(self, page_url: str, result: FacadeAuditResult) -> int:
        """Save an audit run with its rows and per-URL sub-rows."""
        assert self._conn is not None

        page_id = await self.upsert_page(page_url)

        async with self._conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO audit_runs (
                    page_id, audited_at, main_entity, score, not_applicable,
                    display_value, wasted_bytes, wasted_ms
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    page_id,
                    now_iso(),
                    result.main_entity,
                    result.score,
                    result.not_applicable,
                    result.display_value,
                    result.summary.wasted_bytes,
                    result.summary.wasted_ms,
                ),
            )
            run_id = cur.lastrowid

            for row in result.rows:
                await cur.execute(
                    """
                    INSERT INTO facade_rows (
                        run_id, product_label, product_name, entity,
                        transfer_size, blocking_time, facades
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        run_id,
                        row.product,
                        row.product_name,
                        row.entity_name,
                        row.transfer_size,
                        row.blocking_time,
                        ", ".join(f.name for f in row.facades),
                    ),
                )
                row_id = cur.lastrowid

                if row.sub_items:
                    await cur.executemany(
                        """
                        INSERT INTO facade_urls (
                            row_id, url, first_start_time, first_end_time,
                            transfer_size, blocking_time
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                row_id,
                                item.url,
                                item.first_start_time,
                                item.first_end_time,
                                item.transfer_size,
                                item.blocking_time,
                            )
                            for item in row.sub_items
                        ],
                    )

        await self._conn.commit()
        logger.debug(
            "Saved run %d: %s, %d rows, %d bytes wasted",
            run_id, page_url, len(result.rows), result.summary.wasted_bytes,
        )
        return run_id  # type: ignore[return-value]

    async def get_product_totals(self) -> list[dict]:
        """Wasted bytes/ms per product label summed over all runs, largest first."""
        assert self._conn is not None
        cursor = await self._conn.execute(
            """
            SELECT product_label,
                   COUNT(*) AS runs,
                   SUM(transfer_size) AS wasted_bytes,
                   SUM(blocking_time) AS wasted_ms
            FROM facade_rows
            GROUP BY product_label
            ORDER BY wasted_bytes DESC
            """
        )
        return [dict(row) for row in await cursor.fetchall()]

    async def get_page_totals(self) -> list[dict]:
        """Latest run of every page: wasted bytes/ms and opportunity count."""
        assert self._conn is not None
        cursor = await self._conn.execute(
            """
            SELECT p.url,
                   r.wasted_bytes,
                   r.wasted_ms,
                   (SELECT COUNT(*) FROM facade_rows fr WHERE fr.run_id = r.id) AS opportunities
            FROM audit_runs r
            JOIN pages p ON r.page_id = p.id
            WHERE r.id = (SELECT MAX(id) FROM audit_runs WHERE page_id = p.id)
            ORDER BY r.wasted_bytes DESC
            """
        )
        return [dict(row) for row in await cursor.fetchall()]

    async def get_stats(self) -> dict:
        """Get basic audit statistics."""
        assert self._conn is not None
        stats = {}

        cursor = await self._conn.execute("SELECT COUNT(*) FROM pages")
        stats["total_pages"] = (await cursor.fetchone())[0]

        cursor = await self._conn.execute("SELECT COUNT(*) FROM audit_runs")
        stats["total_runs"] = (await cursor.fetchone())[0]

        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM audit_runs WHERE not_applicable = 0"
        )
        stats["runs_with_opportunities"] = (await cursor.fetchone())[0]

        cursor = await self._conn.execute(
            "SELECT COALESCE(SUM(wasted_bytes), 0), COALESCE(SUM(wasted_ms), 0) FROM audit_runs"
        )
        wasted_bytes, wasted_ms = await cursor.fetchone()
        stats["wasted_bytes"] = wasted_bytes
        stats["wasted_ms"] = wasted_ms

        return stats
