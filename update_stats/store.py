"""SQLite statistics store.

Every day is written in its own transaction, so a failure only loses the
day being flushed. Writes are upserts keyed on each table's unique index,
which makes re-processing the same log range idempotent.
"""

import logging
import sqlite3
from typing import Iterable

from update_stats.combinations import CombinationRow
from update_stats.date_range import utc_date
from update_stats.errors import StoreError
from update_stats.summary import TOTAL_HITS, DaySummary

logger = logging.getLogger(__name__)

SCHEMA = (
    """CREATE TABLE IF NOT EXISTS metrics (
        metric_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
        metric VARCHAR(50) UNIQUE NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS slugs (
        slug_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
        slug VARCHAR(250) UNIQUE NOT NULL,
        last_seen_on DATE
    )""",
    """CREATE TABLE IF NOT EXISTS stats (
        datestamp DATE NOT NULL,
        slug_id INTEGER NOT NULL,
        metric_id INTEGER NOT NULL,
        value TEXT,
        requests INTEGER NOT NULL DEFAULT 0,
        unique_sites INTEGER NOT NULL DEFAULT 0
    )""",
    "CREATE UNIQUE INDEX IF NOT EXISTS id_context ON stats (datestamp, slug_id, metric_id, value)",
    """CREATE TABLE IF NOT EXISTS combinations (
        datestamp DATE NOT NULL,
        slug_id INTEGER NOT NULL,
        metric1_id INTEGER NOT NULL,
        metric1_value VARCHAR(30),
        metric2_id INTEGER NOT NULL,
        percentile10th VARCHAR(30),
        percentile50th VARCHAR(30),
        percentile90th VARCHAR(30)
    )""",
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_combinations ON combinations (
        datestamp, slug_id, metric1_id, metric1_value, metric2_id
    )""",
)

# NULL values never collide in a unique index, so stats rows are replaced
# by deleting the key (matched with IS) before inserting.
_DELETE_STAT = """
    DELETE FROM stats
    WHERE datestamp = ? AND slug_id = ? AND metric_id = ? AND value IS ?
"""
_INSERT_STAT = """
    INSERT INTO stats (datestamp, slug_id, metric_id, value, requests, unique_sites)
    VALUES (?, ?, ?, ?, ?, ?)
"""
_UPSERT_COMBINATION = """
    INSERT INTO combinations (
        datestamp, slug_id, metric1_id, metric1_value, metric2_id,
        percentile10th, percentile50th, percentile90th
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (datestamp, slug_id, metric1_id, metric1_value, metric2_id) DO UPDATE SET
        percentile10th = excluded.percentile10th,
        percentile50th = excluded.percentile50th,
        percentile90th = excluded.percentile90th
"""
_TOUCH_SLUG = """
    UPDATE slugs
    SET last_seen_on = CASE
        WHEN last_seen_on IS NULL OR last_seen_on < :last_seen_on THEN :last_seen_on
        ELSE last_seen_on
    END
    WHERE slug_id = :slug_id
"""


class StatsDatabase:
    """Owns the connection plus the slug and metric id lookup caches."""

    def __init__(self, database: str | sqlite3.Connection, metrics: Iterable[str] = ()):
        if isinstance(database, sqlite3.Connection):
            self._conn = database
        else:
            self._conn = sqlite3.connect(database)
        self._slug_ids: dict[str, int] = {}
        self._metric_ids: dict[str, int] = {}
        self._create_tables(list(metrics))
        self._populate_lookups()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def _create_tables(self, metrics: list[str]) -> None:
        with self._conn:
            for statement in SCHEMA:
                self._conn.execute(statement)
            (count,) = self._conn.execute("SELECT COUNT(*) FROM metrics").fetchone()
            if count == 0:
                self._conn.executemany(
                    "INSERT INTO metrics (metric) VALUES (?)",
                    [(m,) for m in metrics + [TOTAL_HITS] if m],
                )

    def _populate_lookups(self) -> None:
        for metric_id, metric in self._conn.execute("SELECT metric_id, metric FROM metrics"):
            self._metric_ids[metric] = metric_id
        for slug_id, slug in self._conn.execute("SELECT slug_id, slug FROM slugs"):
            self._slug_ids[slug] = slug_id

    def metric_id(self, metric: str) -> int:
        if metric not in self._metric_ids:
            cursor = self._conn.execute("INSERT INTO metrics (metric) VALUES (?)", (metric,))
            self._metric_ids[metric] = cursor.lastrowid
        return self._metric_ids[metric]

    def slug_id(self, slug: str) -> int | None:
        return self._slug_ids.get(slug)

    def _save_slugs(self, slug_last_seen: dict[str, int]) -> dict[str, int]:
        """Insert new slugs and bump last_seen_on for known ones."""
        added = {}
        for slug, timestamp in slug_last_seen.items():
            params = {"slug": slug, "last_seen_on": utc_date(timestamp)}
            slug_id = self._slug_ids.get(slug)
            if slug_id is None:
                cursor = self._conn.execute(
                    "INSERT INTO slugs (slug, last_seen_on) VALUES (:slug, :last_seen_on)",
                    params,
                )
                added[slug] = cursor.lastrowid
            else:
                self._conn.execute(_TOUCH_SLUG, dict(params, slug_id=slug_id))
        return added

    def flush_day(self, summary: DaySummary, combinations: Iterable[CombinationRow]) -> None:
        """Write one day's stats and combinations in a single transaction.

        Raises StoreError after rolling back if anything fails. The id
        caches only learn about new slugs and metrics once the transaction
        has committed.
        """
        date = summary.date
        known_metrics = dict(self._metric_ids)
        try:
            with self._conn:
                new_slugs = self._save_slugs(summary.slug_last_seen)
                slug_ids = {**self._slug_ids, **new_slugs}

                for row in summary.rows():
                    key = (date, slug_ids[row.slug], self.metric_id(row.metric), row.value)
                    self._conn.execute(_DELETE_STAT, key)
                    self._conn.execute(_INSERT_STAT, key + (row.requests, row.unique_sites))

                for combo in combinations:
                    self._conn.execute(_UPSERT_COMBINATION, (
                        date,
                        slug_ids[combo.slug],
                        self.metric_id(combo.metric1),
                        combo.metric1_value,
                        self.metric_id(combo.metric2),
                        combo.percentile10th,
                        combo.percentile50th,
                        combo.percentile90th,
                    ))
        except sqlite3.Error as exc:
            self._metric_ids = known_metrics
            logger.error("Flushing %s failed, rolled back: %s", date, exc)
            raise StoreError(f"Failed to save stats for {date}: {exc}") from exc
        except Exception:
            self._metric_ids = known_metrics
            raise

        self._slug_ids.update(new_slugs)

    def last_processed_date(self) -> str | None:
        (last,) = self._conn.execute('SELECT MAX("datestamp") FROM "stats"').fetchone()
        return last or None

    # -- read side -----------------------------------------------------------

    def list_slugs(self) -> list[str]:
        return [slug for (slug,) in self._conn.execute("SELECT slug FROM slugs ORDER BY slug")]

    def metric_rows(self, slug: str, metric: str, start: str, end: str) -> list[dict]:
        """Daily rows of one metric for one slug, oldest first."""
        cursor = self._conn.execute(
            """
            SELECT datestamp, COALESCE(value, 'N/A') AS value, unique_sites, requests
            FROM stats
            JOIN slugs ON slugs.slug_id = stats.slug_id
            JOIN metrics ON metrics.metric_id = stats.metric_id
            WHERE slugs.slug = ? AND metrics.metric = ?
              AND datestamp >= ? AND datestamp <= ?
            ORDER BY datestamp ASC
            """,
            (slug, metric, start, end),
        )
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row)) for row in cursor]

    def version_combinations(
        self, slug: str, date: str, metric1: str, metric2: str, limit: int = 10
    ) -> list[dict]:
        """Percentile rows for one day, most popular metric1 values first."""
        cursor = self._conn.execute(
            """
            SELECT metric1_value, percentile10th, percentile50th, percentile90th,
                   stats.unique_sites AS unique_sites
            FROM combinations
            JOIN slugs ON slugs.slug_id = combinations.slug_id
            JOIN metrics AS m1 ON m1.metric_id = combinations.metric1_id
            JOIN metrics AS m2 ON m2.metric_id = combinations.metric2_id
            LEFT JOIN stats ON (
                stats.slug_id = combinations.slug_id
                AND stats.datestamp = combinations.datestamp
                AND stats.metric_id = combinations.metric1_id
                AND stats.value = combinations.metric1_value
            )
            WHERE combinations.datestamp = ? AND slugs.slug = ?
              AND m1.metric = ? AND m2.metric = ?
            ORDER BY stats.unique_sites DESC
            LIMIT ?
            """,
            (date, slug, metric1, metric2, limit),
        )
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row)) for row in cursor]
