"""SQLiteStore: activity, version, content and usage storage with WAL mode."""

import json
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Mapping

from pulsediff.models import ActivityRecord, UsageLogEntry, VersionKey, VersionRefs
from pulsediff.query import parse_timestamp
from pulsediff.records import get_field, load_activity_records, load_usage_entries

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS activity_logs (
    id                  TEXT PRIMARY KEY,
    timestamp           TEXT NOT NULL,
    drive_id            TEXT NOT NULL,
    page_id             TEXT,
    operation           TEXT NOT NULL,
    resource_type       TEXT NOT NULL DEFAULT 'page',
    resource_title      TEXT,
    change_group_id     TEXT,
    ai_conversation_id  TEXT,
    is_ai_generated     INTEGER NOT NULL DEFAULT 0,
    actor_id            TEXT,
    actor_display_name  TEXT,
    actor_email         TEXT,
    content_snapshot    TEXT,
    content_ref         TEXT
);

CREATE INDEX IF NOT EXISTS idx_activity_drive_ts ON activity_logs(drive_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_activity_page_cg  ON activity_logs(page_id, change_group_id);

CREATE TABLE IF NOT EXISTS page_versions (
    id               TEXT PRIMARY KEY,
    page_id          TEXT NOT NULL,
    page_revision    INTEGER NOT NULL,
    content_ref      TEXT NOT NULL,
    change_group_id  TEXT,
    created_at       TEXT
);

CREATE INDEX IF NOT EXISTS idx_versions_page ON page_versions(page_id, page_revision);

CREATE TABLE IF NOT EXISTS page_contents (
    ref      TEXT PRIMARY KEY,
    content  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS usage_logs (
    id               TEXT PRIMARY KEY,
    timestamp        TEXT NOT NULL,
    conversation_id  TEXT,
    provider         TEXT,
    model            TEXT,
    input_tokens     INTEGER,
    output_tokens    INTEGER,
    total_tokens     INTEGER,
    cost             REAL,
    context_size     INTEGER,
    message_count    INTEGER,
    was_truncated    INTEGER
);

CREATE INDEX IF NOT EXISTS idx_usage_conv_ts ON usage_logs(conversation_id, timestamp);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);
"""

ACTIVITY_COLUMNS = (
    "id", "timestamp", "drive_id", "page_id", "operation", "resource_type",
    "resource_title", "change_group_id", "ai_conversation_id", "is_ai_generated",
    "actor_id", "actor_display_name", "actor_email", "content_snapshot", "content_ref",
)

USAGE_COLUMNS = (
    "id", "timestamp", "conversation_id", "provider", "model", "input_tokens",
    "output_tokens", "total_tokens", "cost", "context_size", "message_count",
    "was_truncated",
)


def _camel(column: str) -> str:
    head, *rest = column.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _iso(value: Any, what: str) -> str:
    try:
        return parse_timestamp(value).isoformat()
    except ValueError as e:
        raise ValueError(f"{what}: {e}") from e


def _column_values(row: Mapping[str, Any], columns: tuple[str, ...]) -> list[Any]:
    values = []
    for column in columns:
        value = get_field(row, _camel(column))
        if isinstance(value, bool):
            value = int(value)
        values.append(value)
    return values


class SQLiteStore:
    """SQLite-backed activity log, page version, content and usage log store.

    Implements the VersionStore and ContentStore protocols the resolver
    reads through. The async methods do their (fast, local) work inline.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def initialize(self) -> None:
        """Create tables and indexes."""
        self.conn.executescript(SCHEMA_SQL)
        self.set_meta("schema_version", str(SCHEMA_VERSION))

    # --- Writes (seeding) ---

    def _write(self, sql: str, values: list, commit: bool) -> None:
        if commit:
            with self.conn:
                self.conn.executemany(sql, values)
        else:
            self.conn.executemany(sql, values)

    def insert_activities(self, rows: Iterable[Mapping[str, Any]], commit: bool = True) -> int:
        """Insert raw activity rows in one transaction. Returns count."""
        values = []
        for row in rows:
            if not get_field(row, "id"):
                raise ValueError("Activity row has no id")
            if not get_field(row, "driveId"):
                raise ValueError(f"Activity {get_field(row, 'id')} has no driveId")
            record = _column_values(row, ACTIVITY_COLUMNS)
            record[1] = _iso(record[1], f"Activity {record[0]} timestamp")
            record[4] = record[4] or "update"
            record[5] = record[5] or "page"
            record[9] = record[9] or 0
            values.append(record)

        placeholders = ",".join("?" for _ in ACTIVITY_COLUMNS)
        self._write(
            f"INSERT INTO activity_logs ({', '.join(ACTIVITY_COLUMNS)}) "
            f"VALUES ({placeholders})",
            values, commit,
        )
        return len(values)

    def insert_versions(self, rows: Iterable[Mapping[str, Any]], commit: bool = True) -> int:
        """Insert page version rows. Returns count."""
        values = []
        for row in rows:
            page_id = get_field(row, "pageId")
            content_ref = get_field(row, "contentRef")
            revision = get_field(row, "pageRevision")
            if not page_id or not content_ref or revision is None:
                raise ValueError(f"Version row needs pageId, pageRevision and contentRef: {dict(row)}")
            version_id = get_field(row, "id") or f"{page_id}@{revision}"
            values.append((
                str(version_id), str(page_id), int(revision), str(content_ref),
                get_field(row, "changeGroupId"), get_field(row, "createdAt"),
            ))

        self._write(
            "INSERT INTO page_versions "
            "(id, page_id, page_revision, content_ref, change_group_id, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            values, commit,
        )
        return len(values)

    def put_contents(self, contents: Mapping[str, str], commit: bool = True) -> int:
        """Store page texts keyed by content ref (upsert). Returns count."""
        self._write(
            "INSERT INTO page_contents (ref, content) VALUES (?, ?) "
            "ON CONFLICT(ref) DO UPDATE SET content = excluded.content",
            list(contents.items()), commit,
        )
        return len(contents)

    def insert_usage(self, rows: Iterable[Mapping[str, Any]], commit: bool = True) -> int:
        """Insert usage log rows. Returns count."""
        values = []
        for row in rows:
            record = _column_values(row, USAGE_COLUMNS)
            if not record[0]:
                raise ValueError("Usage row has no id")
            record[1] = _iso(record[1], f"Usage {record[0]} timestamp")
            values.append(record)

        placeholders = ",".join("?" for _ in USAGE_COLUMNS)
        self._write(
            f"INSERT INTO usage_logs ({', '.join(USAGE_COLUMNS)}) VALUES ({placeholders})",
            values, commit,
        )
        return len(values)

    # --- Reads ---

    def page_activity(self, drive_id: str, since: str | None = None,
                      until: str | None = None, limit: int = 500) -> list[ActivityRecord]:
        """Page content edits for a drive, most recent first."""
        conditions = [
            "drive_id = ?",
            "resource_type = 'page'",
            "operation IN ('create', 'update')",
            "page_id IS NOT NULL",
            "(content_ref IS NOT NULL OR content_snapshot IS NOT NULL)",
        ]
        params: list = [drive_id]

        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        if until:
            conditions.append("timestamp <= ?")
            params.append(until)

        where = " AND ".join(conditions)
        sql = f"SELECT * FROM activity_logs WHERE {where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self.conn.execute(sql, params).fetchall()
        return load_activity_records(dict(r) for r in rows)

    def usage_logs(self, conversation_id: str, limit: int = 1000) -> list[UsageLogEntry]:
        """Usage entries for a conversation, most recent first."""
        rows = self.conn.execute(
            "SELECT * FROM usage_logs WHERE conversation_id = ? "
            "ORDER BY timestamp DESC LIMIT ?",
            (conversation_id, limit),
        ).fetchall()
        return load_usage_entries(dict(r) for r in rows)

    async def lookup_versions(self, keys: list[VersionKey]) -> dict[VersionKey, VersionRefs]:
        """Version refs bracketing each (page, change group).

        after: the change group's highest revision of the page.
        before: the page's highest revision below the group's lowest one.
        """
        if not keys:
            return {}

        page_ids = sorted({k.page_id for k in keys})
        placeholders = ",".join("?" for _ in page_ids)
        rows = self.conn.execute(
            "SELECT page_id, page_revision, content_ref, change_group_id "
            f"FROM page_versions WHERE page_id IN ({placeholders}) "
            "ORDER BY page_id, page_revision",
            page_ids,
        ).fetchall()

        by_page: dict[str, list[sqlite3.Row]] = {}
        for row in rows:
            by_page.setdefault(row["page_id"], []).append(row)

        result: dict[VersionKey, VersionRefs] = {}
        for key in keys:
            versions = by_page.get(key.page_id, [])
            in_group = [v for v in versions if v["change_group_id"] == key.change_group_id]
            if not in_group:
                continue
            after = in_group[-1]
            lowest = in_group[0]["page_revision"]
            prior = [v for v in versions if v["page_revision"] < lowest]
            before = prior[-1] if prior else None
            result[key] = VersionRefs(
                page_id=key.page_id,
                change_group_id=key.change_group_id,
                before_ref=before["content_ref"] if before else None,
                after_ref=after["content_ref"],
                before_revision=before["page_revision"] if before else None,
                after_revision=after["page_revision"],
            )
        return result

    async def fetch_content(self, ref: str) -> str:
        row = self.conn.execute(
            "SELECT content FROM page_contents WHERE ref = ?", (ref,)
        ).fetchone()
        if row is None:
            raise ValueError(f"Content not found: {ref}")
        return row["content"]

    # --- Status ---

    def counts(self) -> dict[str, int]:
        """Row counts per table."""
        return {
            table: self.conn.execute(f"SELECT COUNT(*) AS cnt FROM {table}").fetchone()["cnt"]
            for table in ("activity_logs", "page_versions", "page_contents", "usage_logs")
        }

    def get_meta(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        """Write to meta table (upsert)."""
        with self.conn:
            self.conn.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def load_json(self, path: Path) -> dict[str, int]:
        """Seed from a JSON file with activities/versions/contents/usage keys.

        All sections load in one transaction: any invalid row leaves the
        database unchanged.
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a JSON object")

        with self.conn:
            return {
                "activities": self.insert_activities(data.get("activities") or [], commit=False),
                "versions": self.insert_versions(data.get("versions") or [], commit=False),
                "contents": self.put_contents(data.get("contents") or {}, commit=False),
                "usage": self.insert_usage(data.get("usage") or [], commit=False),
            }
