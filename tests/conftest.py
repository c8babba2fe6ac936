"""Shared fixtures for pulsediff tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pulsediff.models import ActivityRecord, VersionKey, VersionRefs
from pulsediff.store import SQLiteStore

T0 = datetime(2026, 2, 23, 10, 0, tzinfo=timezone.utc)


def _record(id: str, minutes: float = 0, page_id: str = "page-1",
            drive_id: str = "drive-1", **kwargs) -> ActivityRecord:
    kwargs.setdefault("actor_id", "user-a")
    kwargs.setdefault("actor_display_name", "Alice")
    kwargs.setdefault("resource_title", "Roadmap")
    if "content_ref" not in kwargs:
        kwargs.setdefault("content_snapshot", f"snapshot of {id}")
    return ActivityRecord(
        id=id,
        timestamp=T0 + timedelta(minutes=minutes),
        drive_id=drive_id,
        page_id=page_id,
        **kwargs,
    )


class FakeVersionStore:
    """In-memory version store keyed by (page, change group)."""

    def __init__(self):
        self.refs: dict[VersionKey, VersionRefs] = {}
        self.calls: list[list[VersionKey]] = []
        self.fail = False

    def add(self, page_id: str, change_group_id: str,
            after_ref: str | None, before_ref: str | None = None) -> None:
        key = VersionKey(page_id=page_id, change_group_id=change_group_id)
        self.refs[key] = VersionRefs(
            page_id=page_id,
            change_group_id=change_group_id,
            before_ref=before_ref,
            after_ref=after_ref,
        )

    async def lookup_versions(self, keys):
        self.calls.append(list(keys))
        if self.fail:
            raise ConnectionError("version store unavailable")
        return {k: self.refs[k] for k in keys if k in self.refs}


class FakeContentStore:
    """In-memory content store that tracks fetch concurrency."""

    def __init__(self):
        self.texts: dict[str, str] = {}
        self.failing: set[str] = set()
        self.fetched: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_content(self, ref):
        self.fetched.append(ref)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            if ref in self.failing:
                raise TimeoutError(f"fetch of {ref} timed out")
            if ref not in self.texts:
                raise KeyError(ref)
            return self.texts[ref]
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_record():
    """Factory for ActivityRecords, timestamps given in minutes after T0."""
    return _record


@pytest.fixture
def versions():
    return FakeVersionStore()


@pytest.fixture
def contents():
    return FakeContentStore()


@pytest.fixture
def store(tmp_path):
    """Empty initialized SQLite store."""
    s = SQLiteStore(tmp_path / "pulse.db")
    s.initialize()
    yield s
    s.close()


SEED = {
    "activities": [
        {"id": "a1", "timestamp": "2026-02-23T10:00:00Z", "driveId": "drive-1",
         "pageId": "page-1", "operation": "update", "resourceTitle": "Roadmap",
         "changeGroupId": "cg-1", "actorId": "user-a", "actorDisplayName": "A",
         "contentRef": "rev-1"},
        {"id": "a2", "timestamp": "2026-02-23T10:02:00Z", "driveId": "drive-1",
         "pageId": "page-1", "operation": "update", "resourceTitle": "Roadmap",
         "changeGroupId": "cg-1", "actorId": "user-a", "actorDisplayName": "A",
         "contentRef": "rev-2"},
        {"id": "a3", "timestamp": "2026-02-23T10:04:00Z", "driveId": "drive-1",
         "pageId": "page-1", "operation": "update", "resourceTitle": "Roadmap",
         "changeGroupId": "cg-1", "actorId": "user-a", "actorDisplayName": "A",
         "contentRef": "rev-3"},
        {"id": "a4", "timestamp": "2026-02-23T10:05:00Z", "driveId": "drive-1",
         "pageId": "page-1", "operation": "delete", "resourceTitle": "Roadmap"},
        {"id": "a5", "timestamp": "2026-02-23T10:06:00Z", "driveId": "drive-2",
         "pageId": "page-9", "operation": "update", "changeGroupId": "cg-9",
         "contentSnapshot": "elsewhere"},
    ],
    "versions": [
        {"pageId": "page-1", "pageRevision": 1, "contentRef": "rev-0"},
        {"pageId": "page-1", "pageRevision": 2, "contentRef": "rev-1", "changeGroupId": "cg-1"},
        {"pageId": "page-1", "pageRevision": 3, "contentRef": "rev-2", "changeGroupId": "cg-1"},
        {"pageId": "page-1", "pageRevision": 4, "contentRef": "rev-3", "changeGroupId": "cg-1"},
    ],
    "contents": {
        "rev-0": "# Roadmap\n- ship v1\n",
        "rev-1": "# Roadmap\n- ship v1\n- draft v2\n",
        "rev-2": "# Roadmap\n- ship v1\n- plan v2\n",
        "rev-3": "# Roadmap\n- ship v1.1\n- plan v2\n- hire\n",
    },
    "usage": [
        {"id": "u1", "timestamp": "2026-02-23T10:00:00Z", "conversationId": "conv-1",
         "provider": "openrouter", "model": "anthropic/claude-sonnet-4.5",
         "inputTokens": 1000, "outputTokens": 500, "totalTokens": 1500,
         "cost": 0.01, "contextSize": 40000, "messageCount": 4, "wasTruncated": False},
        {"id": "u2", "timestamp": "2026-02-23T10:05:00Z", "conversationId": "conv-1",
         "provider": "openrouter", "model": "openai/gpt-4o",
         "inputTokens": 2000, "outputTokens": 800, "totalTokens": 2800,
         "cost": 0.02, "contextSize": 64000, "messageCount": 6, "wasTruncated": True},
    ],
}


@pytest.fixture
def seed_data():
    return SEED


@pytest.fixture
def seeded_store(store):
    """Store with one three-save session on page-1 plus its versions and usage."""
    store.insert_activities(SEED["activities"])
    store.insert_versions(SEED["versions"])
    store.put_contents(SEED["contents"])
    store.insert_usage(SEED["usage"])
    return store
