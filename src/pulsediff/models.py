"""Data models for activity diffs and usage summaries."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class ActivityRecord:
    id: str
    timestamp: datetime
    drive_id: str
    page_id: str
    operation: Operation = Operation.UPDATE
    resource_title: str | None = None
    change_group_id: str | None = None
    ai_conversation_id: str | None = None
    is_ai_generated: bool = False
    actor_id: str | None = None
    actor_display_name: str | None = None
    actor_email: str | None = None
    content_snapshot: str | None = None
    content_ref: str | None = None

    @property
    def actor(self) -> str:
        """Human-readable actor label: display name, then email, then id."""
        return self.actor_display_name or self.actor_email or self.actor_id or "unknown"


@dataclass
class ActivityDiffGroup:
    first: ActivityRecord
    last: ActivityRecord
    members: list[ActivityRecord] = field(default_factory=list)
    group_key: str = ""

    @property
    def collapsed_count(self) -> int:
        return len(self.members)

    @property
    def page_id(self) -> str:
        return self.first.page_id

    @property
    def drive_id(self) -> str:
        return self.first.drive_id

    @property
    def change_group_id(self) -> str | None:
        """Change group used for version lookup (latest member that carries one)."""
        for record in reversed(self.members):
            if record.change_group_id:
                return record.change_group_id
        return None

    @property
    def actors(self) -> list[str]:
        seen: list[str] = []
        for record in self.members:
            if record.actor not in seen:
                seen.append(record.actor)
        return seen

    @property
    def is_ai_generated(self) -> bool:
        return any(r.is_ai_generated for r in self.members)


@dataclass(frozen=True)
class VersionKey:
    page_id: str
    change_group_id: str


@dataclass(frozen=True)
class VersionRefs:
    page_id: str
    change_group_id: str
    before_ref: str | None = None
    after_ref: str | None = None
    before_revision: int | None = None
    after_revision: int | None = None


@dataclass(frozen=True)
class DiffRequest:
    page_id: str
    drive_id: str
    after_content: str
    group: ActivityDiffGroup
    before_content: str | None = None

    def __post_init__(self):
        if self.after_content is None:
            raise ValueError(f"DiffRequest for page {self.page_id} requires after_content")


@dataclass(frozen=True)
class DiffStats:
    lines_added: int = 0
    lines_removed: int = 0
    chars_added: int = 0
    chars_removed: int = 0
    size: int = 0


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class StackedDiff:
    page_id: str
    page_title: str | None
    actors: tuple[str, ...]
    collapsed_count: int
    time_range: TimeRange
    is_ai_generated: bool
    unified_diff: str
    stats: DiffStats
    change_group_id: str | None = None
    ai_conversation_id: str | None = None


@dataclass(frozen=True)
class UsageLogEntry:
    id: str = ""
    timestamp: datetime | None = None
    provider: str | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    cost: float | None = None
    conversation_id: str | None = None
    context_size: int | None = None
    message_count: int | None = None
    was_truncated: bool | None = None


@dataclass(frozen=True)
class BillingTotals:
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0


@dataclass(frozen=True)
class ContextUsage:
    current_context_size: int
    messages_in_context: int
    context_window_size: int
    context_usage_percent: int
    was_truncated: bool


@dataclass(frozen=True)
class UsageSummary:
    billing: BillingTotals
    context: ContextUsage | None = None
    most_recent_model: str | None = None
    most_recent_provider: str | None = None
