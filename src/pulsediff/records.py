"""Boundary mapping from loosely typed rows to activity and usage records.

Rows arrive as dicts from JSON payloads (camelCase) or database rows
(snake_case). Both spellings are accepted. Activity rows that cannot be
diffed are rejected; usage rows never are, bad numbers just become None.
"""

import logging
import math
from typing import Any, Iterable, Mapping

from pulsediff.models import ActivityRecord, Operation, UsageLogEntry
from pulsediff.query import parse_timestamp

logger = logging.getLogger(__name__)


def _snake(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def get_field(row: Mapping[str, Any], key: str) -> Any:
    """Read a camelCase key, falling back to its snake_case spelling."""
    if key in row:
        return row[key]
    return row.get(_snake(key))


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def _opt_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _opt_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no", ""):
            return False
    return None


def parse_activity_record(row: Mapping[str, Any]) -> ActivityRecord:
    """Build an ActivityRecord from a row. Raises ValueError if it can't be diffed."""
    record_id = _opt_str(get_field(row, "id"))
    page_id = _opt_str(get_field(row, "pageId"))
    drive_id = _opt_str(get_field(row, "driveId"))
    if not record_id:
        raise ValueError("Activity row has no id")
    if not page_id:
        raise ValueError(f"Activity {record_id} has no pageId")
    if not drive_id:
        raise ValueError(f"Activity {record_id} has no driveId")

    try:
        timestamp = parse_timestamp(get_field(row, "timestamp"))
    except ValueError as e:
        raise ValueError(f"Activity {record_id} has an invalid timestamp: {e}") from e

    raw_op = get_field(row, "operation") or Operation.UPDATE.value
    try:
        operation = Operation(str(raw_op).lower())
    except ValueError:
        raise ValueError(
            f"Activity {record_id} operation {raw_op!r} is not a page content change"
        ) from None

    content_snapshot = get_field(row, "contentSnapshot")
    if content_snapshot is not None and not isinstance(content_snapshot, str):
        raise ValueError(f"Activity {record_id} contentSnapshot is not text")
    content_ref = _opt_str(get_field(row, "contentRef"))
    if content_snapshot is None and content_ref is None:
        raise ValueError(f"Activity {record_id} carries neither contentSnapshot nor contentRef")

    return ActivityRecord(
        id=record_id,
        timestamp=timestamp,
        drive_id=drive_id,
        page_id=page_id,
        operation=operation,
        resource_title=_opt_str(get_field(row, "resourceTitle")),
        change_group_id=_opt_str(get_field(row, "changeGroupId")),
        ai_conversation_id=_opt_str(get_field(row, "aiConversationId")),
        is_ai_generated=bool(_opt_bool(get_field(row, "isAiGenerated"))),
        actor_id=_opt_str(get_field(row, "actorId") or get_field(row, "userId")),
        actor_display_name=_opt_str(get_field(row, "actorDisplayName")),
        actor_email=_opt_str(get_field(row, "actorEmail")),
        content_snapshot=content_snapshot,
        content_ref=content_ref,
    )


def load_activity_records(rows: Iterable[Mapping[str, Any]]) -> list[ActivityRecord]:
    """Parse activity rows, skipping the ones that can't be diffed."""
    records: list[ActivityRecord] = []
    for row in rows:
        try:
            records.append(parse_activity_record(row))
        except ValueError as e:
            logger.debug("Skipping activity row: %s", e)
    return records


def parse_usage_entry(row: Mapping[str, Any]) -> UsageLogEntry:
    """Build a UsageLogEntry. Malformed numeric fields become None."""
    raw_ts = get_field(row, "timestamp")
    timestamp = None
    if raw_ts is not None:
        try:
            timestamp = parse_timestamp(raw_ts)
        except ValueError:
            logger.debug("Usage row %s has an invalid timestamp %r", get_field(row, "id"), raw_ts)

    return UsageLogEntry(
        id=_opt_str(get_field(row, "id")) or "",
        timestamp=timestamp,
        provider=_opt_str(get_field(row, "provider")),
        model=_opt_str(get_field(row, "model")),
        input_tokens=_opt_int(get_field(row, "inputTokens")),
        output_tokens=_opt_int(get_field(row, "outputTokens")),
        total_tokens=_opt_int(get_field(row, "totalTokens")),
        cost=_opt_float(get_field(row, "cost")),
        conversation_id=_opt_str(get_field(row, "conversationId")),
        context_size=_opt_int(get_field(row, "contextSize")),
        message_count=_opt_int(get_field(row, "messageCount")),
        was_truncated=_opt_bool(get_field(row, "wasTruncated")),
    )


def load_usage_entries(rows: Iterable[Mapping[str, Any]]) -> list[UsageLogEntry]:
    return [parse_usage_entry(row) for row in rows]
