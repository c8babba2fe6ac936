"""Output formatters for stacked diffs and usage summaries."""

import json
from datetime import datetime

from pulsediff.models import StackedDiff, UsageSummary


def _short_timestamp(dt: datetime) -> str:
    """Compact form: '2026-02-23 14:30'."""
    return dt.isoformat()[:16].replace("T", " ")


def _actors_str(actors: tuple[str, ...]) -> str:
    if not actors:
        return "unknown"
    if len(actors) <= 3:
        return ", ".join(actors)
    return f"{', '.join(actors[:3])} +{len(actors) - 3} more"


def diff_to_dict(diff: StackedDiff) -> dict:
    """Plain camelCase dict for JSON consumers."""
    return {
        "pageId": diff.page_id,
        "pageTitle": diff.page_title,
        "changeGroupId": diff.change_group_id,
        "aiConversationId": diff.ai_conversation_id,
        "collapsedCount": diff.collapsed_count,
        "timeRange": {
            "from": diff.time_range.start.isoformat(),
            "to": diff.time_range.end.isoformat(),
        },
        "actors": list(diff.actors),
        "unifiedDiff": diff.unified_diff,
        "stats": {
            "linesAdded": diff.stats.lines_added,
            "linesRemoved": diff.stats.lines_removed,
            "charsAdded": diff.stats.chars_added,
            "charsRemoved": diff.stats.chars_removed,
            "size": diff.stats.size,
        },
        "isAiGenerated": diff.is_ai_generated,
    }


def usage_summary_to_dict(summary: UsageSummary) -> dict:
    """Plain camelCase dict matching the usage endpoint's response shape."""
    context = None
    if summary.context is not None:
        context = {
            "currentContextSize": summary.context.current_context_size,
            "messagesInContext": summary.context.messages_in_context,
            "contextWindowSize": summary.context.context_window_size,
            "contextUsagePercent": summary.context.context_usage_percent,
            "wasTruncated": summary.context.was_truncated,
        }
    return {
        "billing": {
            "totalInputTokens": summary.billing.total_input_tokens,
            "totalOutputTokens": summary.billing.total_output_tokens,
            "totalTokens": summary.billing.total_tokens,
            "totalCost": summary.billing.total_cost,
        },
        "context": context,
        "mostRecentModel": summary.most_recent_model,
        "mostRecentProvider": summary.most_recent_provider,
    }


def format_diff_compact(diff: StackedDiff) -> str:
    """Header line plus the diff body, the form handed to a prompt."""
    title = diff.page_title or "Untitled"
    span = f"{_short_timestamp(diff.time_range.start)} to {_short_timestamp(diff.time_range.end)}"
    saves = f"{diff.collapsed_count} save{'s' if diff.collapsed_count != 1 else ''}"
    ai_tag = " [AI]" if diff.is_ai_generated else ""
    stats = f"+{diff.stats.lines_added}/-{diff.stats.lines_removed} lines"
    header = f"## {title}{ai_tag} - {_actors_str(diff.actors)} ({saves}, {span}, {stats})"
    return f"{header}\n{diff.unified_diff}"


def format_diffs_compact(diffs: list[StackedDiff]) -> str:
    if not diffs:
        return "(no content changes)"
    return "\n\n".join(format_diff_compact(d) for d in diffs)


def format_diffs_json(diffs: list[StackedDiff]) -> str:
    return json.dumps([diff_to_dict(d) for d in diffs], indent=2)


def format_usage_compact(summary: UsageSummary) -> str:
    billing = summary.billing
    lines = [
        f"Tokens: {billing.total_tokens:,} "
        f"(in {billing.total_input_tokens:,}, out {billing.total_output_tokens:,})",
        f"Cost:   ${billing.total_cost:.6f}",
    ]
    if summary.context is None:
        lines.append("Context: (no usage recorded)")
    else:
        ctx = summary.context
        truncated = ", truncated" if ctx.was_truncated else ""
        lines.append(
            f"Context: {ctx.current_context_size:,} / {ctx.context_window_size:,} tokens "
            f"({ctx.context_usage_percent}%, {ctx.messages_in_context} messages{truncated})"
        )
        lines.append(f"Model:  {summary.most_recent_model} via {summary.most_recent_provider}")
    return "\n".join(lines)


def format_usage_json(summary: UsageSummary) -> str:
    return json.dumps(usage_summary_to_dict(summary), indent=2)
