"""Tests for diff and usage output formatting."""

import json
from datetime import datetime, timezone

from pulsediff.formatting import (
    format_diff_compact, format_diffs_compact, format_diffs_json,
    format_usage_compact, format_usage_json,
)
from pulsediff.models import (
    BillingTotals, ContextUsage, DiffStats, StackedDiff, TimeRange, UsageSummary,
)


def _diff(**overrides):
    fields = dict(
        page_id="page-1",
        page_title="Roadmap",
        actors=("Alice", "Bob"),
        collapsed_count=3,
        time_range=TimeRange(
            start=datetime(2026, 2, 23, 10, 0, tzinfo=timezone.utc),
            end=datetime(2026, 2, 23, 10, 4, tzinfo=timezone.utc),
        ),
        is_ai_generated=False,
        unified_diff="--- Roadmap (before)\n+++ Roadmap (after)\n@@ -1 +1 @@\n-a\n+b",
        stats=DiffStats(lines_added=1, lines_removed=1, chars_added=1, chars_removed=1, size=60),
        change_group_id="cg-1",
    )
    fields.update(overrides)
    return StackedDiff(**fields)


def _summary():
    return UsageSummary(
        billing=BillingTotals(total_input_tokens=3000, total_output_tokens=1300,
                              total_tokens=4300, total_cost=0.03),
        context=ContextUsage(current_context_size=64_000, messages_in_context=6,
                             context_window_size=128_000, context_usage_percent=50,
                             was_truncated=True),
        most_recent_model="openai/gpt-4o",
        most_recent_provider="openrouter",
    )


class TestDiffFormatting:

    def test_compact_header(self):
        text = format_diff_compact(_diff())
        header, body = text.split("\n", 1)
        assert header.startswith("## Roadmap - Alice, Bob")
        assert "3 saves" in header
        assert "2026-02-23 10:00 to 2026-02-23 10:04" in header
        assert "+1/-1 lines" in header
        assert body.startswith("--- Roadmap (before)")

    def test_compact_ai_and_untitled(self):
        text = format_diff_compact(_diff(page_title=None, is_ai_generated=True,
                                         collapsed_count=1, actors=("A", "B", "C", "D")))
        assert text.startswith("## Untitled [AI] - A, B, C +1 more (1 save,")

    def test_compact_empty(self):
        assert format_diffs_compact([]) == "(no content changes)"

    def test_json_is_camel_case(self):
        [data] = json.loads(format_diffs_json([_diff()]))
        assert data["pageId"] == "page-1"
        assert data["collapsedCount"] == 3
        assert data["actors"] == ["Alice", "Bob"]
        assert data["timeRange"]["from"] == "2026-02-23T10:00:00+00:00"
        assert data["stats"]["linesAdded"] == 1
        assert data["isAiGenerated"] is False


class TestUsageFormatting:

    def test_json_shape(self):
        data = json.loads(format_usage_json(_summary()))
        assert data["billing"] == {
            "totalInputTokens": 3000, "totalOutputTokens": 1300,
            "totalTokens": 4300, "totalCost": 0.03,
        }
        assert data["context"]["contextUsagePercent"] == 50
        assert data["context"]["wasTruncated"] is True
        assert data["mostRecentModel"] == "openai/gpt-4o"

    def test_json_without_context(self):
        data = json.loads(format_usage_json(UsageSummary(billing=BillingTotals())))
        assert data["context"] is None
        assert data["mostRecentProvider"] is None

    def test_compact(self):
        text = format_usage_compact(_summary())
        assert "Tokens: 4,300 (in 3,000, out 1,300)" in text
        assert "Cost:   $0.030000" in text
        assert "64,000 / 128,000 tokens (50%, 6 messages, truncated)" in text
        assert "openai/gpt-4o via openrouter" in text

    def test_compact_without_context(self):
        text = format_usage_compact(UsageSummary(billing=BillingTotals()))
        assert "(no usage recorded)" in text
