"""Diff generator: unified diffs admitted greedily under a character budget."""

import difflib

from pulsediff.models import DiffRequest, DiffStats, StackedDiff, TimeRange

DEFAULT_MAX_CHARS_PER_PAGE = 10_000
DEFAULT_MAX_CONTENT_CHARS = 50 * 1024

TOO_LARGE_PLACEHOLDER = "[Content too large for diff - showing stats only]"
TRUNCATION_MARKER = "... [diff truncated - too large] ..."

# Smallest per-page cap that still leaves room for a header and the marker
MIN_CHARS_PER_PAGE = 200


def unified_diff(before: str | None, after: str, title: str) -> tuple[str, DiffStats]:
    """Line-based unified diff of two page versions plus its stats.

    ``before=None`` diffs against an empty page (all additions). Returns
    ("", DiffStats()) when there are no line changes.
    """
    old_lines = (before or "").splitlines()
    new_lines = after.splitlines()
    raw = list(difflib.unified_diff(
        old_lines, new_lines,
        fromfile=f"{title} (before)", tofile=f"{title} (after)",
        lineterm="",
    ))
    if not raw:
        return "", DiffStats()

    lines_added = lines_removed = chars_added = chars_removed = 0
    # raw[0:2] are the ---/+++ file headers
    for line in raw[2:]:
        if line.startswith("@@"):
            continue
        if line.startswith("+"):
            lines_added += 1
            chars_added += len(line) - 1
        elif line.startswith("-"):
            lines_removed += 1
            chars_removed += len(line) - 1

    text = "\n".join(raw)
    return text, DiffStats(
        lines_added=lines_added,
        lines_removed=lines_removed,
        chars_added=chars_added,
        chars_removed=chars_removed,
        size=len(text),
    )


def truncate_diff(text: str, max_chars: int) -> str:
    """Cut diff text at a line boundary so the result fits in ``max_chars``."""
    if len(text) <= max_chars:
        return text

    limit = max_chars - len(TRUNCATION_MARKER) - 1
    kept: list[str] = []
    used = 0
    for line in text.split("\n"):
        if used + len(line) + 1 > limit:
            break
        kept.append(line)
        used += len(line) + 1
    kept.append(TRUNCATION_MARKER)
    return "\n".join(kept)


class DiffGenerator:
    """Builds StackedDiffs for DiffRequests until the budget runs out.

    Requests are considered in the order given. One that doesn't fit in
    what's left of the budget is skipped, and later (possibly smaller)
    ones are still tried.
    """

    def __init__(self, max_chars_per_page: int | None = DEFAULT_MAX_CHARS_PER_PAGE,
                 max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS):
        if max_chars_per_page is not None and max_chars_per_page < MIN_CHARS_PER_PAGE:
            raise ValueError(
                f"max_chars_per_page must be at least {MIN_CHARS_PER_PAGE}, "
                f"got {max_chars_per_page}"
            )
        self.max_chars_per_page = max_chars_per_page
        self.max_content_chars = max_content_chars

    def generate(self, requests: list[DiffRequest], budget: int) -> list[StackedDiff]:
        accepted: list[StackedDiff] = []
        used = 0
        for request in requests:
            diff = self.build(request)
            if diff is None:
                continue
            if used + diff.stats.size > budget:
                continue
            accepted.append(diff)
            used += diff.stats.size
        return accepted

    def build(self, request: DiffRequest) -> StackedDiff | None:
        """StackedDiff for one request, or None when nothing changed."""
        before = request.before_content
        after = request.after_content
        if (before or "") == after:
            return None

        group = request.group
        title = group.last.resource_title or "Untitled"

        if len(before or "") > self.max_content_chars or len(after) > self.max_content_chars:
            text, stats = self._stats_only(before or "", after)
        else:
            text, stats = unified_diff(before, after, title)
            if not text:
                return None
            if self.max_chars_per_page is not None and len(text) > self.max_chars_per_page:
                text = truncate_diff(text, self.max_chars_per_page)
                stats = DiffStats(
                    lines_added=stats.lines_added,
                    lines_removed=stats.lines_removed,
                    chars_added=stats.chars_added,
                    chars_removed=stats.chars_removed,
                    size=len(text),
                )

        return StackedDiff(
            page_id=request.page_id,
            page_title=group.last.resource_title,
            actors=tuple(group.actors),
            collapsed_count=group.collapsed_count,
            time_range=TimeRange(start=group.first.timestamp, end=group.last.timestamp),
            is_ai_generated=group.is_ai_generated,
            unified_diff=text,
            stats=stats,
            change_group_id=group.change_group_id,
            ai_conversation_id=group.first.ai_conversation_id,
        )

    @staticmethod
    def _stats_only(before: str, after: str) -> tuple[str, DiffStats]:
        """Character-delta stats for content too large to diff."""
        delta = len(after) - len(before)
        return TOO_LARGE_PLACEHOLDER, DiffStats(
            chars_added=max(delta, 0),
            chars_removed=max(-delta, 0),
            size=len(TOO_LARGE_PLACEHOLDER),
        )
