"""Usage summary: billing totals and context-window occupancy from usage logs."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from pulsediff.context_windows import DEFAULT_CONTEXT_WINDOW
from pulsediff.models import BillingTotals, ContextUsage, UsageLogEntry, UsageSummary

COST_PLACES = Decimal("0.000001")


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_usage_summary(
    logs: list[UsageLogEntry],
    context_window_lookup: Callable[[str], int],
) -> UsageSummary:
    """Aggregate usage logs into a summary.

    Args:
        logs: Usage entries, most recent first. Never modified.
        context_window_lookup: Context window size for a model name.

    Missing token/cost numbers count as 0. Cost is summed exactly and
    rounded to 6 decimal places. Context figures come from the most
    recent entry; with no entries ``context`` is None.
    """
    total_input = total_output = total_tokens = 0
    total_cost = Decimal(0)
    for log in logs:
        total_input += log.input_tokens or 0
        total_output += log.output_tokens or 0
        total_tokens += log.total_tokens or 0
        if log.cost:
            total_cost += Decimal(str(log.cost))

    billing = BillingTotals(
        total_input_tokens=total_input,
        total_output_tokens=total_output,
        total_tokens=total_tokens,
        total_cost=float(total_cost.quantize(COST_PLACES, rounding=ROUND_HALF_UP)),
    )

    if not logs:
        return UsageSummary(billing=billing)

    latest = logs[0]
    window = context_window_lookup(latest.model) if latest.model else DEFAULT_CONTEXT_WINDOW
    current = latest.context_size or 0
    percent = _round_half_up(current / window * 100) if current > 0 and window > 0 else 0

    return UsageSummary(
        billing=billing,
        context=ContextUsage(
            current_context_size=current,
            messages_in_context=latest.message_count or 0,
            context_window_size=window,
            context_usage_percent=percent,
            was_truncated=bool(latest.was_truncated),
        ),
        most_recent_model=latest.model,
        most_recent_provider=latest.provider,
    )
