"""Activity diff pipeline: group, resolve, order, then diff within budget."""

import logging
from datetime import timedelta
from typing import Any, Callable

from pulsediff.budget import DiffBudgetAllocator
from pulsediff.diffing import DiffGenerator
from pulsediff.grouping import DEFAULT_SESSION_GAP, ActivityGrouper
from pulsediff.models import ActivityRecord, DiffRequest, StackedDiff
from pulsediff.resolver import (
    DEFAULT_CONCURRENCY, ContentStore, VersionContentResolver, VersionStore,
)

logger = logging.getLogger(__name__)

OrderKey = Callable[[DiffRequest], Any]


def by_recency(request: DiffRequest) -> Any:
    """Most recently finished session first."""
    return -request.group.last.timestamp.timestamp()


def by_edit_volume(request: DiffRequest) -> Any:
    """Sessions with the most collapsed saves first."""
    return -request.group.collapsed_count


ORDERINGS: dict[str, OrderKey | None] = {
    "input": None,
    "recency": by_recency,
    "volume": by_edit_volume,
}


class ActivityDiffPipeline:
    """Runs grouper -> resolver -> budget -> generator for one batch of activity."""

    def __init__(
        self,
        versions: VersionStore,
        contents: ContentStore,
        session_gap: timedelta = DEFAULT_SESSION_GAP,
        concurrency: int = DEFAULT_CONCURRENCY,
        allocator: DiffBudgetAllocator | None = None,
        generator: DiffGenerator | None = None,
        order_key: OrderKey | None = None,
    ):
        self.grouper = ActivityGrouper(session_gap=session_gap)
        self.resolver = VersionContentResolver(versions, contents, concurrency=concurrency)
        self.allocator = allocator or DiffBudgetAllocator()
        self.generator = generator or DiffGenerator()
        self.order_key = order_key

    async def run(self, records: list[ActivityRecord], token_budget: int) -> list[StackedDiff]:
        """Stacked diffs for ``records`` that fit in ``token_budget`` tokens."""
        groups = self.grouper.group(records)
        requests = await self.resolver.resolve(groups)
        if self.order_key is not None:
            requests = sorted(requests, key=self.order_key)

        budget = self.allocator.allocate(token_budget)
        diffs = self.generator.generate(requests, budget)
        logger.debug(
            "%d records -> %d groups -> %d resolved -> %d diffs (budget %d chars)",
            len(records), len(groups), len(requests), len(diffs), budget,
        )
        return diffs
