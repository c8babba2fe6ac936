"""Version content resolver: before/after page text for each activity group."""

import asyncio
import logging
from typing import Protocol

from pulsediff.models import ActivityDiffGroup, DiffRequest, VersionKey, VersionRefs

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


class VersionStore(Protocol):
    async def lookup_versions(self, keys: list[VersionKey]) -> dict[VersionKey, VersionRefs]:
        """Return refs for the keys that have versions; missing keys are omitted."""
        ...


class ContentStore(Protocol):
    async def fetch_content(self, ref: str) -> str:
        """Return the page text behind ``ref``. Raises if it can't be read."""
        ...


class VersionContentResolver:
    """Turns activity groups into DiffRequests.

    The version store is queried once per call for every distinct
    (page, change group) pair. Each referenced text is then fetched at
    most once, with at most ``concurrency`` fetches in flight. A failed
    lookup or fetch only makes that content unavailable.
    """

    def __init__(self, versions: VersionStore, contents: ContentStore,
                 concurrency: int = DEFAULT_CONCURRENCY):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.versions = versions
        self.contents = contents
        self.concurrency = concurrency

    async def resolve(self, groups: list[ActivityDiffGroup]) -> list[DiffRequest]:
        """Resolve groups to DiffRequests, preserving group order.

        Groups whose after content can't be resolved are dropped.
        """
        if not groups:
            return []

        keys: list[VersionKey] = []
        for group in groups:
            key = _version_key(group)
            if key is not None and key not in keys:
                keys.append(key)

        refs = await self._lookup(keys)

        wanted: list[str] = []
        for group in groups:
            for ref in self._refs_for(group, refs):
                if ref not in wanted:
                    wanted.append(ref)
        texts = await self._fetch_all(wanted)

        requests: list[DiffRequest] = []
        for group in groups:
            request = self._build_request(group, refs, texts)
            if request is not None:
                requests.append(request)
        return requests

    async def _lookup(self, keys: list[VersionKey]) -> dict[VersionKey, VersionRefs]:
        if not keys:
            return {}
        try:
            found = await self.versions.lookup_versions(keys)
        except Exception as e:
            logger.debug("Version lookup failed for %d keys: %s", len(keys), e)
            return {}
        # Only trust refs filed under the exact key that was asked for
        return {
            key: found[key] for key in keys
            if key in found and found[key].page_id == key.page_id
        }

    @staticmethod
    def _refs_for(group: ActivityDiffGroup,
                  refs: dict[VersionKey, VersionRefs]) -> list[str]:
        key = _version_key(group)
        pair = refs.get(key) if key is not None else None
        if pair is None or not pair.after_ref:
            # Nothing to diff against; skip fetching anything for this group
            return []
        wanted = [pair.after_ref]
        if pair.before_ref:
            wanted.append(pair.before_ref)
        if group.first.content_snapshot is None and group.first.content_ref:
            wanted.append(group.first.content_ref)
        return wanted

    async def _fetch_all(self, refs: list[str]) -> dict[str, str]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch_one(ref: str) -> str | None:
            async with semaphore:
                try:
                    return await self.contents.fetch_content(ref)
                except Exception as e:
                    logger.debug("Content %s unavailable: %s", ref, e)
                    return None

        results = await asyncio.gather(*(fetch_one(ref) for ref in refs))
        return {
            ref: text for ref, text in zip(refs, results)
            if isinstance(text, str)
        }

    @staticmethod
    def _build_request(group: ActivityDiffGroup,
                       refs: dict[VersionKey, VersionRefs],
                       texts: dict[str, str]) -> DiffRequest | None:
        key = _version_key(group)
        if key is None:
            logger.debug("Group %s has no change group id; skipped", group.group_key)
            return None

        pair = refs.get(key)
        after = texts.get(pair.after_ref) if pair and pair.after_ref else None
        if after is None:
            logger.debug("No after content for %s; skipped", group.group_key)
            return None

        before = texts.get(pair.before_ref) if pair.before_ref else None
        if before is None:
            before = _snapshot_of(group, texts)

        return DiffRequest(
            page_id=group.page_id,
            drive_id=group.drive_id,
            before_content=before,
            after_content=after,
            group=group,
        )


def _version_key(group: ActivityDiffGroup) -> VersionKey | None:
    change_group_id = group.change_group_id
    if not change_group_id:
        return None
    return VersionKey(page_id=group.page_id, change_group_id=change_group_id)


def _snapshot_of(group: ActivityDiffGroup, texts: dict[str, str]) -> str | None:
    """Content captured on the group's first record, inline or by reference."""
    first = group.first
    if first.content_snapshot is not None:
        return first.content_snapshot
    if first.content_ref:
        return texts.get(first.content_ref)
    return None
