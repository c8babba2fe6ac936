"""Activity grouper: collapses autosave noise into session-level groups."""

from datetime import timedelta

from pulsediff.models import ActivityDiffGroup, ActivityRecord

DEFAULT_SESSION_GAP = timedelta(minutes=10)


class ActivityGrouper:
    """Partitions page edit activity into diffable sessions.

    Grouping rules, in priority order:
    1. same page + same change group id -> one group, any gap, any actor
    2. same page + same AI conversation id -> one group, any gap
    3. same page + same actor, each edit within ``session_gap`` of the
       next newer one -> one group; another actor or a longer gap on
       that page starts a new group
    """

    def __init__(self, session_gap: timedelta = DEFAULT_SESSION_GAP):
        if session_gap < timedelta(0):
            raise ValueError(f"session_gap must not be negative, got {session_gap}")
        self.session_gap = session_gap

    def group(self, records: list[ActivityRecord]) -> list[ActivityDiffGroup]:
        """Group records (any order) into sessions, most recent session first."""
        if not records:
            return []

        # Newest first; stable so equal timestamps keep caller order
        ordered = sorted(records, key=lambda r: r.timestamp, reverse=True)

        # Members are collected newest-first, reversed at the end
        buckets: dict[str, list[ActivityRecord]] = {}
        open_sessions: dict[tuple[str, str], str] = {}
        session_seq = 0

        for record in ordered:
            key = self._keyed_group(record)
            if key is None:
                page = (record.drive_id, record.page_id)
                key = open_sessions.get(page)
                if key is None or not self._continues(buckets[key][-1], record):
                    session_seq += 1
                    key = f"session:{record.drive_id}:{record.page_id}:{session_seq}"
                    open_sessions[page] = key
            buckets.setdefault(key, []).append(record)

        groups: list[ActivityDiffGroup] = []
        for key, members in buckets.items():
            members.reverse()
            groups.append(ActivityDiffGroup(
                first=members[0],
                last=members[-1],
                members=members,
                group_key=key,
            ))
        return groups

    @staticmethod
    def _keyed_group(record: ActivityRecord) -> str | None:
        if record.change_group_id:
            return f"cg:{record.drive_id}:{record.page_id}:{record.change_group_id}"
        if record.ai_conversation_id:
            return f"ai:{record.drive_id}:{record.page_id}:{record.ai_conversation_id}"
        return None

    def _continues(self, newer: ActivityRecord, older: ActivityRecord) -> bool:
        """Whether ``older`` extends the session whose earliest member is ``newer``."""
        if _actor_identity(older) != _actor_identity(newer):
            return False
        return (newer.timestamp - older.timestamp) <= self.session_gap


def _actor_identity(record: ActivityRecord) -> str:
    return record.actor_id or record.actor_email or record.actor_display_name or ""
