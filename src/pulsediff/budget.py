"""Diff budget allocation: token budget to diff-text character budget."""

import math

# Generally 1 token ~ 4 characters for English text
DEFAULT_CHARS_PER_TOKEN = 4.0


def estimate_tokens(text: str | None, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN) -> int:
    """Rough token count for a piece of text."""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


class DiffBudgetAllocator:
    """Maps a caller's total token budget to a character ceiling for diff text.

    ``diff_share`` is the fraction of the token budget handed to diffs, so
    callers that also put other material in the prompt can keep the rest.
    """

    def __init__(self, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN,
                 diff_share: float = 1.0):
        if chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
        if not 0 <= diff_share <= 1:
            raise ValueError(f"diff_share must be between 0 and 1, got {diff_share}")
        self.chars_per_token = chars_per_token
        self.diff_share = diff_share

    def allocate(self, total_tokens: int) -> int:
        """Character budget for diff text. Never negative."""
        if total_tokens <= 0:
            return 0
        return math.floor(total_tokens * self.diff_share * self.chars_per_token)
