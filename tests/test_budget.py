"""Tests for token budget allocation."""

import pytest

from pulsediff.budget import DiffBudgetAllocator, estimate_tokens


class TestEstimateTokens:

    def test_empty(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0

    def test_rounds_up(self):
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("abcd") == 1


class TestDiffBudgetAllocator:

    def test_default_four_chars_per_token(self):
        assert DiffBudgetAllocator().allocate(1000) == 4000

    def test_zero_and_negative_budgets(self):
        allocator = DiffBudgetAllocator()
        assert allocator.allocate(0) == 0
        assert allocator.allocate(-50) == 0

    def test_diff_share(self):
        assert DiffBudgetAllocator(diff_share=0.5).allocate(1000) == 2000

    def test_floors_fractional_budget(self):
        assert DiffBudgetAllocator(chars_per_token=3.5).allocate(3) == 10

    def test_monotonic(self):
        allocator = DiffBudgetAllocator(chars_per_token=3.3, diff_share=0.7)
        budgets = [allocator.allocate(t) for t in range(0, 500, 7)]
        assert budgets == sorted(budgets)

    def test_invalid_chars_per_token(self):
        with pytest.raises(ValueError):
            DiffBudgetAllocator(chars_per_token=0)

    def test_invalid_share(self):
        with pytest.raises(ValueError):
            DiffBudgetAllocator(diff_share=1.5)
