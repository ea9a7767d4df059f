"""Unit tests for title similarity scoring.

Test Strategy:
1. Test identity and empty-string edges
2. Test the containment shortcut (length ratio)
3. Test the Levenshtein branch
4. Test best_candidate threshold handling (strictly greater than 0.6)
"""
import pytest

from gamelib.services.sync.matchers.identity_matcher import best_candidate
from gamelib.services.sync.utils.similarity import levenshtein, similarity

from conftest import canonical


class TestSimilarity:
    """Test suite for similarity()."""

    def test_equal_strings_score_one(self):
        assert similarity("hades", "hades") == 1.0
        assert similarity("", "") == 1.0

    def test_empty_side_scores_zero(self):
        assert similarity("hades", "") == 0.0
        assert similarity("", "hades") == 0.0

    def test_containment_uses_length_ratio(self):
        """Counter-Strike 2 vs Counter-Strike: 14 / 16."""
        assert similarity("counter-strike 2", "counter-strike") == 0.875
        assert similarity("counter-strike", "counter-strike 2") == 0.875

    def test_levenshtein_branch(self):
        """One substitution over eight characters."""
        assert levenshtein("portal 2", "portal 3") == 1
        assert similarity("portal 2", "portal 3") == pytest.approx(1 - 1 / 8)

    def test_unrelated_titles_score_low(self):
        assert similarity("celeste", "factorio") < 0.5


class TestBestCandidate:
    """Test suite for best_candidate()."""

    def test_picks_most_similar_candidate(self):
        """The highest-scoring candidate wins regardless of catalog order."""
        candidates = [
            canonical(1, "Portal Stories: Mel"),
            canonical(2, "Portal 2"),
            canonical(3, "Portal"),
        ]

        match, score = best_candidate("Portal 2", candidates, threshold=0.6)

        assert match.catalog_id == 2
        assert score == 1.0

    def test_compares_normalized_names(self):
        """Edition qualifiers and symbols do not count against a candidate."""
        match, score = best_candidate(
            "The Witcher 3: Wild Hunt - Game of the Year Edition™",
            [canonical(1942, "The Witcher 3: Wild Hunt")],
            threshold=0.6,
        )

        assert match.catalog_id == 1942
        assert score == 1.0

    def test_rejects_score_at_threshold(self):
        """A score equal to the threshold is not a match."""
        # "abcde" contains "abc": 3 / 5 = 0.6
        match, score = best_candidate("abc", [canonical(1, "abcde")], threshold=0.6)

        assert match is None
        assert score == pytest.approx(0.6)

    def test_no_candidates(self):
        match, score = best_candidate("Hades", [], threshold=0.6)

        assert match is None
        assert score == 0.0
