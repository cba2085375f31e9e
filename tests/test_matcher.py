"""Tests for keyword category scoring and the confidence gate."""

import pytest

from skill_indexer.categories.matcher import (
    HIGH,
    LOW,
    MEDIUM,
    CategoryMatch,
    KeywordEntry,
    KeywordThresholds,
    TextIndex,
    best_single_guess,
    classify_keywords,
    evaluate_keyword_confidence,
    map_skill_to_categories,
    map_skill_to_category_matches,
    score_categories,
)
from skill_indexer.categories.registry import (
    CATEGORIES,
    CATEGORY_IDS,
    get_categories_sorted,
    get_category_by_id,
    get_category_by_slug,
)


def matches(*scores):
    return [CategoryMatch(f"cat-{i}", s) for i, s in enumerate(scores)]


class TestRegistry:
    def test_ids_unique(self):
        assert len(CATEGORY_IDS) == len(CATEGORIES) == 10

    def test_lookup(self):
        assert get_category_by_id("security").name == "Security"
        assert get_category_by_slug("dev-tools").id == "dev-tools"
        assert get_category_by_id("nope") is None

    def test_sorted_by_order(self):
        orders = [c.order for c in get_categories_sorted()]
        assert orders == sorted(orders)


class TestTextIndex:
    def test_word_and_plural_match(self):
        index = TextIndex("Generates Reports for teams")
        assert index.matches(KeywordEntry("report", False, False))
        assert index.matches(KeywordEntry("teams", False, False))
        assert not index.matches(KeywordEntry("rep", False, False))

    def test_phrase_match_is_substring(self):
        index = TextIndex("Uses version control heavily")
        assert index.matches(KeywordEntry("version control", False, True))

    def test_short_keywords_need_exact_word(self):
        index = TextIndex("html templates")
        assert not index.matches(KeywordEntry("ml", False, False))


class TestConfidenceGate:
    def test_clear_winner_single_category(self):
        result = evaluate_keyword_confidence(matches(14, 3))
        assert result.category_ids == ["cat-0"]
        assert result.confidence == HIGH
        assert (result.top_score, result.second_score) == (14, 3)

    def test_two_categories(self):
        result = evaluate_keyword_confidence(matches(10, 6, 5))
        assert result.category_ids == ["cat-0", "cat-1"]
        assert result.confidence == HIGH

    def test_second_below_floor_dropped(self):
        result = evaluate_keyword_confidence(matches(10, 2))
        assert result.category_ids == ["cat-0"]

    def test_strong_top_small_gap_keeps_two(self):
        result = evaluate_keyword_confidence(matches(12, 8))
        assert result.category_ids == ["cat-0", "cat-1"]

    def test_medium_uses_relative_cutoff(self):
        # cutoff = max(4, round(8 * 0.6)) = 5
        result = evaluate_keyword_confidence(matches(8, 7, 5, 3))
        assert result.category_ids == ["cat-0", "cat-1", "cat-2"]
        assert result.confidence == MEDIUM

    def test_medium_capped_at_three(self):
        result = evaluate_keyword_confidence(matches(8, 8, 8, 8))
        assert len(result.category_ids) == 3

    def test_low_confidence(self):
        result = evaluate_keyword_confidence(matches(6, 5))
        assert result.category_ids == []
        assert result.confidence == LOW

    def test_no_matches(self):
        assert evaluate_keyword_confidence([]).confidence == LOW

    def test_custom_thresholds(self):
        thresholds = KeywordThresholds(single_top=20)
        result = evaluate_keyword_confidence(matches(14, 3), thresholds)
        assert result.category_ids == ["cat-0"]
        assert result.confidence == HIGH

    def test_field_weights_not_shared(self):
        tuned = KeywordThresholds()
        tuned.field_weights["name"]["priority"] = 1
        assert KeywordThresholds().field_weights["name"]["priority"] == 9


class TestScoring:
    def test_security_skill(self):
        result = classify_keywords(
            "jwt-security-audit", "Audit JWT authentication and password hashing"
        )
        assert result.category_ids == ["security"]
        assert result.confidence == HIGH
        # security(10) + jwt(9) + audit(6) + authentication(7) + password(3)
        assert result.top_score == 35

    def test_map_skill_to_categories_returns_registry_ids(self):
        ids = map_skill_to_categories("jwt-security-audit", "Audit JWT authentication")
        assert ids and set(ids) <= set(CATEGORY_IDS)
        assert len(ids) <= 3

    def test_matches_sorted_descending(self):
        result = map_skill_to_category_matches(
            "git-security", "Scan git history for leaked password hashes"
        )
        scores = [m.score for m in result]
        assert scores == sorted(scores, reverse=True)

    def test_weak_description_only_signal_is_gated(self):
        assert score_categories("frobnicator", "Finds every vulnerability quickly") == []
        assert classify_keywords("frobnicator", "Finds every vulnerability quickly").confidence == LOW

    def test_best_single_guess_relaxes_gates(self):
        assert best_single_guess("frobnicator", "Finds every vulnerability quickly") == ["security"]

    def test_no_signal_at_all(self):
        assert best_single_guess("frobnicator", "Spins gizmos quietly") == []

    def test_topics_count(self):
        with_topics = score_categories("frobnicator", "Spins gizmos quietly", ["security"])
        assert [m.category_id for m in with_topics] == ["security"]

    def test_negative_keywords_reduce_score(self):
        plain = score_categories("chat-llm", "LLM chat helper", gated=False)
        penalized = score_categories("chat-llm", "LLM chat helper for react component ui", gated=False)
        plain_score = {m.category_id: m.score for m in plain}["llms-models"]
        penalized_score = {m.category_id: m.score for m in penalized}.get("llms-models", 0)
        assert penalized_score < plain_score


@pytest.mark.parametrize("name,description", [
    ("react-dashboard", "Build React dashboards with charts"),
    ("k8s-deploy", "Deploy to Kubernetes with Terraform and GitHub Actions"),
    ("blog-writer", "Write SEO blog posts and marketing copy"),
])
def test_classifications_are_bounded(name, description):
    result = classify_keywords(name, description)
    assert len(result.category_ids) <= 3
    assert set(result.category_ids) <= set(CATEGORY_IDS)
