"""Tests for the batched AI classifier (LiteLLM is replaced by a fake completion)."""

import pytest

from skill_indexer.categories.ai_classifier import (
    AIClassifier,
    CategoryAssignmentBatch,
    build_batch_prompt,
    is_transient_llm_error,
    sanitize_categories,
    sanitize_prompt_input,
)
from skill_indexer.categories.cache import CategoryCache
from skill_indexer.categories.rate_limit import SlidingWindowRateLimiter
from skill_indexer.categories.registry import CATEGORY_IDS
from skill_indexer.errors import RateLimitExceeded
from skill_indexer.models import SkillInput
from skill_indexer.retry import RetryPolicy
from tests.fakes import completion_returning, no_sleep


def skill(skill_id, name="thing", description="Does a thing"):
    return SkillInput(skill_id, name, description, ["topic"])


def response(*pairs):
    return {"assignments": [{"skillId": sid, "categories": cats} for sid, cats in pairs]}


def make_classifier(completion, **kwargs):
    kwargs.setdefault("retry_policy", RetryPolicy(3, 0, 0))
    return AIClassifier(model="gemini/test", completion=completion, sleep=no_sleep, **kwargs)


class TestSanitize:
    def test_keeps_registry_ids_only(self):
        raw = ["Security", "security", "bogus", "dev-tools", "mobile", "data-analytics"]
        assert sanitize_categories(raw) == ["security", "dev-tools", "mobile"]

    def test_empty(self):
        assert sanitize_categories([]) == []
        assert sanitize_categories(None) == []

    def test_prompt_input(self):
        assert sanitize_prompt_input("a\n\nb", 100) == "a b"
        assert sanitize_prompt_input("x" * 20, 5) == "xxxxx"

    def test_transient_markers(self):
        assert is_transient_llm_error(Exception("503 Service Unavailable"))
        assert is_transient_llm_error(Exception("Model is overloaded"))
        assert not is_transient_llm_error(ValueError("invalid api key"))


class TestPrompt:
    def test_lists_every_category_and_skill(self):
        prompt = build_batch_prompt([skill("a/b/SKILL.md", description="line\nbreak")])
        for category_id in CATEGORY_IDS:
            assert f"- {category_id}:" in prompt
        assert "skillId: a/b/SKILL.md" in prompt
        assert "description: line break" in prompt


class TestClassify:
    def test_assigns_registry_ids_capped_at_three(self):
        completion = completion_returning(response(
            ("s1", ["Security", "bogus", "dev-tools", "mobile", "data-analytics"]),
            ("s2", ["writing-content"]),
        ))
        outcome = make_classifier(completion).classify([skill("s1"), skill("s2", "other")])

        by_id = {a.skill_id: a for a in outcome.assignments}
        assert by_id["s1"].category_ids == ["security", "dev-tools", "mobile"]
        assert by_id["s2"].category_ids == ["writing-content"]
        assert all(a.source == "ai" for a in outcome.assignments)
        assert outcome.unresolved == [] and outcome.deferred == []

    def test_request_shape(self):
        completion = completion_returning(response(("s1", ["mobile"])))
        make_classifier(completion, api_key="secret").classify([skill("s1")])
        call = completion.calls[0]
        assert call["model"] == "gemini/test"
        assert call["response_format"] is CategoryAssignmentBatch
        assert call["api_key"] == "secret"
        assert call["messages"][0]["role"] == "user"

    def test_missing_or_invalid_ids_unresolved(self):
        completion = completion_returning(response(("s1", ["bogus"])))
        outcome = make_classifier(completion).classify([skill("s1"), skill("s2", "other")])
        assert outcome.assignments == []
        assert [s.id for s in outcome.unresolved] == ["s1", "s2"]

    def test_unparseable_response_unresolved(self):
        completion = completion_returning("not json at all")
        outcome = make_classifier(completion).classify([skill("s1")])
        assert [s.id for s in outcome.unresolved] == ["s1"]

    def test_cache_hit_skips_request(self):
        completion = completion_returning(response(("s1", ["mobile"])))
        cache = CategoryCache()
        classifier = make_classifier(completion, cache=cache)
        classifier.classify([skill("s1")])

        outcome = classifier.classify([skill("s1-copy")])
        assert outcome.assignments[0].source == "cache"
        assert outcome.assignments[0].category_ids == ["mobile"]
        assert len(completion.calls) == 1
        assert cache.hits == 1

    def test_transient_error_retried(self):
        completion = completion_returning(
            RuntimeError("503 overloaded"),
            response(("s1", ["mobile"])),
        )
        outcome = make_classifier(completion).classify([skill("s1")])
        assert outcome.assignments[0].category_ids == ["mobile"]
        assert len(completion.calls) == 2

    def test_permanent_error_not_retried(self):
        completion = completion_returning(ValueError("invalid api key"))
        outcome = make_classifier(completion).classify([skill("s1")])
        assert len(completion.calls) == 1
        assert [s.id for s in outcome.unresolved] == ["s1"]

    def test_rate_limit_defers_remaining_chunks(self):
        completion = completion_returning(response(("s1", ["mobile"])))
        limiter = SlidingWindowRateLimiter(max_requests=1, window=60, clock=lambda: 0.0)
        classifier = make_classifier(completion, limiter=limiter, batch_size=1)
        outcome = classifier.classify([skill("s1", "one"), skill("s2", "two"), skill("s3", "three")])

        assert [a.skill_id for a in outcome.assignments] == ["s1"]
        assert [s.id for s in outcome.deferred] == ["s2", "s3"]
        assert len(completion.calls) == 1

    def test_every_attempt_counts_against_limit(self):
        completion = completion_returning(
            RuntimeError("timeout"),
            response(("s1", ["mobile"])),
        )
        limiter = SlidingWindowRateLimiter(max_requests=10, window=60, clock=lambda: 0.0)
        make_classifier(completion, limiter=limiter).classify([skill("s1")])
        assert limiter.remaining() == 8

    def test_retries_stop_at_the_limit(self):
        completion = completion_returning(*[RuntimeError("503 overloaded")] * 3)
        limiter = SlidingWindowRateLimiter(max_requests=1, window=60, clock=lambda: 0.0)
        outcome = make_classifier(completion, limiter=limiter).classify([skill("s1")])

        assert len(completion.calls) == 1
        assert limiter.remaining() == 0
        assert [s.id for s in outcome.deferred] == ["s1"]
        assert outcome.unresolved == []

    def test_exhausted_budget_is_not_transient(self):
        assert is_transient_llm_error(RateLimitExceeded(0, 1)) is False


class TestAvailability:
    def test_unavailable_without_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        assert not AIClassifier().available

    def test_available_with_env_key(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        assert AIClassifier().available

    def test_batch_size_capped(self):
        assert AIClassifier(batch_size=500, completion=completion_returning()).batch_size == 50


@pytest.mark.parametrize("categories", [[], ["mobile"], ["a", "b", "c", "d"]])
def test_schema_accepts_any_category_list(categories):
    batch = CategoryAssignmentBatch.model_validate(
        {"assignments": [{"skillId": "x", "categories": categories}]}
    )
    assert batch.assignments[0].skill_id == "x"
