"""
Batched AI category classification

Sends up to ``batch_size`` skills per structured-output request through
LiteLLM and keeps only category ids that exist in the registry. Results are
cached by content fingerprint; request volume is capped by a sliding-window
limiter shared across the run.
"""

import os
import re
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import (
    AI_MODEL,
    AI_PRO_MODEL,
    AI_API_KEY_ENV,
    AI_BATCH_SIZE,
    AI_PRO_BATCH_SIZE,
    AI_TEMPERATURE,
    AI_MAX_TOKENS,
    AI_MAX_DESCRIPTION_LENGTH,
    AI_MAX_TOPICS,
    AI_RETRY_ATTEMPTS,
    AI_RETRY_BASE_DELAY,
    AI_RETRY_MAX_DELAY,
    MAX_CATEGORIES_PER_SKILL,
)
from ..errors import RateLimitExceeded
from ..models import CategoryAssignment, SkillInput
from ..retry import RetryPolicy
from .cache import CategoryCache, fingerprint
from .rate_limit import SlidingWindowRateLimiter
from .registry import CATEGORY_IDS, get_categories_sorted

logger = logging.getLogger(__name__)

TRANSIENT_MARKERS = ("overloaded", "rate", "429", "500", "502", "503", "timeout")


class SkillCategories(BaseModel):
    """Categories chosen for one skill."""

    model_config = ConfigDict(populate_by_name=True)

    skill_id: str = Field(alias="skillId", description="The skillId given in the prompt")
    categories: List[str] = Field(
        default_factory=list,
        description="1-3 category ids taken from the provided list",
    )


class CategoryAssignmentBatch(BaseModel):
    """Top-level structured output passed to LiteLLM's response_format."""

    assignments: List[SkillCategories]


@dataclass
class AIOutcome:
    assignments: List[CategoryAssignment] = field(default_factory=list)
    unresolved: List[SkillInput] = field(default_factory=list)
    deferred: List[SkillInput] = field(default_factory=list)


def is_transient_llm_error(error: BaseException) -> bool:
    if isinstance(error, RateLimitExceeded):
        return False
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def sanitize_prompt_input(text: str, max_length: int) -> str:
    return re.sub(r'\n+', ' ', text or '').strip()[:max_length]


def sanitize_categories(raw: List[str]) -> List[str]:
    """Lowercase, dedupe, keep registry ids only, cap at three."""
    result = []
    for value in raw or []:
        normalized = str(value).strip().lower()
        if normalized in CATEGORY_IDS and normalized not in result:
            result.append(normalized)
    return result[:MAX_CATEGORIES_PER_SKILL]


def format_skill_for_prompt(skill: SkillInput) -> str:
    topics = ', '.join((skill.topics or [])[:AI_MAX_TOPICS])
    return '\n'.join([
        f"skillId: {skill.id}",
        f"name: {sanitize_prompt_input(skill.name, 200)}",
        f"description: {sanitize_prompt_input(skill.description or '', AI_MAX_DESCRIPTION_LENGTH)}",
        f"topics: {topics}",
    ])


def build_batch_prompt(skills: List[SkillInput]) -> str:
    categories = '\n'.join(
        f"- {c.id}: {c.name} ({c.description})" for c in get_categories_sorted()
    )
    items = '\n\n---\n\n'.join(format_skill_for_prompt(s) for s in skills)
    return f"""You are a strict classification engine for developer tools and AI agent skills.

Task: Assign 1-3 best matching categories for each skill, using ONLY the provided category IDs.

CATEGORIES (id: name (description)):
{categories}

RULES:
1. Output must be valid JSON matching the provided schema.
2. For each skill: choose 1-3 category IDs (unique) from the list above.
3. Prefer the most specific and relevant categories.
4. If a skill clearly belongs to one category, assign only that one.
5. If a skill spans multiple domains, assign up to 3 categories.
6. Never invent category IDs. Use only the exact IDs from the list.
7. Consider the skill name, description, and topics when making decisions.

SKILLS TO CATEGORIZE:
{items}"""


def _litellm_completion(**kwargs):
    import litellm

    return litellm.completion(**kwargs)


class AIClassifier:
    """Structured-generation classifier over the closed category registry."""

    def __init__(self, model: str = AI_MODEL, batch_size: Optional[int] = None,
                 limiter: Optional[SlidingWindowRateLimiter] = None,
                 cache: Optional[CategoryCache] = None,
                 completion: Optional[Callable] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 api_key: Optional[str] = None,
                 temperature: float = AI_TEMPERATURE,
                 sleep: Callable[[float], None] = time.sleep):
        max_batch = AI_PRO_BATCH_SIZE if model == AI_PRO_MODEL else AI_BATCH_SIZE
        self.model = model
        self.batch_size = min(batch_size or max_batch, max_batch)
        self.limiter = limiter or SlidingWindowRateLimiter()
        self.cache = cache if cache is not None else CategoryCache()
        self.retry_policy = retry_policy or RetryPolicy(
            AI_RETRY_ATTEMPTS, AI_RETRY_BASE_DELAY, AI_RETRY_MAX_DELAY
        )
        self.api_key = api_key or os.environ.get(AI_API_KEY_ENV)
        self.completion = completion or _litellm_completion
        self._injected = completion is not None
        self.temperature = temperature
        self.sleep = sleep

    @property
    def available(self) -> bool:
        return bool(self.api_key) or self._injected

    def _request(self, prompt: str):
        # Every attempt, retries included, spends from the window
        self.limiter.check()
        self.limiter.record()
        kwargs = dict(
            model=self.model,
            temperature=self.temperature,
            max_tokens=AI_MAX_TOKENS,
            response_format=CategoryAssignmentBatch,
            messages=[{"role": "user", "content": prompt}],
        )
        if self.api_key:
            kwargs['api_key'] = self.api_key
        return self.completion(**kwargs)

    @staticmethod
    def parse_response(response) -> Dict[str, List[str]]:
        content = response.choices[0].message.content
        batch = CategoryAssignmentBatch.model_validate_json(content)
        return {a.skill_id: a.categories for a in batch.assignments}

    def classify_batch(self, chunk: List[SkillInput]) -> Dict[str, List[str]]:
        """One request for one chunk, retried on transient failures."""
        prompt = build_batch_prompt(chunk)
        response = self.retry_policy.call(
            lambda: self._request(prompt),
            is_retryable=is_transient_llm_error,
            on_retry=lambda attempt, e: logger.warning(
                f"AI batch retry {attempt}/{self.retry_policy.max_attempts}: {e}"
            ),
            sleep=self.sleep,
        )
        return self.parse_response(response)

    def classify(self, skills: List[SkillInput]) -> AIOutcome:
        outcome = AIOutcome()
        pending = []
        keys = {}
        for skill in skills:
            key = fingerprint(skill.name, skill.description, skill.topics)
            keys[skill.id] = key
            cached = self.cache.get(key)
            if cached:
                outcome.assignments.append(CategoryAssignment(skill.id, cached, 'cache'))
            else:
                pending.append(skill)

        for start in range(0, len(pending), self.batch_size):
            chunk = pending[start:start + self.batch_size]
            try:
                by_id = self.classify_batch(chunk)
            except RateLimitExceeded as e:
                logger.warning(f"{e}; deferring {len(pending) - start} skills")
                outcome.deferred.extend(pending[start:])
                break
            except ValidationError as e:
                logger.warning(f"Unparseable AI response for {len(chunk)} skills: {e}")
                outcome.unresolved.extend(chunk)
                continue
            except Exception as e:
                logger.error(f"AI batch failed after retries ({len(chunk)} skills): {e}")
                outcome.unresolved.extend(chunk)
                continue

            for skill in chunk:
                categories = sanitize_categories(by_id.get(skill.id, []))
                if categories:
                    self.cache.set(keys[skill.id], categories)
                    outcome.assignments.append(CategoryAssignment(skill.id, categories, 'ai'))
                else:
                    outcome.unresolved.append(skill)

        logger.info(
            f"AI classification: {len(outcome.assignments)} assigned, "
            f"{len(outcome.unresolved)} unresolved, {len(outcome.deferred)} deferred"
        )
        return outcome
