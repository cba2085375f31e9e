"""
Category assignment strategy chain: keyword tier, AI tier, keyword best guess
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..models import CategoryAssignment, SkillInput
from .ai_classifier import AIClassifier
from .matcher import (
    DEFAULT_THRESHOLDS,
    LOW,
    KeywordThresholds,
    best_single_guess,
    classify_keywords,
)

logger = logging.getLogger(__name__)


@dataclass
class TierResult:
    assignments: List[CategoryAssignment] = field(default_factory=list)
    unresolved: List[SkillInput] = field(default_factory=list)
    deferred: List[SkillInput] = field(default_factory=list)


@dataclass
class AssignmentReport:
    assignments: List[CategoryAssignment] = field(default_factory=list)
    deferred: List[SkillInput] = field(default_factory=list)

    def by_skill(self) -> dict:
        return {a.skill_id: a for a in self.assignments}


def keyword_tier(skills: List[SkillInput],
                 thresholds: KeywordThresholds = DEFAULT_THRESHOLDS) -> TierResult:
    """Resolve skills whose keyword confidence is medium or high."""
    result = TierResult()
    for skill in skills:
        keyword = classify_keywords(skill.name, skill.description or '', skill.topics, thresholds)
        if keyword.confidence != LOW and keyword.category_ids:
            result.assignments.append(
                CategoryAssignment(skill.id, keyword.category_ids, 'keyword')
            )
        else:
            result.unresolved.append(skill)
    return result


def fallback_tier(skills: List[SkillInput],
                  thresholds: KeywordThresholds = DEFAULT_THRESHOLDS) -> TierResult:
    """Best single keyword guess; skills with no signal at all stay uncategorized."""
    result = TierResult()
    for skill in skills:
        guess = best_single_guess(skill.name, skill.description or '', skill.topics, thresholds)
        result.assignments.append(CategoryAssignment(skill.id, guess, 'keyword'))
    return result


class CategoryAssigner:
    """Run each tier only on what the previous tier left unresolved."""

    def __init__(self, ai: Optional[AIClassifier] = None,
                 thresholds: KeywordThresholds = DEFAULT_THRESHOLDS,
                 use_ai: bool = True):
        self.ai = ai
        self.thresholds = thresholds
        self.use_ai = use_ai and ai is not None and ai.available
        if use_ai and not self.use_ai:
            logger.warning("AI classification unavailable, using keyword matching only")

    def assign(self, skills: List[SkillInput], allow_defer: bool = True) -> AssignmentReport:
        report = AssignmentReport()

        keyword = keyword_tier(skills, self.thresholds)
        report.assignments.extend(keyword.assignments)
        remaining = keyword.unresolved

        if remaining and self.use_ai:
            outcome = self.ai.classify(remaining)
            report.assignments.extend(outcome.assignments)
            remaining = outcome.unresolved
            if allow_defer:
                report.deferred.extend(outcome.deferred)
            else:
                remaining = remaining + outcome.deferred

        if remaining:
            report.assignments.extend(fallback_tier(remaining, self.thresholds).assignments)

        logger.info(
            f"Categorized {len(report.assignments)} skills "
            f"({len(keyword.assignments)} by keyword, {len(report.deferred)} deferred)"
        )
        return report
