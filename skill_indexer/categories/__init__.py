"""
Category classification: keyword scoring with a batched AI fallback
"""

from .registry import CATEGORIES, CATEGORY_IDS, CategoryDefinition, get_category_by_id
from .matcher import (
    KeywordThresholds,
    KeywordResult,
    CategoryMatch,
    map_skill_to_categories,
    map_skill_to_category_matches,
    evaluate_keyword_confidence,
)
from .cache import CategoryCache, fingerprint
from .rate_limit import SlidingWindowRateLimiter
from .ai_classifier import AIClassifier, sanitize_categories
from .assigner import CategoryAssigner, AssignmentReport

__all__ = [
    'CATEGORIES',
    'CATEGORY_IDS',
    'CategoryDefinition',
    'get_category_by_id',
    'KeywordThresholds',
    'KeywordResult',
    'CategoryMatch',
    'map_skill_to_categories',
    'map_skill_to_category_matches',
    'evaluate_keyword_confidence',
    'CategoryCache',
    'fingerprint',
    'SlidingWindowRateLimiter',
    'AIClassifier',
    'sanitize_categories',
    'CategoryAssigner',
    'AssignmentReport',
]
