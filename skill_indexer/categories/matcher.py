"""
Keyword category matcher

Scores every registry category against a skill's name, topics and
description, then a confidence gate decides how many categories to keep.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..config import (
    KEYWORD_MIN_SCORE,
    KEYWORD_MIN_DESCRIPTION_SCORE,
    KEYWORD_TOP_SCORE_MIN,
    KEYWORD_NEGATIVE_MULTIPLIER,
    KEYWORD_FIELD_WEIGHTS,
    MAX_CATEGORIES_PER_SKILL,
)
from .registry import CATEGORIES, CategoryDefinition

WORD_SPLIT_RE = re.compile(r'[^a-z0-9]+')
NON_ALNUM_RE = re.compile(r'[^a-z0-9]')

FIELDS = ('name', 'topics', 'description')  # precedence order

HIGH = 'high'
MEDIUM = 'medium'
LOW = 'low'


@dataclass
class KeywordThresholds:
    """Tunable scorer and gate thresholds."""
    min_score: float = KEYWORD_MIN_SCORE
    min_description_score: float = KEYWORD_MIN_DESCRIPTION_SCORE
    top_score_min: float = KEYWORD_TOP_SCORE_MIN
    negative_multiplier: float = KEYWORD_NEGATIVE_MULTIPLIER
    single_top: float = 12
    single_gap: float = 6
    double_top: float = 9
    double_gap: float = 3
    cutoff_ratio: float = 0.6
    cutoff_floor: float = 4
    max_categories: int = MAX_CATEGORIES_PER_SKILL
    field_weights: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {k: dict(v) for k, v in KEYWORD_FIELD_WEIGHTS.items()}
    )


DEFAULT_THRESHOLDS = KeywordThresholds()


@dataclass(frozen=True)
class KeywordEntry:
    keyword: str
    is_priority: bool
    requires_phrase_match: bool


@dataclass
class CategoryMatch:
    category_id: str
    score: float


@dataclass
class KeywordResult:
    category_ids: List[str]
    confidence: str
    top_score: float
    second_score: float


class TextIndex:
    """Lowercased text plus its word set"""

    def __init__(self, value: str):
        self.text = (value or '').lower()
        self.words: FrozenSet[str] = frozenset(w for w in WORD_SPLIT_RE.split(self.text) if w)

    def matches(self, entry: KeywordEntry) -> bool:
        if entry.requires_phrase_match:
            return entry.keyword in self.text
        if entry.keyword in self.words:
            return True
        if len(entry.keyword) <= 3:
            return False
        if entry.keyword.endswith('s'):
            return entry.keyword[:-1] in self.words
        return entry.keyword + 's' in self.words


def _entries(keywords: Iterable[str], priority: FrozenSet[str]) -> Tuple[KeywordEntry, ...]:
    entries = []
    for keyword in keywords:
        normalized = keyword.strip().lower()
        entries.append(KeywordEntry(
            keyword=normalized,
            is_priority=normalized in priority,
            requires_phrase_match=bool(NON_ALNUM_RE.search(normalized)),
        ))
    return tuple(entries)


@dataclass(frozen=True)
class CategoryIndex:
    id: str
    keywords: Tuple[KeywordEntry, ...]
    negative_keywords: Tuple[KeywordEntry, ...]

    @classmethod
    def build(cls, category: CategoryDefinition) -> "CategoryIndex":
        priority = frozenset(k.strip().lower() for k in category.priority_keywords)
        return cls(
            id=category.id,
            keywords=_entries(category.keywords, priority),
            negative_keywords=_entries(category.negative_keywords, priority),
        )


CATEGORY_INDEX = tuple(CategoryIndex.build(c) for c in CATEGORIES)


def _specificity_bonus(keyword: str) -> int:
    if len(keyword) >= 10:
        return 2
    if len(keyword) >= 7:
        return 1
    return 0


def _best_field(indexes: Dict[str, Optional[TextIndex]], entry: KeywordEntry) -> Optional[str]:
    for name in FIELDS:
        index = indexes.get(name)
        if index is not None and index.matches(entry):
            return name
    return None


def _keyword_score(field_name: str, entry: KeywordEntry, thresholds: KeywordThresholds) -> int:
    weights = thresholds.field_weights[field_name]
    weight = weights['priority'] if entry.is_priority else weights['normal']
    phrase_bonus = 1 if entry.requires_phrase_match else 0
    return weight + phrase_bonus + _specificity_bonus(entry.keyword)


def _build_indexes(name: str, description: str,
                   topics: Optional[List[str]]) -> Dict[str, Optional[TextIndex]]:
    topics_text = ' '.join(topics or [])
    return {
        'name': TextIndex(name),
        'topics': TextIndex(topics_text) if topics_text else None,
        'description': TextIndex(description),
    }


def score_categories(name: str, description: str, topics: Optional[List[str]] = None,
                     thresholds: KeywordThresholds = DEFAULT_THRESHOLDS,
                     gated: bool = True) -> List[CategoryMatch]:
    """Score every category; with ``gated`` only credible matches survive."""
    indexes = _build_indexes(name, description or '', topics)
    matches = []

    for category in CATEGORY_INDEX:
        score = 0.0
        positive_hits = priority_hits = name_hits = topic_hits = 0

        for entry in category.keywords:
            best = _best_field(indexes, entry)
            if not best:
                continue
            positive_hits += 1
            if entry.is_priority:
                priority_hits += 1
            if best == 'name':
                name_hits += 1
            elif best == 'topics':
                topic_hits += 1
            score += _keyword_score(best, entry, thresholds)

        for entry in category.negative_keywords:
            best = _best_field(indexes, entry)
            if best:
                score -= _keyword_score(best, entry, thresholds) * thresholds.negative_multiplier

        if score <= 0 or positive_hits == 0:
            continue

        if gated:
            if score < thresholds.min_score:
                continue
            if name_hits == 0 and topic_hits == 0:
                if priority_hits == 0 and positive_hits < 2:
                    continue
                if score < thresholds.min_description_score:
                    continue
            if not (priority_hits or positive_hits >= 2 or name_hits):
                continue

        matches.append(CategoryMatch(category.id, score))

    # Stable sort keeps registry order for ties
    return sorted(matches, key=lambda m: -m.score)


def map_skill_to_category_matches(name: str, description: str,
                                  topics: Optional[List[str]] = None,
                                  thresholds: KeywordThresholds = DEFAULT_THRESHOLDS
                                  ) -> List[CategoryMatch]:
    return score_categories(name, description, topics, thresholds)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def evaluate_keyword_confidence(matches: List[CategoryMatch],
                                thresholds: KeywordThresholds = DEFAULT_THRESHOLDS
                                ) -> KeywordResult:
    """Confidence gate.

    * top >= 12 with a gap >= 6: one category, high confidence
    * top >= 9 with a gap >= 3: up to two, high confidence
    * top >= 7: up to three within 60% of the top score, medium confidence
    * otherwise: low confidence, left for the AI tier
    """
    if not matches:
        return KeywordResult([], LOW, 0, 0)

    top = matches[0].score
    second = matches[1].score if len(matches) > 1 else 0
    gap = top - second
    cutoff = max(thresholds.cutoff_floor, _round_half_up(top * thresholds.cutoff_ratio))

    if top >= thresholds.single_top and gap >= thresholds.single_gap:
        return KeywordResult([matches[0].category_id], HIGH, top, second)

    if top >= thresholds.double_top and gap >= thresholds.double_gap:
        ids = [m.category_id for m in matches[:2] if m.score >= thresholds.cutoff_floor]
        return KeywordResult(ids[:thresholds.max_categories], HIGH, top, second)

    if top >= thresholds.top_score_min:
        ids = [m.category_id for m in matches if m.score >= cutoff]
        ids = ids or [matches[0].category_id]
        return KeywordResult(ids[:min(3, thresholds.max_categories)], MEDIUM, top, second)

    return KeywordResult([], LOW, top, second)


def classify_keywords(name: str, description: str, topics: Optional[List[str]] = None,
                      thresholds: KeywordThresholds = DEFAULT_THRESHOLDS) -> KeywordResult:
    matches = map_skill_to_category_matches(name, description, topics, thresholds)
    return evaluate_keyword_confidence(matches, thresholds)


def map_skill_to_categories(name: str, description: str,
                            topics: Optional[List[str]] = None,
                            thresholds: KeywordThresholds = DEFAULT_THRESHOLDS) -> List[str]:
    """Category ids the keyword tier is confident about (may be empty)."""
    return classify_keywords(name, description, topics, thresholds).category_ids


def best_single_guess(name: str, description: str, topics: Optional[List[str]] = None,
                      thresholds: KeywordThresholds = DEFAULT_THRESHOLDS) -> List[str]:
    """Highest-scoring category with the credibility gates relaxed."""
    matches = score_categories(name, description, topics, thresholds, gated=False)
    return [matches[0].category_id] if matches else []
