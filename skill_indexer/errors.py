"""
Exceptions and per-record error tracking
"""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class SkillIndexerError(Exception):
    """Base class for indexer errors"""


class MissingCredentialsError(SkillIndexerError):
    """A required credential (GitHub token) is not configured"""


class GitHubAPIError(SkillIndexerError):
    """Non-recoverable GitHub API response"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientGitHubError(GitHubAPIError):
    """Network failure or 5xx, worth retrying"""


class GitHubRateLimitError(GitHubAPIError):
    """403/429 without usable reset information"""


class SkillParseError(SkillIndexerError):
    """SKILL.md frontmatter is missing or invalid"""


class RateLimitExceeded(SkillIndexerError):
    """The AI request budget for the current window is spent"""

    def __init__(self, remaining: int = 0, limit: int = 0):
        super().__init__(
            f"AI rate limit exceeded ({remaining}/{limit} requests remaining)"
        )
        self.remaining = remaining
        self.limit = limit


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    EMPTY_CONTENT = "empty_content"
    PARSE_FAILED = "parse_failed"
    INVALID_NAME = "invalid_name"
    INVALID_DESCRIPTION = "invalid_description"
    INVALID_FIELD = "invalid_field"
    NOT_AGENT_SKILL = "not_agent_skill"
    RATE_LIMITED = "rate_limited"
    DUPLICATE = "duplicate"

    @property
    def is_fatal(self) -> bool:
        """Fatal kinds drop the record from the run."""
        return self in FATAL_KINDS

    @property
    def is_warning(self) -> bool:
        return self in (
            ErrorKind.INVALID_NAME, ErrorKind.INVALID_DESCRIPTION, ErrorKind.INVALID_FIELD,
        )


FATAL_KINDS = frozenset({
    ErrorKind.NOT_FOUND,
    ErrorKind.EMPTY_CONTENT,
    ErrorKind.PARSE_FAILED,
    ErrorKind.NOT_AGENT_SKILL,
})


@dataclass
class SkillError:
    skill_id: str
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data['kind'] = self.kind.value
        return data


class ErrorTracker:
    """Track and categorize per-record failures for the sync summary."""

    def __init__(self):
        self.errors: List[SkillError] = []
        self.stats: Dict[str, int] = defaultdict(int)

    def add(self, skill_id: str, kind: ErrorKind, message: str = ""):
        self.errors.append(SkillError(skill_id, kind, message))
        self.stats[kind.value] += 1
        if kind.is_fatal:
            logger.debug(f"{skill_id}: {kind.value} {message}")

    def extend(self, other: "ErrorTracker"):
        for error in other.errors:
            self.add(error.skill_id, error.kind, error.message)

    def count(self, kind: Optional[ErrorKind] = None) -> int:
        if kind is None:
            return len(self.errors)
        return self.stats.get(kind.value, 0)

    @property
    def fatal_count(self) -> int:
        return sum(1 for e in self.errors if e.kind.is_fatal)

    def by_kind(self, kind: ErrorKind) -> List[SkillError]:
        return [e for e in self.errors if e.kind == kind]

    def summary(self) -> Dict[str, int]:
        return dict(self.stats)

    def save(self, path: str):
        failures = defaultdict(list)
        for error in self.errors:
            failures[error.kind.value].append({
                'id': error.skill_id,
                'message': error.message,
            })
        output = {
            'summary': self.summary(),
            'total_failures': len(self.errors),
            'failures_by_kind': dict(failures),
            'generated_at': datetime.now().isoformat(),
        }
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, ensure_ascii=False)
        logger.info(f"Failure report saved to {path}")

    def print_summary(self):
        print("\n" + "=" * 50)
        print("ERROR SUMMARY")
        print("=" * 50)
        for kind, count in sorted(self.stats.items(), key=lambda x: -x[1]):
            print(f"  {kind}: {count}")
        print(f"  TOTAL: {len(self.errors)}")
        print("=" * 50)
