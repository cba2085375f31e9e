"""
Canonical skill identity, dedup and name/description validation.

A skill is identified by ``owner/repo/path`` where owner and repo are
lowercased and the path keeps its original case. Everything that touches a
skill location goes through :func:`to_skill_identity` so the same file seen
as ``ACME/Tools`` and ``acme/tools`` collapses to one record.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, TypeVar

from .config import (
    SKILL_FILENAME,
    MAX_NAME_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MIN_DESCRIPTION_LENGTH,
    PLACEHOLDER_NAMES,
)

STRICT_NAME_RE = re.compile(r'^[a-z0-9-]+$')


@dataclass(frozen=True)
class SkillIdentity:
    owner: str
    repo: str
    path: str

    @property
    def canonical_id(self) -> str:
        return f"{self.owner}/{self.repo}/{self.path}"

    @property
    def repo_key(self) -> str:
        return f"{self.owner}/{self.repo}"


def normalize_owner(value: str) -> str:
    return (value or "").strip().lower()


def normalize_path(path: str) -> str:
    """Forward slashes, no leading slash, no empty segments. Case is kept."""
    path = (path or "").replace('\\', '/')
    path = re.sub(r'/{2,}', '/', path)
    return path.strip().lstrip('/')


def to_skill_identity(owner: str, repo: str, path: str) -> SkillIdentity:
    return SkillIdentity(
        owner=normalize_owner(owner),
        repo=normalize_owner(repo),
        path=normalize_path(path),
    )


normalize = to_skill_identity


def to_canonical_id(owner: str, repo: str, path: str) -> str:
    return to_skill_identity(owner, repo, path).canonical_id


def parse_canonical_id(canonical_id: str) -> Optional[SkillIdentity]:
    """Split ``owner/repo/path``; returns None when a segment is missing."""
    parts = (canonical_id or "").split('/', 2)
    if len(parts) < 3 or not all(parts):
        return None
    return to_skill_identity(*parts)


def is_valid_skill_path(path: str) -> bool:
    return normalize_path(path).split('/')[-1] == SKILL_FILENAME


def skill_directory(path: str) -> str:
    path = normalize_path(path)
    if '/' not in path:
        return ""
    return path.rsplit('/', 1)[0]


class DeduplicationSet:
    """Set of canonical ids seen during one run."""

    def __init__(self, ids: Iterable[str] = ()):
        self._seen: Set[str] = set(ids)

    def has(self, owner: str, repo: str, path: str) -> bool:
        return to_canonical_id(owner, repo, path) in self._seen

    def add(self, owner: str, repo: str, path: str) -> bool:
        """Add the identity; returns False when it was already present."""
        canonical_id = to_canonical_id(owner, repo, path)
        if canonical_id in self._seen:
            return False
        self._seen.add(canonical_id)
        return True

    def __contains__(self, canonical_id: str) -> bool:
        return canonical_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    @property
    def size(self) -> int:
        return len(self._seen)


T = TypeVar('T')


def deduplicate_skills(items: Iterable[T]) -> List[T]:
    """Keep the first occurrence of every identity (items need owner/repo/path)."""
    seen = DeduplicationSet()
    result = []
    for item in items:
        if seen.add(item.owner, item.repo, item.path):
            result.append(item)
    return result


@dataclass
class NameValidation:
    valid: bool
    strict: bool
    error: Optional[str] = None


@dataclass
class DescriptionValidation:
    valid: bool
    error: Optional[str] = None


def validate_skill_name(name: str) -> NameValidation:
    if not name:
        return NameValidation(False, False, "Name is required")
    if len(name) > MAX_NAME_LENGTH:
        return NameValidation(
            False, False, f"Name exceeds {MAX_NAME_LENGTH} characters ({len(name)})"
        )
    strict = (
        bool(STRICT_NAME_RE.match(name))
        and not name.startswith('-')
        and not name.endswith('-')
        and '--' not in name
    )
    if not strict:
        return NameValidation(
            True, False,
            "Name should be lowercase letters, digits and single hyphens",
        )
    return NameValidation(True, True)


def normalize_skill_name(name: str) -> str:
    """
    Normalize a skill name to the strict form: lowercase, hyphens, max 64 chars.

    Examples:
        "LangChain" -> "langchain"
        "My Skill Name" -> "my-skill-name"
        "--pdf__tools--" -> "pdf-tools"
    """
    if not name:
        return "unknown"
    name = re.sub(r'[^a-z0-9]+', '-', name.lower())
    name = re.sub(r'-+', '-', name).strip('-')
    return name[:MAX_NAME_LENGTH].rstrip('-') if name else "unknown"


def slugify(text: str) -> str:
    """URL slug: accents stripped, '&' spelled out, runs of separators collapsed."""
    text = unicodedata.normalize('NFD', text or "")
    text = ''.join(c for c in text if not unicodedata.combining(c))
    text = text.lower().strip().replace('&', ' and ')
    text = re.sub(r'[^\w\s-]', '', text, flags=re.ASCII)
    text = re.sub(r'[\s_-]+', '-', text)
    return text.strip('-')[:MAX_NAME_LENGTH].rstrip('-')


def validate_description(description: Optional[str]) -> DescriptionValidation:
    if not description:
        return DescriptionValidation(False, "Description is required")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return DescriptionValidation(
            False,
            f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters ({len(description)})",
        )
    if len(description.strip()) < MIN_DESCRIPTION_LENGTH:
        return DescriptionValidation(
            False, f"Description is shorter than {MIN_DESCRIPTION_LENGTH} characters"
        )
    return DescriptionValidation(True)


def is_likely_agent_skill(name: str, description: Optional[str] = None) -> bool:
    """Reject placeholder names that search indexes surface in bulk.

    The description is accepted for call-site symmetry but never rescues a
    placeholder name.
    """
    normalized = (name or "").strip().lower()
    if not normalized:
        return False
    return normalized not in PLACEHOLDER_NAMES
