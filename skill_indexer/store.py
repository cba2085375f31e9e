"""
Persistence contract for skill records

The relational store lives outside this package; these classes define the
upsert/query contract the sync relies on, with an in-memory implementation
and a JSON-file one in the registry's output format.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple

from .models import SkillRecord, SkillStatus

logger = logging.getLogger(__name__)

OVERRIDING_STATUSES = (SkillStatus.APPROVED, SkillStatus.REJECTED)


def merge_status(incoming: SkillStatus, existing: SkillStatus) -> SkillStatus:
    """Approval decisions made upstream win; otherwise the stored status stays."""
    if incoming in OVERRIDING_STATUSES:
        return incoming
    return existing


class SkillStore(ABC):

    @abstractmethod
    def upsert_skills(self, records: Iterable[SkillRecord]) -> int:
        """Insert or replace by id (last write wins); returns rows written."""

    @abstractmethod
    def get_skills_by_ids(self, ids: Iterable[str]) -> Dict[str, SkillRecord]:
        ...

    @abstractmethod
    def replace_skill_categories(self, rows: Iterable[Tuple[str, List[str]]]) -> int:
        """Replace the category links of each skill."""

    @abstractmethod
    def get_skills_without_categories(self, limit: int = 100) -> List[SkillRecord]:
        ...

    def get_existing_ids(self, ids: Iterable[str]) -> set:
        return set(self.get_skills_by_ids(ids))


class InMemorySkillStore(SkillStore):

    def __init__(self, records: Iterable[SkillRecord] = ()):
        self.records: Dict[str, SkillRecord] = {r.id: r for r in records}
        self.upsert_calls = 0
        self.rows_written = 0

    def upsert_skills(self, records: Iterable[SkillRecord]) -> int:
        records = list(records)
        if not records:
            return 0
        self.upsert_calls += 1
        for record in records:
            existing = self.records.get(record.id)
            if existing is not None:
                record.status = merge_status(record.status, existing.status)
            self.records[record.id] = record
        self.rows_written += len(records)
        return len(records)

    def get_skills_by_ids(self, ids: Iterable[str]) -> Dict[str, SkillRecord]:
        return {i: self.records[i] for i in ids if i in self.records}

    def replace_skill_categories(self, rows: Iterable[Tuple[str, List[str]]]) -> int:
        count = 0
        for skill_id, category_ids in rows:
            record = self.records.get(skill_id)
            if record is None:
                logger.warning(f"Cannot link categories, unknown skill {skill_id}")
                continue
            record.category_ids = list(category_ids)
            count += 1
        return count

    def get_skills_without_categories(self, limit: int = 100) -> List[SkillRecord]:
        missing = [r for r in self.records.values() if not r.category_ids]
        return missing[:limit]

    def all(self) -> List[SkillRecord]:
        return list(self.records.values())


class JsonFileSkillStore(InMemorySkillStore):
    """Records persisted as one JSON document."""

    def __init__(self, path: str, name: str = "Skill Registry"):
        self.path = path
        self.name = name
        records = []
        if os.path.exists(path):
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            records = [SkillRecord.from_dict(s) for s in data.get('skills', [])]
            logger.info(f"Loaded {len(records)} skills from {path}")
        super().__init__(records)

    def save(self):
        skills = sorted(self.records.values(), key=lambda r: (-r.stars, r.id))
        output = {
            'name': self.name,
            'synced_at': datetime.now(timezone.utc).isoformat(),
            'total_count': len(skills),
            'skills': [r.to_dict() for r in skills],
        }
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(output, f, indent=2, ensure_ascii=False)
        logger.info(f"Saved {len(skills)} skills to {self.path}")
