"""
Sync orchestrator

discover -> dedup -> metadata filter -> content fetch -> parse/validate ->
security scan -> classify -> upsert

Nothing is written until the final upsert, so a run can be cancelled
between phases without leaving partial state behind. Re-running on
unchanged upstream content writes nothing: blob SHA equality short-circuits
re-parse, re-scan and re-classification.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .batch_fetcher import BatchFetcher, apply_metadata_filters
from .canonical import to_skill_identity
from .categories import AIClassifier, CategoryAssigner
from .config import INCREMENTAL_OVERLAP_DAYS, MAX_DISCOVERY_RESULTS, MIN_STARS
from .discovery import SkillDiscovery
from .errors import ErrorKind, ErrorTracker, GitHubAPIError, MissingCredentialsError
from .github_client import GitHubClient
from .indexer import build_skill_record, utc_now
from .models import (
    DiscoveredItem,
    RepoMetadata,
    SkillInput,
    SkillRecord,
    SkillStatus,
    SyncResult,
)
from .skill_parser import SkillParser
from .store import SkillStore

logger = logging.getLogger(__name__)


@dataclass
class SyncOptions:
    max_results: int = MAX_DISCOVERY_RESULTS
    min_stars: int = MIN_STARS
    skip_archived: bool = True
    since: Optional[datetime] = None
    skip_existing: bool = False
    use_ai: bool = True

    @property
    def pushed_since(self) -> Optional[datetime]:
        if self.since is None:
            return None
        since = self.since if self.since.tzinfo else self.since.replace(tzinfo=timezone.utc)
        return since - timedelta(days=INCREMENTAL_OVERLAP_DAYS)


def since_days_ago(days: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    """Push cutoff ``days`` back from now; None (no cutoff) for 0 or None."""
    if not days:
        return None
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)


def refresh_metadata(record: SkillRecord, meta: RepoMetadata, now: str) -> Optional[SkillRecord]:
    """Copy of ``record`` with fresh repository metadata, or None if nothing changed."""
    candidate = dataclasses.replace(
        record,
        stars=meta.stars,
        forks=meta.forks,
        topics=list(meta.topics),
        is_archived=meta.is_archived,
        avatar_url=meta.avatar_url,
        license_key=meta.license_key,
        repo_pushed_at=meta.pushed_at,
    )
    if not candidate.metadata_differs(record):
        return None
    candidate.last_seen_at = now
    return candidate


class SkillSync:
    """Idempotent sync entry point for the scheduler/webhook layer"""

    def __init__(self, client: GitHubClient, store: SkillStore,
                 discovery: Optional[SkillDiscovery] = None,
                 fetcher: Optional[BatchFetcher] = None,
                 parser: Optional[SkillParser] = None,
                 assigner: Optional[CategoryAssigner] = None,
                 options: Optional[SyncOptions] = None):
        self.client = client
        self.store = store
        self.options = options or SyncOptions()
        self.discovery = discovery or SkillDiscovery(client)
        self.fetcher = fetcher or BatchFetcher(client)
        self.parser = parser or SkillParser()
        self.assigner = assigner or CategoryAssigner(AIClassifier(), use_ai=self.options.use_ai)
        self._cancelled = False

    def cancel(self):
        """Stop at the next phase boundary; nothing is persisted."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _require_credentials(self):
        if not self.client.token:
            raise MissingCredentialsError("GITHUB_TOKEN is required to run a sync")

    def run(self, options: Optional[SyncOptions] = None) -> SyncResult:
        """Full sync across everything discovery can find."""
        options = options or self.options
        self._require_credentials()
        self._cancelled = False
        try:
            self.client.check_rate_limit()
        except GitHubAPIError as e:
            logger.warning(f"Could not read rate limits: {e}")

        items = self.discovery.discover_all(options.max_results, should_stop=lambda: self._cancelled)
        result = SyncResult(discovered=len(items), duplicates=self.discovery.duplicates)
        return self._process(items, options, result)

    def sync_repo(self, owner: str, repo: str,
                  options: Optional[SyncOptions] = None) -> SyncResult:
        """Sync every SKILL.md in one repository (webhook / submission path)."""
        options = options or SyncOptions(min_stars=0, skip_archived=False)
        self._require_credentials()
        self._cancelled = False
        items = self.discovery.discover_repo(owner, repo)
        return self._process(items, options, SyncResult(discovered=len(items)))

    def sync_skill(self, owner: str, repo: str, path: str,
                   options: Optional[SyncOptions] = None) -> SyncResult:
        """Sync one file; a no-op when its blob SHA is unchanged."""
        options = options or SyncOptions(min_stars=0, skip_archived=False)
        self._require_credentials()
        self._cancelled = False
        identity = to_skill_identity(owner, repo, path)
        items = [DiscoveredItem(identity.owner, identity.repo, identity.path)]
        return self._process(items, options, SyncResult(discovered=1))

    def _finish(self, result: SyncResult, tracker: ErrorTracker) -> SyncResult:
        result.cancelled = self._cancelled
        result.errors = tracker.fatal_count
        result.error_counts = tracker.summary()
        if result.duplicates:
            result.error_counts[ErrorKind.DUPLICATE.value] = result.duplicates
        result.error_list = [e.to_dict() for e in tracker.errors]
        logger.info(
            f"Sync {'cancelled' if result.cancelled else 'finished'}: "
            f"{result.discovered} discovered, {result.filtered} filtered, "
            f"{result.indexed} indexed, {result.skipped_unchanged} unchanged, "
            f"{result.errors} errors, {result.deferred} deferred"
        )
        return result

    def _process(self, items: List[DiscoveredItem], options: SyncOptions,
                 result: SyncResult) -> SyncResult:
        tracker = ErrorTracker()
        if self._cancelled or not items:
            return self._finish(result, tracker)

        if options.skip_existing:
            ids = [to_skill_identity(i.owner, i.repo, i.path).canonical_id for i in items]
            existing_ids = self.store.get_existing_ids(ids)
            items = [i for i, sid in zip(items, ids) if sid not in existing_ids]
            logger.info(f"Skipping {len(existing_ids)} already indexed skills")

        # Phase 1: metadata filter before paying for content
        metadata = self.fetcher.fetch_repo_metadata((i.owner, i.repo) for i in items)
        outcome = apply_metadata_filters(
            items, metadata,
            min_stars=options.min_stars,
            skip_archived=options.skip_archived,
            pushed_since=options.pushed_since,
            tracker=tracker,
        )
        result.filtered = outcome.filtered
        logger.info(f"Metadata filter kept {len(outcome.kept)}/{len(items)} ({outcome.skipped})")
        if self._cancelled:
            return self._finish(result, tracker)

        # Phase 2: content
        fetched = self.fetcher.fetch_skills(outcome.kept)
        if self._cancelled:
            return self._finish(result, tracker)

        ids = [to_skill_identity(i.owner, i.repo, i.path).canonical_id for i in outcome.kept]
        existing = self.store.get_skills_by_ids(ids)
        now = utc_now()
        to_write: List[SkillRecord] = []
        changed: List[SkillRecord] = []

        for skill_id in ids:
            data = fetched.get(skill_id)
            if data is None:
                tracker.add(skill_id, ErrorKind.NOT_FOUND, "Not found in GraphQL batch")
                continue

            previous = existing.get(skill_id)
            if previous is not None and data.blob_sha and previous.blob_sha == data.blob_sha:
                if previous.status == SkillStatus.APPROVED:
                    result.skipped_unchanged += 1
                    continue
                refreshed = refresh_metadata(previous, data.metadata, now)
                if refreshed is None:
                    result.skipped_unchanged += 1
                else:
                    to_write.append(refreshed)
                continue

            record = build_skill_record(skill_id, data, self.parser, tracker, previous, now)
            if record is not None:
                changed.append(record)
                to_write.append(record)

        if self._cancelled:
            return self._finish(result, tracker)

        self._classify(changed, tracker, result)

        if self._cancelled:
            return self._finish(result, tracker)

        result.indexed = len(changed)
        result.upserted = self.store.upsert_skills(to_write)
        links = [(r.id, r.category_ids) for r in changed if r.category_ids]
        if links:
            self.store.replace_skill_categories(links)
        return self._finish(result, tracker)

    def _classify(self, records: List[SkillRecord], tracker: ErrorTracker, result: SyncResult):
        if not records:
            return
        report = self.assigner.assign([
            SkillInput(r.id, r.name, r.description, r.topics) for r in records
        ])
        by_id = report.by_skill()
        for record in records:
            assignment = by_id.get(record.id)
            if assignment is not None:
                record.category_ids = assignment.category_ids
                record.category_source = assignment.source
        for skill in report.deferred:
            tracker.add(skill.id, ErrorKind.RATE_LIMITED, "AI classification deferred")
        result.deferred = len(report.deferred)

    def categorize_uncategorized(self, limit: int = 100) -> int:
        """Classify stored records that have no categories yet (e.g. deferred ones)."""
        records = self.store.get_skills_without_categories(limit)
        if not records:
            return 0
        report = self.assigner.assign(
            [SkillInput(r.id, r.name, r.description, r.topics) for r in records]
        )
        rows = [(a.skill_id, a.category_ids) for a in report.assignments if a.category_ids]
        count = self.store.replace_skill_categories(rows)
        logger.info(f"Categorized {count}/{len(records)} stored skills")
        return count
