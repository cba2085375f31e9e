"""
Two-phase GraphQL batch fetcher

Phase 1 fetches repository metadata for every unique repository and filters
on it. Phase 2 fetches file content, blob SHA and last commit date only for
what survived. Both phases batch ``GRAPHQL_CHUNK_SIZE`` aliased sub-queries
into one request.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .canonical import to_skill_identity
from .config import GRAPHQL_CHUNK_SIZE, FETCH_CONCURRENCY, CHUNK_DELAY
from .errors import ErrorKind, ErrorTracker, GitHubAPIError
from .github_client import GitHubClient
from .models import DiscoveredItem, RepoMetadata, SkillFullData
from .raw_content import fetch_raw_files

logger = logging.getLogger(__name__)

REPO_FIELDS = """
      stargazerCount
      forkCount
      pushedAt
      isArchived
      primaryLanguage { name }
      licenseInfo { key }
      owner { avatarUrl }
      repositoryTopics(first: 20) { nodes { topic { name } } }"""

T = TypeVar('T')


def chunked(items: Sequence[T], size: int) -> List[Sequence[T]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def build_metadata_query(count: int) -> str:
    params = ', '.join(f"$owner{i}: String!, $repo{i}: String!" for i in range(count))
    body = '\n'.join(
        f"    repo{i}: repository(owner: $owner{i}, name: $repo{i}) {{{REPO_FIELDS}\n    }}"
        for i in range(count)
    )
    return f"query RepoMetadata({params}) {{\n{body}\n}}"


def build_content_query(count: int) -> str:
    params = ', '.join(
        f"$owner{i}: String!, $repo{i}: String!, $path{i}: String!, $expression{i}: String!"
        for i in range(count)
    )
    body = '\n'.join(
        f"    item{i}: repository(owner: $owner{i}, name: $repo{i}) {{{REPO_FIELDS}\n"
        f"      defaultBranchRef {{ target {{ ... on Commit {{\n"
        f"        history(first: 1, path: $path{i}) {{ edges {{ node {{ committedDate }} }} }}\n"
        f"      }} }} }}\n"
        f"      object(expression: $expression{i}) {{\n"
        f"        ... on Blob {{ text oid isTruncated byteSize }}\n"
        f"      }}\n"
        f"    }}"
        for i in range(count)
    )
    return f"query SkillContent({params}) {{\n{body}\n}}"


def parse_repo_metadata(node: dict) -> RepoMetadata:
    topics = [
        (n.get('topic') or {}).get('name')
        for n in (node.get('repositoryTopics') or {}).get('nodes') or []
    ]
    return RepoMetadata(
        stars=node.get('stargazerCount') or 0,
        forks=node.get('forkCount') or 0,
        pushed_at=node.get('pushedAt'),
        topics=[t for t in topics if t],
        is_archived=bool(node.get('isArchived')),
        avatar_url=(node.get('owner') or {}).get('avatarUrl'),
        license_key=(node.get('licenseInfo') or {}).get('key'),
        language=(node.get('primaryLanguage') or {}).get('name'),
    )


def _committed_date(node: dict) -> Optional[str]:
    target = (node.get('defaultBranchRef') or {}).get('target') or {}
    edges = (target.get('history') or {}).get('edges') or []
    if not edges:
        return None
    return (edges[0].get('node') or {}).get('committedDate')


def repo_key(owner: str, repo: str) -> str:
    return f"{owner}/{repo}".lower()


@dataclass
class FilterOutcome:
    kept: List[DiscoveredItem] = field(default_factory=list)
    skipped: Dict[str, int] = field(default_factory=dict)

    @property
    def filtered(self) -> int:
        """Items dropped by a filter rule; missing repositories are errors, not filters."""
        return sum(v for k, v in self.skipped.items() if k != 'not_found')


def apply_metadata_filters(items: Iterable[DiscoveredItem],
                           metadata: Dict[str, RepoMetadata],
                           min_stars: int = 0,
                           skip_archived: bool = True,
                           pushed_since: Optional[datetime] = None,
                           tracker: Optional[ErrorTracker] = None) -> FilterOutcome:
    """Drop items whose repository is missing, unpopular, archived or stale."""
    outcome = FilterOutcome()

    def skip(reason: str):
        outcome.skipped[reason] = outcome.skipped.get(reason, 0) + 1

    for item in items:
        meta = metadata.get(repo_key(item.owner, item.repo))
        if meta is None:
            if tracker is not None:
                identity = to_skill_identity(item.owner, item.repo, item.path)
                tracker.add(identity.canonical_id, ErrorKind.NOT_FOUND, "Repo not found")
            skip('not_found')
            continue
        if meta.stars < min_stars:
            skip('low_stars')
            continue
        if skip_archived and meta.is_archived:
            skip('archived')
            continue
        if pushed_since is not None:
            pushed = parse_timestamp(meta.pushed_at)
            if pushed is not None and pushed < pushed_since:
                skip('stale')
                continue
        outcome.kept.append(item)
    return outcome


class BatchFetcher:
    """Batched repository metadata and SKILL.md content via GraphQL"""

    def __init__(self, client: GitHubClient,
                 chunk_size: int = GRAPHQL_CHUNK_SIZE,
                 concurrency: int = FETCH_CONCURRENCY,
                 chunk_delay: float = CHUNK_DELAY,
                 sleep: Callable[[float], None] = time.sleep,
                 raw_fetcher: Callable[[List[SkillFullData]], Dict[str, Optional[str]]] = fetch_raw_files):
        self.client = client
        self.chunk_size = chunk_size
        self.concurrency = concurrency
        self.chunk_delay = chunk_delay
        self.sleep = sleep
        self.raw_fetcher = raw_fetcher
        self.failed_chunks = 0

    def _run_chunk(self, query: str, variables: dict, label: str) -> Optional[dict]:
        try:
            return self.client.graphql(query, variables)
        except GitHubAPIError as e:
            logger.error(f"GraphQL {label} chunk failed, skipping: {e}")
            self.failed_chunks += 1
            return None

    def _run_waves(self, jobs: List[Tuple[str, dict]], label: str) -> List[Optional[dict]]:
        """Run chunk queries ``concurrency`` at a time with a pause between waves."""
        results: List[Optional[dict]] = []
        for start in range(0, len(jobs), self.concurrency):
            if start:
                self.sleep(self.chunk_delay)
            wave = jobs[start:start + self.concurrency]
            with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
                futures = [executor.submit(self._run_chunk, q, v, label) for q, v in wave]
                results.extend(f.result() for f in futures)
            logger.info(
                f"GraphQL {label}: {min(start + len(wave), len(jobs))}/{len(jobs)} chunks"
            )
        return results

    def fetch_repo_metadata(self, repos: Iterable[Tuple[str, str]]) -> Dict[str, RepoMetadata]:
        """Metadata keyed by lowercase ``owner/repo``."""
        unique: Dict[str, Tuple[str, str]] = {}
        for owner, repo in repos:
            unique.setdefault(repo_key(owner, repo), (owner, repo))
        pairs = list(unique.values())

        chunks = chunked(pairs, self.chunk_size)
        jobs = []
        for chunk in chunks:
            variables = {}
            for i, (owner, repo) in enumerate(chunk):
                variables[f'owner{i}'] = owner
                variables[f'repo{i}'] = repo
            jobs.append((build_metadata_query(len(chunk)), variables))

        metadata: Dict[str, RepoMetadata] = {}
        for chunk, data in zip(chunks, self._run_waves(jobs, 'metadata')):
            if data is None:
                continue
            for i, (owner, repo) in enumerate(chunk):
                node = data.get(f'repo{i}')
                if node:
                    metadata[repo_key(owner, repo)] = parse_repo_metadata(node)

        logger.info(f"Fetched metadata for {len(metadata)}/{len(pairs)} repositories")
        return metadata

    def fetch_skills(self, items: Sequence[DiscoveredItem]) -> Dict[str, SkillFullData]:
        """Content, blob SHA, last commit date and metadata keyed by canonical id.

        Items whose repository is missing from the response are absent from
        the result. A missing blob yields ``content=None``.
        """
        identities = [to_skill_identity(i.owner, i.repo, i.path) for i in items]
        chunks = chunked(identities, self.chunk_size)
        jobs = []
        for chunk in chunks:
            variables = {}
            for i, identity in enumerate(chunk):
                variables[f'owner{i}'] = identity.owner
                variables[f'repo{i}'] = identity.repo
                variables[f'path{i}'] = identity.path
                variables[f'expression{i}'] = f"HEAD:{identity.path}"
            jobs.append((build_content_query(len(chunk)), variables))

        results: Dict[str, SkillFullData] = {}
        for chunk, data in zip(chunks, self._run_waves(jobs, 'content')):
            if data is None:
                continue
            for i, identity in enumerate(chunk):
                node = data.get(f'item{i}')
                if not node:
                    continue
                blob = node.get('object') or {}
                results[identity.canonical_id] = SkillFullData(
                    owner=identity.owner,
                    repo=identity.repo,
                    path=identity.path,
                    content=blob.get('text'),
                    blob_sha=blob.get('oid'),
                    committed_at=_committed_date(node),
                    metadata=parse_repo_metadata(node),
                    is_truncated=bool(blob.get('isTruncated')),
                )

        self._fill_from_raw(results)
        logger.info(f"Fetched content for {len(results)}/{len(identities)} skills")
        return results

    def _fill_from_raw(self, results: Dict[str, SkillFullData]):
        """Blobs GraphQL truncated or returned without text come from raw.githubusercontent.com."""
        missing = [
            d for d in results.values()
            if d.blob_sha and (d.is_truncated or d.content is None)
        ]
        if not missing:
            return
        logger.info(f"Fetching {len(missing)} truncated blobs from raw content")
        raw = self.raw_fetcher(missing)
        for canonical_id, data in results.items():
            text = raw.get(canonical_id)
            if text is not None:
                data.content = text
                data.is_truncated = False
