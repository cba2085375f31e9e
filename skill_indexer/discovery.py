"""
Skill discovery

Enumerates candidate SKILL.md locations on GitHub. Code search caps every
query at 1000 results, so several overlapping query variants are run and
merged through one dedup set. Known aggregator repositories and topic
searches fill in when the primary search comes up short of the budget.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from .canonical import DeduplicationSet, is_valid_skill_path, to_skill_identity
from .config import (
    DISCOVERY_QUERIES,
    KNOWN_SKILL_REGISTRIES,
    SKILL_TOPICS,
    TOPIC_MIN_STARS,
    WELL_KNOWN_SKILL_PATHS,
    SEARCH_PER_PAGE,
    SEARCH_MAX_PAGES,
    SEARCH_QUERY_CAP,
    SEARCH_PAGE_DELAY,
    MAX_DISCOVERY_RESULTS,
    PRIMARY_DISCOVERY_CAP,
    DISCOVERY_CONCURRENCY,
    REGISTRY_DELAY,
    TOPIC_REPO_DELAY,
    TOPIC_DELAY,
)
from .errors import GitHubAPIError
from .github_client import GitHubClient
from .models import DiscoveredItem

logger = logging.getLogger(__name__)


def item_from_search_result(raw: dict) -> Optional[DiscoveredItem]:
    repository = raw.get('repository') or {}
    full_name = repository.get('full_name') or ''
    if '/' not in full_name or not raw.get('path'):
        return None
    owner, repo = full_name.split('/', 1)
    return DiscoveredItem(owner=owner, repo=repo, path=raw['path'], content_hash=raw.get('sha'))


class SkillDiscovery:
    """Find SKILL.md files across GitHub"""

    def __init__(self, client: GitHubClient,
                 sleep: Callable[[float], None] = time.sleep,
                 page_delay: float = SEARCH_PAGE_DELAY,
                 concurrency: int = DISCOVERY_CONCURRENCY,
                 queries: Optional[List[str]] = None):
        self.client = client
        self.sleep = sleep
        self.page_delay = page_delay
        self.concurrency = concurrency
        self.queries = queries or DISCOVERY_QUERIES
        self.duplicates = 0

    def search_query(self, query: str, budget: int = SEARCH_QUERY_CAP) -> List[DiscoveredItem]:
        """Page through one code search query until it runs dry or the budget is spent."""
        budget = min(budget, SEARCH_QUERY_CAP)
        items: List[DiscoveredItem] = []
        page = 1

        while page <= SEARCH_MAX_PAGES and len(items) < budget:
            if page > 1:
                self.sleep(self.page_delay)
            try:
                data = self.client.search_code(query, page=page, per_page=SEARCH_PER_PAGE)
            except GitHubAPIError as e:
                logger.warning(f"Stopping query '{query}' at page {page}: {e}")
                break

            if page == 1:
                total = data.get('total_count', 0)
                logger.info(f"Query '{query}': {total} results")
                if total == 0:
                    break

            page_items = data.get('items', [])
            for raw in page_items:
                item = item_from_search_result(raw)
                if item:
                    items.append(item)

            if len(page_items) < SEARCH_PER_PAGE:
                break
            page += 1

        return items[:budget]

    def _merge(self, items: List[DiscoveredItem], seen: DeduplicationSet,
               results: List[DiscoveredItem], limit: int) -> int:
        added = 0
        for item in items:
            if len(results) >= limit:
                break
            if not is_valid_skill_path(item.path):
                continue
            identity = to_skill_identity(item.owner, item.repo, item.path)
            if not seen.add(identity.owner, identity.repo, identity.path):
                self.duplicates += 1
                continue
            results.append(DiscoveredItem(
                identity.owner, identity.repo, identity.path, item.content_hash
            ))
            added += 1
        return added

    def discover_skill_files(self, max_results: int = PRIMARY_DISCOVERY_CAP,
                             seen: Optional[DeduplicationSet] = None,
                             results: Optional[List[DiscoveredItem]] = None
                             ) -> List[DiscoveredItem]:
        """Run all query variants, a few at a time, and merge in query order."""
        seen = seen if seen is not None else DeduplicationSet()
        results = results if results is not None else []

        for start in range(0, len(self.queries), self.concurrency):
            remaining = max_results - len(results)
            if remaining <= 0:
                break
            wave = self.queries[start:start + self.concurrency]
            with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
                futures = [executor.submit(self.search_query, q, remaining) for q in wave]
                wave_items = [f.result() for f in futures]
            for items in wave_items:
                self._merge(items, seen, results, max_results)

        logger.info(f"Code search found {len(results)} unique skills")
        return results

    def discover_from_registries(self, max_results: int, seen: DeduplicationSet,
                                 results: List[DiscoveredItem]) -> int:
        """Walk the git trees of known aggregator repositories."""
        added = 0
        for i, (owner, repo) in enumerate(KNOWN_SKILL_REGISTRIES):
            if len(results) >= max_results:
                break
            if i:
                self.sleep(REGISTRY_DELAY)
            try:
                tree = self.client.get_tree(owner, repo)
            except GitHubAPIError as e:
                logger.warning(f"Registry {owner}/{repo} failed: {e}")
                continue
            items = [
                DiscoveredItem(owner, repo, entry['path'], entry.get('sha'))
                for entry in tree
                if entry.get('type') == 'blob' and is_valid_skill_path(entry.get('path', ''))
            ]
            count = self._merge(items, seen, results, max_results)
            logger.info(f"Registry {owner}/{repo}: {len(items)} skills, {count} new")
            added += count
        return added

    def discover_from_topics(self, max_results: int, seen: DeduplicationSet,
                             results: List[DiscoveredItem]) -> int:
        """Search repositories by topic tag and probe well-known skill paths."""
        added = 0
        visited = set()
        for i, topic in enumerate(SKILL_TOPICS):
            if len(results) >= max_results:
                break
            if i:
                self.sleep(TOPIC_DELAY)
            try:
                repos = self.client.search_repositories(
                    f"{topic} in:topics stars:>{TOPIC_MIN_STARS}"
                )
            except GitHubAPIError as e:
                logger.warning(f"Topic search '{topic}' failed: {e}")
                continue

            for repo in repos:
                if len(results) >= max_results:
                    break
                full_name = (repo.get('full_name') or '').lower()
                if repo.get('fork') or repo.get('archived') or full_name in visited:
                    continue
                visited.add(full_name)
                if '/' not in full_name:
                    continue
                owner, name = full_name.split('/', 1)
                self.sleep(TOPIC_REPO_DELAY)
                added += self._probe_well_known_paths(owner, name, seen, results, max_results)
        return added

    def _probe_well_known_paths(self, owner: str, repo: str, seen: DeduplicationSet,
                                results: List[DiscoveredItem], max_results: int) -> int:
        for path in WELL_KNOWN_SKILL_PATHS:
            try:
                content = self.client.get_contents(owner, repo, path)
            except GitHubAPIError as e:
                logger.debug(f"Probe {owner}/{repo}/{path} failed: {e}")
                return 0
            if isinstance(content, dict) and content.get('type', 'file') == 'file':
                item = DiscoveredItem(owner, repo, path, content.get('sha'))
                return self._merge([item], seen, results, max_results)
        return 0

    def discover_all(self, max_results: int = MAX_DISCOVERY_RESULTS,
                     should_stop: Optional[Callable[[], bool]] = None
                     ) -> List[DiscoveredItem]:
        """Primary code search, then registries and topics while under budget."""
        seen = DeduplicationSet()
        results: List[DiscoveredItem] = []
        stop = should_stop or (lambda: False)

        self.discover_skill_files(min(max_results, PRIMARY_DISCOVERY_CAP), seen, results)

        if len(results) < max_results and not stop():
            added = self.discover_from_registries(max_results, seen, results)
            logger.info(f"Registries added {added} skills")

        if len(results) < max_results and not stop():
            added = self.discover_from_topics(max_results, seen, results)
            logger.info(f"Topics added {added} skills")

        logger.info(f"Discovered {len(results)} unique skills ({self.duplicates} duplicates)")
        return results[:max_results]

    def discover_repo(self, owner: str, repo: str) -> List[DiscoveredItem]:
        """Every SKILL.md in one repository."""
        tree = self.client.get_tree(owner, repo)
        items = [
            DiscoveredItem(owner, repo, entry['path'], entry.get('sha'))
            for entry in tree
            if entry.get('type') == 'blob' and is_valid_skill_path(entry.get('path', ''))
        ]
        results: List[DiscoveredItem] = []
        self._merge(items, DeduplicationSet(), results, len(items))
        return results
