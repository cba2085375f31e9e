#!/usr/bin/env python3
"""
Skill sync entry point

Discovers SKILL.md files on GitHub, indexes them into a JSON store and
prints a summary per error kind.

Usage:
    # Full sync
    python scripts/sync_skills.py --output skills.json

    # One repository
    python scripts/sync_skills.py --repo anthropics/skills

    # Classify records whose AI categorization was deferred
    python scripts/sync_skills.py --categorize-only

Environment:
    GITHUB_TOKEN   - required, GitHub token (GraphQL needs one)
    GEMINI_API_KEY - optional, enables the AI category fallback
"""

import argparse
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from skill_indexer.config import (
    MAX_DISCOVERY_RESULTS, MIN_STARS, MIN_RECENT_DAYS, OUTPUT_FILE, FAILURE_REPORT_FILE,
)
from skill_indexer.errors import ErrorKind, ErrorTracker, MissingCredentialsError
from skill_indexer.github_client import GitHubClient
from skill_indexer.store import JsonFileSkillStore
from skill_indexer.sync import SkillSync, SyncOptions, since_days_ago

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def print_summary(result):
    print("\nSync Summary:")
    print(f"  Discovered: {result.discovered}")
    print(f"  Filtered: {result.filtered}")
    print(f"  Indexed: {result.indexed}")
    print(f"  Unchanged: {result.skipped_unchanged}")
    print(f"  Written: {result.upserted}")
    print(f"  Deferred (AI rate limit): {result.deferred}")
    print(f"  Errors: {result.errors}")
    if result.cancelled:
        print("  Run was cancelled, nothing written")
    for kind, count in sorted(result.error_counts.items(), key=lambda x: -x[1]):
        print(f"    {kind}: {count}")


def main():
    parser = argparse.ArgumentParser(description='Sync SKILL.md files from GitHub')
    parser.add_argument('--token', help='GitHub API token (or set GITHUB_TOKEN env var)')
    parser.add_argument('--output', default=OUTPUT_FILE, help='JSON store path')
    parser.add_argument('--max', type=int, default=MAX_DISCOVERY_RESULTS,
                        help='Maximum skills to discover')
    parser.add_argument('--min-stars', type=int, default=MIN_STARS, help='Minimum stars filter')
    parser.add_argument('--include-archived', action='store_true',
                        help='Keep skills from archived repositories')
    parser.add_argument('--since-days', type=int, default=MIN_RECENT_DAYS,
                        help='Only repositories pushed within this many days (0 for no cutoff)')
    parser.add_argument('--skip-existing', action='store_true',
                        help='Do not refetch skills already in the store')
    parser.add_argument('--no-ai', action='store_true', help='Keyword categorization only')
    parser.add_argument('--repo', help='Sync a single owner/repo instead of a full run')
    parser.add_argument('--categorize-only', action='store_true',
                        help='Only categorize stored skills that have no categories')
    parser.add_argument('--failures', default=FAILURE_REPORT_FILE,
                        help='Where to write the per-record failure report')

    args = parser.parse_args()

    options = SyncOptions(
        max_results=args.max,
        min_stars=args.min_stars,
        skip_archived=not args.include_archived,
        since=since_days_ago(args.since_days),
        skip_existing=args.skip_existing,
        use_ai=not args.no_ai,
    )

    client = GitHubClient(token=args.token)
    store = JsonFileSkillStore(args.output)
    sync = SkillSync(client, store, options=options)

    if args.categorize_only:
        count = sync.categorize_uncategorized(limit=args.max)
        store.save()
        print(f"Categorized {count} skills")
        return

    try:
        if args.repo:
            if '/' not in args.repo:
                parser.error('--repo must be owner/repo')
            owner, repo = args.repo.split('/', 1)
            result = sync.sync_repo(owner, repo, options)
        else:
            result = sync.run(options)
    except MissingCredentialsError as e:
        print(f"Error: {e}")
        print("Set GITHUB_TOKEN environment variable or use --token flag")
        sys.exit(1)

    if not result.cancelled:
        store.save()

    if result.error_list:
        tracker = ErrorTracker()
        for error in result.error_list:
            tracker.add(error['skill_id'], ErrorKind(error['kind']), error['message'])
        tracker.save(args.failures)

    print_summary(result)


if __name__ == '__main__':
    main()
