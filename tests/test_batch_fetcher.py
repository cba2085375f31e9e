"""Tests for the two-phase GraphQL batch fetcher."""

from datetime import datetime, timedelta, timezone

from skill_indexer.batch_fetcher import (
    BatchFetcher,
    apply_metadata_filters,
    build_content_query,
    build_metadata_query,
    chunked,
    parse_repo_metadata,
    parse_timestamp,
)
from skill_indexer.errors import ErrorKind, ErrorTracker
from skill_indexer.models import DiscoveredItem, RepoMetadata
from tests.fakes import FakeGitHubClient, no_sleep, repo_node


def fetcher(client, raw=None, chunk_size=2):
    return BatchFetcher(client, chunk_size=chunk_size, concurrency=2, chunk_delay=0,
                        sleep=no_sleep, raw_fetcher=raw or (lambda items: {}))


class TestQueries:
    def test_metadata_query_aliases(self):
        query = build_metadata_query(2)
        assert "repo0: repository(owner: $owner0, name: $repo0)" in query
        assert "repo1: repository(owner: $owner1, name: $repo1)" in query
        assert "stargazerCount" in query

    def test_content_query_aliases(self):
        query = build_content_query(1)
        assert "item0: repository(owner: $owner0, name: $repo0)" in query
        assert "object(expression: $expression0)" in query
        assert "history(first: 1, path: $path0)" in query

    def test_chunked(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_parse_timestamp(self):
        assert parse_timestamp("2026-01-02T03:04:05Z") == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert parse_timestamp("garbage") is None
        assert parse_timestamp(None) is None

    def test_parse_repo_metadata(self):
        meta = parse_repo_metadata(repo_node(stars=7, topics=["claude-skill"]))
        assert meta.stars == 7
        assert meta.topics == ["claude-skill"]
        assert meta.license_key == "mit"
        assert meta.language == "Python"


class TestMetadataFilters:
    items = [
        DiscoveredItem("acme", "popular", "SKILL.md"),
        DiscoveredItem("acme", "tiny", "SKILL.md"),
        DiscoveredItem("acme", "archived", "SKILL.md"),
        DiscoveredItem("acme", "stale", "SKILL.md"),
        DiscoveredItem("acme", "gone", "SKILL.md"),
    ]
    now = datetime(2026, 10, 1, tzinfo=timezone.utc)
    metadata = {
        "acme/popular": RepoMetadata(stars=100, pushed_at="2026-09-30T00:00:00Z"),
        "acme/tiny": RepoMetadata(stars=1, pushed_at="2026-09-30T00:00:00Z"),
        "acme/archived": RepoMetadata(stars=100, is_archived=True, pushed_at="2026-09-30T00:00:00Z"),
        "acme/stale": RepoMetadata(stars=100, pushed_at="2025-01-01T00:00:00Z"),
    }

    def test_filters(self):
        tracker = ErrorTracker()
        outcome = apply_metadata_filters(
            self.items, self.metadata, min_stars=10, skip_archived=True,
            pushed_since=self.now - timedelta(days=30), tracker=tracker,
        )
        assert [i.repo for i in outcome.kept] == ["popular"]
        assert outcome.skipped == {"low_stars": 1, "archived": 1, "stale": 1, "not_found": 1}
        assert outcome.filtered == 3
        assert tracker.by_kind(ErrorKind.NOT_FOUND)[0].skill_id == "acme/gone/SKILL.md"

    def test_permissive(self):
        outcome = apply_metadata_filters(self.items, self.metadata, min_stars=0, skip_archived=False)
        assert len(outcome.kept) == 4


class TestBatchFetcher:
    def test_metadata_chunks_and_case_insensitive_keys(self):
        client = FakeGitHubClient(repos={
            "acme/one": repo_node(stars=1),
            "acme/two": repo_node(stars=2),
            "acme/three": repo_node(stars=3),
        })
        metadata = fetcher(client).fetch_repo_metadata([
            ("Acme", "One"), ("acme", "one"), ("acme", "two"), ("acme", "three"), ("acme", "missing"),
        ])
        assert {k: m.stars for k, m in metadata.items()} == {
            "acme/one": 1, "acme/two": 2, "acme/three": 3,
        }
        # 4 unique repositories in chunks of 2
        assert len(client.graphql_calls) == 2

    def test_fetch_skills(self):
        client = FakeGitHubClient(
            repos={"acme/tools": repo_node(stars=42)},
            files={"acme/tools/skills/a/SKILL.md": ("---\nname: a\n---", "sha-a")},
        )
        items = [
            DiscoveredItem("Acme", "Tools", "skills/a/SKILL.md"),
            DiscoveredItem("acme", "tools", "skills/missing/SKILL.md"),
            DiscoveredItem("acme", "gone", "SKILL.md"),
        ]
        results = fetcher(client).fetch_skills(items)

        found = results["acme/tools/skills/a/SKILL.md"]
        assert found.content.startswith("---")
        assert found.blob_sha == "sha-a"
        assert found.committed_at == "2026-09-02T00:00:00Z"
        assert found.metadata.stars == 42
        assert results["acme/tools/skills/missing/SKILL.md"].blob_sha is None
        assert "acme/gone/SKILL.md" not in results

        _, variables = client.graphql_calls[0]
        assert variables["expression0"] == "HEAD:skills/a/SKILL.md"

    def test_failed_chunk_skipped(self):
        client = FakeGitHubClient(repos={"good/repo": repo_node(), "bad/repo": repo_node()})
        client.failing_owners.add("bad")
        metadata = fetcher(client, chunk_size=1).fetch_repo_metadata([("good", "repo"), ("bad", "repo")])
        assert list(metadata) == ["good/repo"]

    def test_truncated_blobs_filled_from_raw(self):
        client = FakeGitHubClient(
            repos={"acme/tools": repo_node()},
            files={"acme/tools/SKILL.md": (None, "sha-1")},
        )
        requested = []

        def raw(items):
            requested.extend(f"{d.owner}/{d.repo}/{d.path}" for d in items)
            return {"acme/tools/SKILL.md": "full text"}

        results = fetcher(client, raw=raw).fetch_skills([DiscoveredItem("acme", "tools", "SKILL.md")])
        assert requested == ["acme/tools/SKILL.md"]
        assert results["acme/tools/SKILL.md"].content == "full text"
        assert results["acme/tools/SKILL.md"].is_truncated is False
