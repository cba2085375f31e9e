"""Test doubles for the GitHub API, HTTP sessions and LiteLLM. No test touches the network."""

import json
from types import SimpleNamespace

from requests.structures import CaseInsensitiveDict

from skill_indexer.canonical import to_skill_identity
from skill_indexer.errors import GitHubAPIError


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, headers=None):
        self.status_code = status_code
        self._json = json_data if json_data is not None else {}
        self.headers = CaseInsensitiveDict(headers or {})

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return json.dumps(self._json)

    def json(self):
        return self._json


class FakeSession:
    """requests.Session stand-in replaying a list of responses (or exceptions)."""

    def __init__(self, responses=()):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"Unexpected request {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def repo_node(stars=50, archived=False, pushed_at="2026-09-01T00:00:00Z",
              topics=(), forks=1, language="Python"):
    return {
        'stargazerCount': stars,
        'forkCount': forks,
        'pushedAt': pushed_at,
        'isArchived': archived,
        'primaryLanguage': {'name': language},
        'licenseInfo': {'key': 'mit'},
        'owner': {'avatarUrl': 'https://avatars.example/u'},
        'repositoryTopics': {'nodes': [{'topic': {'name': t}} for t in topics]},
    }


def skill_markdown(name, description, extra=""):
    return f"---\nname: {name}\ndescription: {description}\n{extra}---\n\n# {name}\n"


class FakeGitHubClient:
    """Answers the calls discovery, the batch fetcher and the sync make.

    ``repos`` maps lowercase ``owner/repo`` to a GraphQL repository node;
    ``files`` maps canonical id to ``(text, oid)``.
    """

    def __init__(self, repos=None, files=None, token="test-token"):
        self.token = token
        self.repos = dict(repos or {})
        self.files = dict(files or {})
        self.search_pages = {}
        self.trees = {}
        self.topic_repos = {}
        self.contents = {}
        self.graphql_calls = []
        self.search_calls = []
        self.failing_owners = set()

    # REST
    def search_code(self, query, page=1, per_page=100):
        self.search_calls.append((query, page))
        pages = self.search_pages.get(query, [])
        if page > len(pages):
            return {'total_count': 0, 'items': []}
        items = pages[page - 1]
        total = sum(len(p) for p in pages)
        return {'total_count': total, 'items': items}

    def search_repositories(self, query, per_page=100, sort='stars'):
        topic = query.split(' ', 1)[0]
        return self.topic_repos.get(topic, [])

    def get_tree(self, owner, repo, ref='HEAD'):
        return self.trees.get(f"{owner}/{repo}".lower(), [])

    def get_contents(self, owner, repo, path):
        return self.contents.get(f"{owner}/{repo}/{path}".lower())

    def check_rate_limit(self):
        return {}

    # GraphQL
    def graphql(self, query, variables=None):
        variables = variables or {}
        self.graphql_calls.append((query, variables))
        owners = {v for k, v in variables.items() if k.startswith('owner')}
        if owners & self.failing_owners:
            raise GitHubAPIError("GraphQL returned 502", 502)

        content_phase = 'SkillContent' in query
        alias = 'item' if content_phase else 'repo'
        data = {}
        i = 0
        while f'owner{i}' in variables:
            owner, repo = variables[f'owner{i}'], variables[f'repo{i}']
            node = self.repos.get(f"{owner}/{repo}".lower())
            if node is None:
                data[f'{alias}{i}'] = None
            elif not content_phase:
                data[f'{alias}{i}'] = dict(node)
            else:
                path = variables[f'path{i}']
                canonical_id = to_skill_identity(owner, repo, path).canonical_id
                blob = self.files.get(canonical_id)
                entry = dict(node)
                entry['defaultBranchRef'] = {'target': {'history': {'edges': [
                    {'node': {'committedDate': '2026-09-02T00:00:00Z'}}
                ]}}}
                entry['object'] = None if blob is None else {
                    'text': blob[0], 'oid': blob[1],
                    'isTruncated': False, 'byteSize': len(blob[0] or ''),
                }
                data[f'{alias}{i}'] = entry
            i += 1
        return data


def completion_returning(*payloads):
    """LiteLLM ``completion`` stand-in; each payload is a dict, a raw string or an exception."""
    queue = list(payloads)
    calls = []

    def completion(**kwargs):
        calls.append(kwargs)
        payload = queue.pop(0)
        if isinstance(payload, Exception):
            raise payload
        content = payload if isinstance(payload, str) else json.dumps(payload)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    completion.calls = calls
    return completion


def no_sleep(seconds):
    pass

