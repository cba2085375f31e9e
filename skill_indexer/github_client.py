"""
GitHub REST and GraphQL client

All GitHub traffic goes through here so that rate-limit waits and transient
retries are handled in one place. Search, core REST and GraphQL are
separate rate-limit buckets on GitHub's side; callers pace themselves
per bucket.
"""

import os
import time
import logging
from typing import Callable, Dict, List, Optional

import requests

from .config import (
    GITHUB_API_BASE,
    GITHUB_GRAPHQL_URL,
    USER_AGENT,
    REQUEST_TIMEOUT,
    SEARCH_PER_PAGE,
    RATE_LIMIT_MARGIN,
    MAX_RATE_LIMIT_WAIT,
    HTTP_MAX_RETRIES,
    HTTP_RETRY_BASE_DELAY,
    HTTP_RETRY_MAX_DELAY,
)
from .errors import (
    GitHubAPIError,
    GitHubRateLimitError,
    MissingCredentialsError,
    TransientGitHubError,
)
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_WAITS = 3
EMPTY_SEARCH = {'total_count': 0, 'items': []}


def is_transient(error: BaseException) -> bool:
    return isinstance(error, TransientGitHubError)


class GitHubClient:
    """Thin GitHub API wrapper with rate-limit handling"""

    def __init__(self, token: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.time,
                 retry_policy: Optional[RetryPolicy] = None):
        self.token = token if token is not None else os.environ.get('GITHUB_TOKEN', '')
        self.session = session or requests.Session()
        self.sleep = sleep
        self.clock = clock
        self.retry_policy = retry_policy or RetryPolicy(
            HTTP_MAX_RETRIES + 1, HTTP_RETRY_BASE_DELAY, HTTP_RETRY_MAX_DELAY
        )

        self.session.headers['Accept'] = 'application/vnd.github+json'
        self.session.headers['User-Agent'] = USER_AGENT
        if self.token:
            self.session.headers['Authorization'] = f'token {self.token}'
            logger.info("Using authenticated GitHub API")
        else:
            logger.warning("No GitHub token provided, rate limits will be strict")

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise TransientGitHubError(f"Request failed: {e}") from e
        if response.status_code >= 500:
            raise TransientGitHubError(
                f"GitHub returned {response.status_code} for {url}", response.status_code
            )
        return response

    def rate_limit_wait(self, response: requests.Response) -> Optional[float]:
        """Seconds to wait before retrying a 403/429, or None if it is not a rate limit."""
        headers = response.headers
        retry_after = headers.get('Retry-After')
        if retry_after:
            try:
                return min(max(float(retry_after), 0.0) + RATE_LIMIT_MARGIN, MAX_RATE_LIMIT_WAIT)
            except ValueError:
                pass

        if headers.get('X-RateLimit-Remaining') not in (None, '0'):
            return None
        reset = headers.get('X-RateLimit-Reset')
        if not reset:
            return None
        try:
            wait = float(reset) - self.clock() + RATE_LIMIT_MARGIN
        except ValueError:
            return None
        return min(max(wait, 0.0), MAX_RATE_LIMIT_WAIT)

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send with transient retries and rate-limit waits.

        Returns the final response for any status below 500 other than a
        waited-out rate limit; callers decide what 404/422 mean.
        """
        for waits in range(MAX_RATE_LIMIT_WAITS + 1):
            response = self.retry_policy.call(
                lambda: self._send(method, url, **kwargs),
                is_retryable=is_transient,
                on_retry=lambda attempt, e: logger.warning(
                    f"{e} (attempt {attempt}/{self.retry_policy.max_attempts})"
                ),
                sleep=self.sleep,
            )
            if response.status_code not in (403, 429):
                return response

            wait = self.rate_limit_wait(response)
            if wait is None:
                if response.status_code == 429 or response.headers.get('X-RateLimit-Remaining') == '0':
                    raise GitHubRateLimitError(
                        "Rate limited, no reset time available", response.status_code
                    )
                return response
            if waits == MAX_RATE_LIMIT_WAITS:
                break
            logger.warning(f"Rate limited, waiting {wait:.0f}s")
            self.sleep(wait)

        raise GitHubRateLimitError(f"Still rate limited after {MAX_RATE_LIMIT_WAITS} waits", 403)

    def get_json(self, path: str, params: Optional[dict] = None,
                 allow_missing: bool = False) -> Optional[dict]:
        url = path if path.startswith('http') else f"{GITHUB_API_BASE}{path}"
        response = self.request('GET', url, params=params)
        if allow_missing and response.status_code == 404:
            return None
        if not response.ok:
            raise GitHubAPIError(
                f"GitHub returned {response.status_code} for {path}", response.status_code
            )
        return response.json()

    def search_code(self, query: str, page: int = 1, per_page: int = SEARCH_PER_PAGE) -> dict:
        """One page of code search; 422 (unprocessable query) counts as no results."""
        response = self.request(
            'GET', f"{GITHUB_API_BASE}/search/code",
            params={'q': query, 'per_page': per_page, 'page': page},
        )
        if response.status_code == 422:
            logger.warning(f"Search query rejected (422): {query}")
            return dict(EMPTY_SEARCH)
        if not response.ok:
            raise GitHubAPIError(
                f"Code search returned {response.status_code}", response.status_code
            )
        return response.json()

    def search_repositories(self, query: str, per_page: int = SEARCH_PER_PAGE,
                            sort: str = 'stars') -> List[dict]:
        data = self.get_json('/search/repositories', params={
            'q': query, 'sort': sort, 'order': 'desc', 'per_page': per_page,
        })
        return data.get('items', []) if data else []

    def get_tree(self, owner: str, repo: str, ref: str = 'HEAD') -> List[dict]:
        """Recursive git tree listing; empty when the repository is missing."""
        data = self.get_json(
            f"/repos/{owner}/{repo}/git/trees/{ref}",
            params={'recursive': '1'},
            allow_missing=True,
        )
        if not data:
            return []
        if data.get('truncated'):
            logger.warning(f"Tree listing truncated for {owner}/{repo}")
        return data.get('tree', [])

    def get_contents(self, owner: str, repo: str, path: str) -> Optional[dict]:
        return self.get_json(f"/repos/{owner}/{repo}/contents/{path}", allow_missing=True)

    def check_rate_limit(self) -> Dict[str, dict]:
        data = self.get_json('/rate_limit') or {}
        resources = data.get('resources', {})
        for name in ('core', 'search', 'code_search', 'graphql'):
            bucket = resources.get(name)
            if bucket:
                logger.info(f"Rate limit {name}: {bucket.get('remaining')}/{bucket.get('limit')}")
        return resources

    def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """Run a GraphQL query; returns ``data`` (possibly partial)."""
        if not self.token:
            raise MissingCredentialsError("GITHUB_TOKEN is required for GraphQL batch fetching")

        response = self.request(
            'POST', GITHUB_GRAPHQL_URL, json={'query': query, 'variables': variables or {}}
        )
        if not response.ok:
            raise GitHubAPIError(f"GraphQL returned {response.status_code}", response.status_code)

        body = response.json()
        errors = body.get('errors') or []
        if errors:
            messages = '; '.join(e.get('message', '') for e in errors[:3])
            logger.warning(f"GraphQL reported {len(errors)} error(s): {messages}")
        return body.get('data') or {}
