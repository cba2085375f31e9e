"""
Raw SKILL.md retrieval from raw.githubusercontent.com

Used for blobs the GraphQL API reports as truncated or binary.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import aiohttp

from .config import (
    GITHUB_RAW_BASE,
    GITHUB_TOKEN,
    RAW_MAX_CONCURRENT,
    RAW_TIMEOUT,
    RAW_RETRY_ATTEMPTS,
    USER_AGENT,
)
from .errors import TransientGitHubError
from .models import SkillFullData
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


def raw_url(owner: str, repo: str, path: str, ref: str = 'HEAD') -> str:
    return f"{GITHUB_RAW_BASE}/{owner}/{repo}/{ref}/{path}"


async def fetch_url(session: aiohttp.ClientSession, url: str,
                    semaphore: asyncio.Semaphore,
                    retry_policy: RetryPolicy) -> Optional[str]:
    """Fetch one URL; None on 404 or after retries run out."""

    async def attempt() -> Optional[str]:
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=RAW_TIMEOUT)) as resp:
                if resp.status == 200:
                    return await resp.text()
                if resp.status == 429 or resp.status >= 500:
                    raise TransientGitHubError(f"{resp.status} for {url}", resp.status)
                logger.debug(f"Raw fetch {url} returned {resp.status}")
                return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientGitHubError(f"Raw fetch failed for {url}: {e}") from e

    async with semaphore:
        try:
            return await retry_policy.acall(
                attempt, is_retryable=lambda e: isinstance(e, TransientGitHubError)
            )
        except TransientGitHubError as e:
            logger.warning(str(e))
            return None


async def fetch_raw_files_async(items: Sequence[SkillFullData], ref: str = 'HEAD',
                                concurrency: int = RAW_MAX_CONCURRENT,
                                session: Optional[aiohttp.ClientSession] = None,
                                retry_policy: Optional[RetryPolicy] = None
                                ) -> Dict[str, Optional[str]]:
    retry_policy = retry_policy or RetryPolicy(RAW_RETRY_ATTEMPTS, 1.0, 8.0)
    semaphore = asyncio.Semaphore(concurrency)
    keys = [f"{d.owner}/{d.repo}/{d.path}" for d in items]
    urls = [raw_url(d.owner, d.repo, d.path, ref) for d in items]

    async def run(client: aiohttp.ClientSession) -> List[Optional[str]]:
        tasks = [fetch_url(client, url, semaphore, retry_policy) for url in urls]
        return await asyncio.gather(*tasks)

    if session is not None:
        texts = await run(session)
    else:
        headers = {'User-Agent': USER_AGENT}
        if GITHUB_TOKEN:
            headers['Authorization'] = f'token {GITHUB_TOKEN}'
        connector = aiohttp.TCPConnector(limit=concurrency)
        async with aiohttp.ClientSession(connector=connector, headers=headers) as client:
            texts = await run(client)

    return dict(zip(keys, texts))


def fetch_raw_files(items: Sequence[SkillFullData], ref: str = 'HEAD',
                    concurrency: int = RAW_MAX_CONCURRENT) -> Dict[str, Optional[str]]:
    """Blocking wrapper, keyed by canonical id."""
    if not items:
        return {}
    return asyncio.run(fetch_raw_files_async(items, ref=ref, concurrency=concurrency))
