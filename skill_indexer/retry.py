"""
Bounded retry with exponential backoff
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def retry_all(error: BaseException) -> bool:
    return True


@dataclass
class RetryPolicy:
    """Retry a callable up to ``max_attempts`` times.

    The delay before attempt ``n + 1`` is ``min(base_delay * 2 ** (n - 1), max_delay)``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def call(
        self,
        fn: Callable[[], Any],
        is_retryable: Callable[[BaseException], bool] = retry_all,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Any:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except Exception as e:
                if attempt >= self.max_attempts or not is_retryable(e):
                    raise
                delay = self.delay(attempt)
                if on_retry:
                    on_retry(attempt, e)
                else:
                    logger.debug(
                        f"Attempt {attempt}/{self.max_attempts} failed ({e}), "
                        f"retrying in {delay:.1f}s"
                    )
                sleep(delay)

    async def acall(
        self,
        fn: Callable[[], Awaitable[Any]],
        is_retryable: Callable[[BaseException], bool] = retry_all,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> Any:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except Exception as e:
                if attempt >= self.max_attempts or not is_retryable(e):
                    raise
                if on_retry:
                    on_retry(attempt, e)
                await sleep(self.delay(attempt))
