"""Bounded retry with exponential backoff for device calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from backend.config import SETTINGS

logger = logging.getLogger(__name__)


class RetryingCommandExecutor:
    """Run an async call up to ``attempts`` times.

    The delay before retry ``n`` (0-based) is ``base_delay * 2**n``, so the
    defaults wait 1s then 2s. The last error is re-raised unchanged.
    """

    def __init__(
        self,
        *,
        attempts: int | None = None,
        base_delay: float | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._attempts = attempts if attempts is not None else SETTINGS.retry_attempts
        self._base_delay = base_delay if base_delay is not None else SETTINGS.retry_base_delay_seconds
        if self._attempts < 1:
            raise ValueError("attempts must be at least 1")
        self._sleep = sleep

    @property
    def attempts(self) -> int:
        return self._attempts

    async def run[T](
        self,
        call: Callable[..., Awaitable[T]],
        *args: object,
        description: str = "",
    ) -> T:
        label = description or getattr(call, "__name__", "call")
        for attempt in range(self._attempts):
            try:
                return await call(*args)
            except Exception as exc:
                if attempt == self._attempts - 1:
                    logger.error("%s failed after %d attempts: %s", label, self._attempts, exc)
                    raise
                delay = self._base_delay * 2**attempt
                logger.warning(
                    "%s attempt %d failed (%s), retrying in %ss", label, attempt + 1, exc, delay
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryingCommandExecutor"]
