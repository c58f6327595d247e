"""
Caller-side polling of certificate requests.

FinishRequest reports a pending request with an empty certificate and leaves
waiting to the caller. RequestPoller is such a caller: it repeats the poll
with exponentially increasing waits until a certificate arrives or the
attempts run out. Errors raised by a poll are not retried; they end the wait
and are returned in the result.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .config import PollConfig
from .models import CertificateBundle

FinishCall = Callable[[], Awaitable[CertificateBundle]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class PollResult:
    """Result of waiting for a certificate request."""

    success: bool
    bundle: Optional[CertificateBundle]
    attempts: int
    last_error: Optional[Exception] = None


class RequestPoller:
    """Polls a finish call with exponential backoff."""

    def __init__(self, config: PollConfig, sleep: Sleep = asyncio.sleep) -> None:
        """
        Initialize the poller.

        Args:
            config: Attempt count and backoff delays
            sleep: Awaitable sleep, replaceable in tests
        """
        if config.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {config.max_attempts}")
        self._config = config
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """
        Wait before poll number ``attempt + 1`` (0-indexed attempt).

        delay(n) = base_delay * 2^n, capped at max_delay.
        """
        delay = self._config.base_delay_seconds * (2 ** attempt)
        return min(delay, self._config.max_delay_seconds)

    async def wait_for_certificate(self, finish: FinishCall) -> PollResult:
        """
        Poll until a certificate is issued.

        Args:
            finish: Performs one FinishRequest call

        Returns:
            PollResult; ``success`` is False when attempts ran out or a
            poll raised
        """
        attempts = 0
        bundle: Optional[CertificateBundle] = None

        while attempts < self._config.max_attempts:
            try:
                bundle = await finish()
            except Exception as e:
                return PollResult(success=False, bundle=None, attempts=attempts + 1, last_error=e)
            attempts += 1

            if bundle.is_complete:
                return PollResult(success=True, bundle=bundle, attempts=attempts)

            if attempts < self._config.max_attempts:
                await self._sleep(self.calculate_delay(attempts - 1))

        return PollResult(success=False, bundle=bundle, attempts=attempts)
