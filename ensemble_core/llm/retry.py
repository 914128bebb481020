"""
Bounded exponential-backoff retry for a single async operation.

The policy knows nothing about providers; the router composes one execution of
it around each provider it tries, so every provider gets its own full budget.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ensemble_core.llm.interfaces.llm_provider_interface import LLMError, ProviderError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryPolicy:
    """
    Retry an async operation with delays of ``base_delay_ms * 2**attempt + jitter``.

    Jitter is drawn uniformly from ``[0, jitter_ms)``. With the defaults a failing
    operation is tried three times, sleeping roughly 1s and then 2s in between.
    Nothing is slept after the final attempt; its error propagates unchanged.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: float = 1000,
        max_delay_ms: Optional[float] = None,
        jitter_ms: float = 100,
        retry_fatal_errors: bool = False,
        should_retry: Optional[Callable[[BaseException], bool]] = None,
        on_retry: Optional[Callable[[BaseException, int, float], Any]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if base_delay_ms < 0 or jitter_ms < 0:
            raise ValueError("Retry delays cannot be negative")

        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.jitter_ms = jitter_ms
        self.retry_fatal_errors = retry_fatal_errors
        self.should_retry = should_retry
        self.on_retry = on_retry
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, retry_config, **kwargs) -> "RetryPolicy":
        """Build a policy from the ``llm.retry`` configuration section."""
        return cls(
            max_attempts=retry_config.max_attempts,
            base_delay_ms=retry_config.base_delay_ms,
            max_delay_ms=retry_config.max_delay_ms,
            jitter_ms=retry_config.jitter_ms,
            retry_fatal_errors=retry_config.retry_fatal_errors,
            **kwargs,
        )

    def compute_delay_ms(self, attempt: int, base_delay_ms: Optional[float] = None) -> float:
        """
        Delay before the retry that follows the zero-based ``attempt``.

        Args:
            attempt: Index of the attempt that just failed
            base_delay_ms: Override for the configured base delay

        Returns:
            Delay in milliseconds
        """
        base = self.base_delay_ms if base_delay_ms is None else base_delay_ms
        delay = base * (2 ** attempt)
        if self.jitter_ms:
            delay += self._rng.uniform(0, self.jitter_ms)
        if self.max_delay_ms is not None:
            delay = min(delay, self.max_delay_ms)
        return delay

    def is_retryable(self, error: BaseException) -> bool:
        """Decide whether ``error`` is worth another attempt."""
        if self.should_retry is not None:
            return bool(self.should_retry(error))
        if isinstance(error, ProviderError):
            return error.transient or self.retry_fatal_errors
        # Validation and other LLM-layer errors will fail the same way again
        if isinstance(error, LLMError):
            return False
        return True

    async def execute(
        self,
        op: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[float] = None,
    ) -> T:
        """
        Run ``op`` until it succeeds or the attempt budget is spent.

        Args:
            op: Zero-argument coroutine factory; called once per attempt
            max_attempts: Override for the configured attempt budget
            base_delay_ms: Override for the configured base delay

        Returns:
            The value returned by the first successful attempt

        Raises:
            The last error raised by ``op``
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {attempts}")

        for attempt in range(attempts):
            try:
                return await op()
            except Exception as e:
                is_last = attempt == attempts - 1
                if is_last or not self.is_retryable(e):
                    if not is_last:
                        logger.info(f"Not retrying non-retryable error: {e}")
                    raise

                delay_ms = self.compute_delay_ms(attempt, base_delay_ms)
                logger.info(
                    f"Attempt {attempt + 1}/{attempts} failed ({e}); retrying in {delay_ms:.0f}ms"
                )
                if self.on_retry is not None:
                    self.on_retry(e, attempt + 1, delay_ms)
                await self._sleep(delay_ms / 1000.0)

        # Unreachable: the final attempt either returns or raises
        raise RuntimeError("RetryPolicy.execute exhausted without result")
