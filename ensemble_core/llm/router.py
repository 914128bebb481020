"""
Provider router with per-provider retry and deterministic failover.

This module provides the ProviderRouter class that owns the ordered set of
provider adapters, tries the requested primary first and then every other
registered provider in registration order, wrapping each one in a RetryPolicy.
"""

import asyncio
import dataclasses
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ensemble_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationRequest,
    GenerationResult,
    LLMError,
    ProviderError,
    LLMTimeoutError,
)
from ensemble_core.llm.retry import RetryPolicy

# Latency samples kept per provider for status reports
LATENCY_WINDOW = 100


class RouteState(Enum):
    """States a request passes through inside the router."""
    PENDING = "pending"
    PRIMARY_ATTEMPT = "primary_attempt"
    FAILOVER_ATTEMPT = "failover_attempt"
    SUCCESS = "success"
    ALL_EXHAUSTED = "all_exhausted"


@dataclass
class ProviderAttempt:
    """Record of one provider's full retry budget being spent on a request."""
    provider_name: str
    state: RouteState
    success: bool
    calls: int = 0
    error: Optional[str] = None
    response_time: Optional[float] = None


class AllProvidersExhaustedError(LLMError):
    """Raised when every provider tried for a request has exhausted its retries."""

    def __init__(self, message: str, attempts: Optional[List[ProviderAttempt]] = None):
        super().__init__(message)
        self.attempts = list(attempts or [])

    @property
    def providers_tried(self) -> Tuple[str, ...]:
        return tuple(a.provider_name for a in self.attempts)


class ProviderRouter:
    """
    Route generation requests across interchangeable providers.

    Failover order never depends on runtime health; the status counters kept here
    are reporting only.
    """

    def __init__(
        self,
        providers: Union[Mapping[str, LLMProviderInterface], Iterable[LLMProviderInterface]],
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the router.

        Args:
            providers: Adapters keyed by name, or an iterable of adapters keyed by
                their ``provider_name``. Iteration order is the failover order.
            retry_policy: Policy applied around each provider; defaults to RetryPolicy()
            timeout: Per-call timeout in seconds
        """
        self.logger = logging.getLogger(__name__)

        if isinstance(providers, Mapping):
            items = list(providers.items())
        else:
            items = [(p.provider_name, p) for p in providers]

        self.providers: "OrderedDict[str, LLMProviderInterface]" = OrderedDict()
        for name, provider in items:
            if name in self.providers:
                raise ValueError(f"Provider '{name}' registered twice")
            self.providers[name] = provider

        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout

        self.provider_status: Dict[str, Dict[str, Any]] = {
            name: self._new_status() for name in self.providers
        }

        self.logger.info(f"Initialized provider router with providers: {list(self.providers)}")

    @staticmethod
    def _new_status() -> Dict[str, Any]:
        return {
            "calls": 0,
            "successes": 0,
            "failures": 0,
            "last_success": None,
            "last_failure": None,
            "last_error": None,
            "estimated_tokens": 0,
            "latencies": [],
        }

    @property
    def provider_names(self) -> List[str]:
        return list(self.providers)

    def get_provider(self, name: str) -> Optional[LLMProviderInterface]:
        return self.providers.get(name)

    def failover_order(self, primary: str) -> List[str]:
        """Primary first, then every other registered provider in registration order."""
        return [primary] + [name for name in self.providers if name != primary]

    async def connect(self) -> bool:
        """
        Connect every provider.

        Returns:
            True if at least one provider connected
        """
        connected = 0
        for name, provider in self.providers.items():
            try:
                if await provider.connect():
                    connected += 1
                    self.logger.info(f"Connected to {name} provider")
            except LLMError as e:
                self.logger.error(f"Error connecting to {name}: {e}")

        return connected > 0

    async def disconnect(self) -> bool:
        """
        Disconnect from all providers.

        Returns:
            True if all providers disconnected successfully
        """
        success_count = 0
        for name, provider in self.providers.items():
            try:
                if await provider.disconnect():
                    success_count += 1
            except Exception as e:
                self.logger.error(f"Error disconnecting from {name}: {e}")

        self.logger.info(f"Disconnected from {success_count}/{len(self.providers)} providers")
        return success_count == len(self.providers)

    async def _call_provider(self, name: str, request: GenerationRequest) -> str:
        """One bounded call; every failure leaves here as a ProviderError."""
        provider = self.providers[name]
        status = self.provider_status[name]
        status["calls"] += 1
        start_time = time.monotonic()

        try:
            text = await asyncio.wait_for(provider.generate(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            error = LLMTimeoutError(
                f"{name} call timed out after {self.timeout}s", provider=name
            )
            self._record_failure(name, error)
            raise error from e
        except LLMError as e:
            self._record_failure(name, e)
            raise
        except Exception as e:
            error = ProviderError(f"Unexpected error from {name}: {e}", provider=name)
            self._record_failure(name, error)
            raise error from e

        response_time = time.monotonic() - start_time
        status["successes"] += 1
        status["last_success"] = time.time()
        status["latencies"].append(response_time)
        if len(status["latencies"]) > LATENCY_WINDOW:
            status["latencies"].pop(0)

        prompt_text = "\n".join(message.content for message in request.messages)
        tokens = provider.estimate_tokens(prompt_text) + provider.estimate_tokens(text or "")
        status["estimated_tokens"] += tokens

        self.logger.debug(f"{name} answered in {response_time:.2f}s (~{tokens} tokens)")
        return text

    def _record_failure(self, name: str, error: Exception):
        status = self.provider_status[name]
        status["failures"] += 1
        status["last_failure"] = time.time()
        status["last_error"] = str(error)
        self.logger.warning(f"{name}: {error}")

    async def route(
        self,
        request: GenerationRequest,
        primary: str,
        failover_enabled: bool = True,
    ) -> GenerationResult:
        """
        Generate text, trying ``primary`` first and failing over if allowed.

        Args:
            request: Normalized generation request
            primary: Name of the preferred provider
            failover_enabled: Whether to try the other providers after the primary

        Returns:
            GenerationResult naming the provider that answered

        Raises:
            AllProvidersExhaustedError: If no provider produced a response
        """
        start_time = time.monotonic()
        order = self.failover_order(primary) if failover_enabled else [primary]

        attempts: List[ProviderAttempt] = []
        total_calls = 0
        last_error: Optional[BaseException] = None

        for index, name in enumerate(order):
            state = RouteState.PRIMARY_ATTEMPT if index == 0 else RouteState.FAILOVER_ATTEMPT

            if name not in self.providers:
                self.logger.warning(f"Provider '{name}' is not registered; treating it as failed")
                attempts.append(ProviderAttempt(
                    provider_name=name, state=state, success=False, error="provider not registered"
                ))
                continue

            if index > 0:
                self.logger.warning(f"Failing over from {order[index - 1]} to {name}")

            # Model names are vendor-specific; backups use their own default
            provider_request = request if index == 0 else dataclasses.replace(request, model=None)

            calls = 0

            async def attempt_once(name=name, provider_request=provider_request):
                nonlocal calls
                calls += 1
                return await self._call_provider(name, provider_request)

            attempt_start = time.monotonic()
            try:
                text = await self.retry_policy.execute(attempt_once)
            except LLMError as e:
                total_calls += calls
                last_error = e
                attempts.append(ProviderAttempt(
                    provider_name=name, state=state, success=False, calls=calls, error=str(e),
                    response_time=time.monotonic() - attempt_start,
                ))
                continue

            total_calls += calls
            attempts.append(ProviderAttempt(
                provider_name=name, state=state, success=True, calls=calls,
                response_time=time.monotonic() - attempt_start,
            ))
            self.logger.debug(f"Request reached {RouteState.SUCCESS.value} via {name}")
            return GenerationResult(
                text=text,
                provider_used=name,
                attempt_count=total_calls,
                elapsed_ms=(time.monotonic() - start_time) * 1000.0,
                providers_tried=tuple(a.provider_name for a in attempts),
            )

        error_details = "; ".join(f"{a.provider_name}: {a.error}" for a in attempts)
        self.logger.error(f"Request reached {RouteState.ALL_EXHAUSTED.value}: {error_details}")
        raise AllProvidersExhaustedError(
            f"All providers failed: {error_details}", attempts=attempts
        ) from last_error

    def get_provider_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Get per-provider counters, average latency, token estimates and adapter info.

        Returns:
            Status information keyed by provider name
        """
        report = {}
        for name, status in self.provider_status.items():
            latencies = status["latencies"]
            report[name] = {
                "calls": status["calls"],
                "successes": status["successes"],
                "failures": status["failures"],
                "last_success": status["last_success"],
                "last_failure": status["last_failure"],
                "last_error": status["last_error"],
                "avg_response_time": sum(latencies) / len(latencies) if latencies else None,
                "estimated_tokens": status["estimated_tokens"],
                "position": self.provider_names.index(name),
                "info": self.providers[name].get_provider_info(),
            }
        return report

    async def health_check(self) -> Dict[str, Any]:
        """
        Run every provider's health check.

        Returns:
            Overall health plus the per-provider reports
        """
        results = {}
        for name, provider in self.providers.items():
            results[name] = await provider.health_check()

        healthy = [name for name, result in results.items() if result.get("test_passed")]
        return {
            "healthy": bool(healthy),
            "healthy_providers": healthy,
            "providers": results,
        }
