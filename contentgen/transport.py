"""Retrying transport in front of the generation provider.

Every attempt gets its own timeout. Failures are classified once, here,
from HTTP status and provider error code into an ErrorKind; nothing
downstream looks at error text. Fatal kinds return immediately, retryable
kinds back off exponentially until the retry budget is spent.
"""
from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Protocol, Tuple

from .config import DEFAULT_ATTEMPT_TIMEOUT_S, DEFAULT_RETRY_BUDGET
from .errors import ErrorKind
from .models import OUTCOME_FOR_KIND, AttemptOutcome, GenerationAttempt
from .providers.types import ProviderRequest, ProviderResponse

logger = logging.getLogger(__name__)

QUOTA_ERROR_CODES = frozenset({"insufficient_quota"})

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    retry_budget: int = DEFAULT_RETRY_BUDGET
    attempt_timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S
    rate_limit_base_ms: int = 2000
    transient_base_ms: int = 1000

    def __post_init__(self) -> None:
        if self.retry_budget < 0:
            raise ValueError("retry_budget must be >= 0")
        if self.attempt_timeout_s <= 0:
            raise ValueError("attempt_timeout_s must be > 0")

    @property
    def max_attempts(self) -> int:
        return self.retry_budget + 1


def backoff_delay_ms(attempt: int, kind: ErrorKind, policy: RetryPolicy) -> int:
    """Wait before the attempt that follows `attempt` (0-based): 2^(attempt+1) * base."""
    if not kind.is_retryable:
        return 0
    base = policy.rate_limit_base_ms if kind is ErrorKind.RATE_LIMITED else policy.transient_base_ms
    return (2 ** (attempt + 1)) * base


def worst_case_latency_s(policy: RetryPolicy) -> float:
    """Upper bound for one call: every attempt times out and every wait uses the larger base."""
    worst_base = max(policy.rate_limit_base_ms, policy.transient_base_ms)
    backoff_ms = sum((2 ** (k + 1)) * worst_base for k in range(policy.retry_budget))
    return policy.max_attempts * policy.attempt_timeout_s + backoff_ms / 1000.0


def classify(resp: ProviderResponse) -> Optional[ErrorKind]:
    """None means the attempt produced usable text."""
    if resp.ok:
        if resp.content and resp.content.strip():
            return None
        # 2xx without message text is a provider fault
        return ErrorKind.TRANSIENT_NETWORK
    if resp.status_code == 401:
        return ErrorKind.AUTHENTICATION
    if resp.status_code == 429:
        if resp.error_code in QUOTA_ERROR_CODES:
            return ErrorKind.QUOTA_EXCEEDED
        return ErrorKind.RATE_LIMITED
    return ErrorKind.TRANSIENT_NETWORK


class CancellationToken:
    """Caller-held handle; checked before each attempt and raced against each backoff wait."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class TransportOutcome:
    text: Optional[str]
    error_kind: Optional[ErrorKind]
    attempts: Tuple[GenerationAttempt, ...] = field(default_factory=tuple)
    backoff_ms: int = 0
    tokens_used: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


class ChatProvider(Protocol):
    async def chat(self, req: ProviderRequest) -> ProviderResponse: ...


class ResilientTransport:
    def __init__(self, provider: ChatProvider, sleep: Sleep = asyncio.sleep) -> None:
        self.provider = provider
        self._sleep = sleep

    async def _attempt(self, req: ProviderRequest, timeout_s: float) -> ProviderResponse:
        t0 = time.perf_counter()
        try:
            return await asyncio.wait_for(self.provider.chat(req), timeout=timeout_s)
        except asyncio.TimeoutError:
            latency_ms = int((time.perf_counter() - t0) * 1000)
            return ProviderResponse(False, None, latency_ms, {}, timed_out=True,
                                    error=f"attempt exceeded {timeout_s}s")
        except OSError as e:
            latency_ms = int((time.perf_counter() - t0) * 1000)
            return ProviderResponse(False, None, latency_ms, {}, error=f"connection failed: {e}")

    async def _backoff(self, delay_s: float, cancel: Optional[CancellationToken]) -> bool:
        """Wait out a backoff delay; True when the caller cancelled during the wait."""
        if cancel is None:
            await self._sleep(delay_s)
            return False
        if cancel.cancelled:
            return True
        sleeper = asyncio.ensure_future(self._sleep(delay_s))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
        return cancel.cancelled

    async def execute(
        self,
        req: ProviderRequest,
        policy: RetryPolicy,
        *,
        cancel: Optional[CancellationToken] = None,
        label: str = "",
    ) -> TransportOutcome:
        attempts: List[GenerationAttempt] = []
        backoff_total = 0
        for index in range(policy.max_attempts):
            if cancel is not None and cancel.cancelled:
                logger.info("%s cancelled before attempt %d", label, index)
                return TransportOutcome(None, ErrorKind.CANCELLED, tuple(attempts), backoff_total)

            started_at = datetime.now(timezone.utc).isoformat()
            t0 = time.perf_counter()
            logger.debug("%s attempt %d/%d", label, index + 1, policy.max_attempts)
            resp = await self._attempt(req, policy.attempt_timeout_s)
            duration_ms = int((time.perf_counter() - t0) * 1000)
            kind = classify(resp)
            outcome = AttemptOutcome.SUCCESS if kind is None else OUTCOME_FOR_KIND[kind]
            attempts.append(GenerationAttempt(index, started_at, duration_ms, outcome, resp.status_code))

            if kind is None:
                logger.info("%s attempt %d succeeded in %dms", label, index + 1, duration_ms)
                return TransportOutcome(resp.content, None, tuple(attempts), backoff_total, resp.tokens_used)

            if kind.is_fatal:
                logger.error("%s attempt %d failed with fatal %s (status=%s)", label, index + 1, kind.value, resp.status_code)
                return TransportOutcome(None, kind, tuple(attempts), backoff_total)

            if index >= policy.retry_budget:
                logger.warning("%s retry budget exhausted after %d attempts, last error %s",
                               label, len(attempts), kind.value)
                return TransportOutcome(None, kind, tuple(attempts), backoff_total)

            delay_ms = backoff_delay_ms(index, kind, policy)
            logger.info("%s attempt %d failed with %s (status=%s), waiting %dms before retry",
                        label, index + 1, kind.value, resp.status_code, delay_ms)
            backoff_total += delay_ms
            if await self._backoff(delay_ms / 1000.0, cancel):
                logger.info("%s cancelled during backoff after attempt %d", label, index + 1)
                return TransportOutcome(None, ErrorKind.CANCELLED, tuple(attempts), backoff_total)

        # unreachable: the loop always returns on its final attempt
        raise RuntimeError("retry loop exited without an outcome")
