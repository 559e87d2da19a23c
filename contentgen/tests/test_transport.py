import asyncio
import time

import pytest

from contentgen.errors import ErrorKind
from contentgen.models import AttemptOutcome
from contentgen.providers.types import ProviderRequest, ProviderResponse
from contentgen.transport import (
    CancellationToken,
    ResilientTransport,
    RetryPolicy,
    backoff_delay_ms,
    classify,
    worst_case_latency_s,
)

from .helpers import SleepLog

HANG = "hang"


def resp(status, content=None, error_code=None):
    ok = 200 <= status < 300
    meta = {"usage": {"total_tokens": 7}} if ok else {}
    return ProviderResponse(ok, content, 1, meta, status_code=status, error_code=error_code)


class FakeProvider:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    async def chat(self, req):
        self.calls += 1
        r = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if r == HANG:
            await asyncio.Event().wait()
        return r


def req():
    return ProviderRequest(model="gpt-4", messages=[{"role": "user", "content": "hi"}], max_tokens=10, temperature=0.0)


def test_classify_by_status_and_code():
    assert classify(resp(200, '{"a": 1}')) is None
    assert classify(resp(200, None)) is ErrorKind.TRANSIENT_NETWORK
    assert classify(resp(200, "   ")) is ErrorKind.TRANSIENT_NETWORK
    assert classify(resp(401)) is ErrorKind.AUTHENTICATION
    assert classify(resp(429, error_code="insufficient_quota")) is ErrorKind.QUOTA_EXCEEDED
    assert classify(resp(429, error_code="rate_limit_exceeded")) is ErrorKind.RATE_LIMITED
    assert classify(resp(429)) is ErrorKind.RATE_LIMITED
    assert classify(resp(500)) is ErrorKind.TRANSIENT_NETWORK
    assert classify(resp(503)) is ErrorKind.TRANSIENT_NETWORK
    assert classify(ProviderResponse(False, None, 1, {}, timed_out=True)) is ErrorKind.TRANSIENT_NETWORK


def test_classify_ignores_error_text():
    r = ProviderResponse(False, None, 1, {}, status_code=500, error="401 Unauthorized insufficient_quota")
    assert classify(r) is ErrorKind.TRANSIENT_NETWORK


def test_backoff_formula():
    p = RetryPolicy()
    assert [backoff_delay_ms(k, ErrorKind.RATE_LIMITED, p) for k in range(3)] == [4000, 8000, 16000]
    assert [backoff_delay_ms(k, ErrorKind.TRANSIENT_NETWORK, p) for k in range(3)] == [2000, 4000, 8000]
    assert backoff_delay_ms(0, ErrorKind.AUTHENTICATION, p) == 0
    assert backoff_delay_ms(0, ErrorKind.PARSE, p) == 0


def test_worst_case_latency_bound():
    assert worst_case_latency_s(RetryPolicy(retry_budget=2, attempt_timeout_s=30)) == pytest.approx(102.0)
    assert worst_case_latency_s(RetryPolicy(retry_budget=0, attempt_timeout_s=30)) == pytest.approx(30.0)


def test_policy_rejects_negative_budget():
    with pytest.raises(ValueError):
        RetryPolicy(retry_budget=-1)


@pytest.mark.asyncio
async def test_success_after_rate_limits():
    provider = FakeProvider([resp(429), resp(429), resp(200, '{"ok": true}')])
    sleeps = SleepLog()
    out = await ResilientTransport(provider, sleep=sleeps).execute(req(), RetryPolicy(retry_budget=3))
    assert out.ok
    assert out.text == '{"ok": true}'
    assert provider.calls == 3
    assert [a.outcome for a in out.attempts] == [
        AttemptOutcome.RATE_LIMITED, AttemptOutcome.RATE_LIMITED, AttemptOutcome.SUCCESS,
    ]
    assert [a.index for a in out.attempts] == [0, 1, 2]
    assert sleeps.delays == [4.0, 8.0]
    assert out.tokens_used == 7


@pytest.mark.asyncio
async def test_budget_is_never_exceeded():
    provider = FakeProvider([resp(503)])
    sleeps = SleepLog()
    out = await ResilientTransport(provider, sleep=sleeps).execute(req(), RetryPolicy(retry_budget=2))
    assert out.error_kind is ErrorKind.TRANSIENT_NETWORK
    assert provider.calls == 3
    assert len(out.attempts) == 3
    assert sleeps.delays == [2.0, 4.0]
    assert out.backoff_ms == 6000


@pytest.mark.asyncio
async def test_zero_budget_makes_one_attempt():
    provider = FakeProvider([resp(429)])
    sleeps = SleepLog()
    out = await ResilientTransport(provider, sleep=sleeps).execute(req(), RetryPolicy(retry_budget=0))
    assert out.error_kind is ErrorKind.RATE_LIMITED
    assert provider.calls == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("first, kind", [
    (resp(401), ErrorKind.AUTHENTICATION),
    (resp(429, error_code="insufficient_quota"), ErrorKind.QUOTA_EXCEEDED),
])
async def test_fatal_kinds_stop_immediately(first, kind):
    provider = FakeProvider([first, resp(200, "{}")])
    sleeps = SleepLog()
    out = await ResilientTransport(provider, sleep=sleeps).execute(req(), RetryPolicy(retry_budget=5))
    assert out.error_kind is kind
    assert provider.calls == 1
    assert sleeps.delays == []
    assert out.backoff_ms == 0


@pytest.mark.asyncio
async def test_empty_completion_is_retried():
    provider = FakeProvider([resp(200, None), resp(200, '{"a": 1}')])
    out = await ResilientTransport(provider, sleep=SleepLog()).execute(req(), RetryPolicy(retry_budget=1))
    assert out.ok
    assert out.attempts[0].outcome is AttemptOutcome.TRANSIENT_ERROR


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_transient():
    provider = FakeProvider([HANG, resp(200, '{"a": 1}')])
    sleeps = SleepLog()
    policy = RetryPolicy(retry_budget=1, attempt_timeout_s=0.02)
    out = await ResilientTransport(provider, sleep=sleeps).execute(req(), policy)
    assert out.ok
    assert out.attempts[0].outcome is AttemptOutcome.TRANSIENT_ERROR
    assert sleeps.delays == [2.0]


@pytest.mark.asyncio
async def test_real_backoff_timing_within_tolerance():
    provider = FakeProvider([resp(429), resp(429), resp(200, "{}")])
    policy = RetryPolicy(retry_budget=2, rate_limit_base_ms=20, transient_base_ms=10)
    t0 = time.perf_counter()
    out = await ResilientTransport(provider).execute(req(), policy)
    elapsed = time.perf_counter() - t0
    assert out.ok
    # 2^1*20ms + 2^2*20ms
    assert elapsed >= 0.12 * 0.9
    assert elapsed < 0.12 + 1.0


@pytest.mark.asyncio
async def test_total_latency_stays_under_bound():
    provider = FakeProvider([HANG])
    policy = RetryPolicy(retry_budget=2, attempt_timeout_s=0.02, rate_limit_base_ms=5, transient_base_ms=5)
    t0 = time.perf_counter()
    out = await ResilientTransport(provider).execute(req(), policy)
    elapsed = time.perf_counter() - t0
    assert out.error_kind is ErrorKind.TRANSIENT_NETWORK
    assert provider.calls == 3
    assert elapsed < worst_case_latency_s(policy) + 0.5


@pytest.mark.asyncio
async def test_cancelled_before_first_attempt():
    provider = FakeProvider([resp(200, "{}")])
    token = CancellationToken()
    token.cancel()
    out = await ResilientTransport(provider, sleep=SleepLog()).execute(req(), RetryPolicy(), cancel=token)
    assert out.error_kind is ErrorKind.CANCELLED
    assert provider.calls == 0
    assert out.attempts == ()


@pytest.mark.asyncio
async def test_cancel_interrupts_backoff():
    provider = FakeProvider([resp(429)])
    token = CancellationToken()

    async def never(delay):
        await asyncio.Event().wait()

    asyncio.get_running_loop().call_later(0.02, token.cancel)
    out = await asyncio.wait_for(
        ResilientTransport(provider, sleep=never).execute(req(), RetryPolicy(retry_budget=3), cancel=token),
        timeout=2,
    )
    assert out.error_kind is ErrorKind.CANCELLED
    assert provider.calls == 1
    assert len(out.attempts) == 1
