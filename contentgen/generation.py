"""Single entry point for tool generation.

`GenerationService.generate` runs config check, request building, the
retrying transport, normalisation and fallback, and always hands back exactly
one GenerationResult. Fatal kinds come back as status=error; absorbed kinds
come back as fallback content with the kind recorded.
"""
from __future__ import annotations
import asyncio
import dataclasses
import logging
import time
from typing import Any, Mapping, Optional

from .config import Settings, get_settings, require_api_key
from .errors import ErrorKind, GenerationError, user_message
from .fallback import FallbackSynthesizer
from .models import (
    AttemptOutcome,
    GenerationAttempt,
    GenerationResult,
    ResultSource,
    ResultStatus,
    attempt_outcomes,
)
from .normalizer import normalize
from .providers.openai import OpenAIProvider
from .providers.types import ProviderRequest
from .request_builder import build_messages, build_request
from .transport import CancellationToken, ChatProvider, ResilientTransport, RetryPolicy, Sleep
from .usage import JsonlUsageRecorder, UsageRecord, UsageRecorder, safe_record

logger = logging.getLogger(__name__)


def default_recorder(settings: Settings) -> UsageRecorder:
    if settings.usage_log_path:
        return JsonlUsageRecorder(settings.usage_log_path)
    return UsageRecorder()


def _mark_last(attempts: tuple, outcome: AttemptOutcome) -> tuple:
    if not attempts:
        return attempts
    last: GenerationAttempt = attempts[-1]
    return attempts[:-1] + (dataclasses.replace(last, outcome=outcome),)


class GenerationService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        provider: Optional[ChatProvider] = None,
        sleep: Sleep = asyncio.sleep,
        recorder: Optional[UsageRecorder] = None,
        synthesizer: Optional[FallbackSynthesizer] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._provider = provider
        self._sleep = sleep
        self.recorder = recorder if recorder is not None else default_recorder(self.settings)
        self.synthesizer = synthesizer or FallbackSynthesizer()

    def _provider_for(self, api_key: str) -> ChatProvider:
        if self._provider is not None:
            return self._provider
        return OpenAIProvider(api_key, self.settings.base_url, self.settings.attempt_timeout_s)

    async def generate(
        self,
        tool_id: str,
        fields: Optional[Mapping[str, Any]] = None,
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        retry_budget: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        t0 = time.perf_counter()
        try:
            result = await self._run(
                tool_id, fields or {},
                model=model, max_tokens=max_tokens, temperature=temperature,
                retry_budget=retry_budget, cancel=cancel,
            )
        except Exception:
            # provider bug or unexpected payload; the caller still gets one result
            logger.exception("Unexpected failure while generating %s", tool_id)
            result = self.synthesizer.synthesize(tool_id, ErrorKind.TRANSIENT_NETWORK)
        duration_ms = int((time.perf_counter() - t0) * 1000)
        logger.info("%s finished status=%s error_kind=%s attempts=%s in %dms",
                    tool_id, result.status.value,
                    result.error_kind.value if result.error_kind else None,
                    attempt_outcomes(list(result.attempts)), duration_ms)
        await safe_record(self.recorder, UsageRecord(
            tool_id=tool_id,
            status=result.status.value,
            duration_ms=duration_ms,
            tokens_used=result.tokens_used,
            error_kind=result.error_kind.value if result.error_kind else None,
            absorbed=result.status is ResultStatus.FALLBACK,
        ))
        return result

    async def _run(
        self,
        tool_id: str,
        fields: Mapping[str, Any],
        *,
        model: Optional[str],
        max_tokens: Optional[int],
        temperature: Optional[float],
        retry_budget: Optional[int],
        cancel: Optional[CancellationToken],
    ) -> GenerationResult:
        try:
            api_key = require_api_key(self.settings)
            request = build_request(
                tool_id, fields, self.settings,
                model=model, max_tokens=max_tokens, temperature=temperature, retry_budget=retry_budget,
            )
        except GenerationError as e:
            logger.error("%s rejected before any request: %s", tool_id, e.message)
            return _error_result(tool_id, e.kind, e.message)

        provider_req = ProviderRequest(
            model=request.model,
            messages=build_messages(request),
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            metadata={"tool_id": request.tool_id},
        )
        policy = RetryPolicy(retry_budget=request.retry_budget, attempt_timeout_s=self.settings.attempt_timeout_s)
        transport = ResilientTransport(self._provider_for(api_key), sleep=self._sleep)
        outcome = await transport.execute(provider_req, policy, cancel=cancel, label=request.tool_id)

        kind = outcome.error_kind
        if kind is None:
            try:
                content = normalize(request.tool_id, outcome.text or "")
            except GenerationError as e:
                logger.warning("%s response unusable: %s", request.tool_id, e.message)
                attempts = _mark_last(outcome.attempts, AttemptOutcome.PARSE_ERROR)
                return self.synthesizer.synthesize(request.tool_id, ErrorKind.PARSE, attempts, outcome.tokens_used)
            return GenerationResult(
                status=ResultStatus.SUCCESS,
                source=ResultSource.LIVE,
                content=content,
                tool_id=request.tool_id,
                attempts=outcome.attempts,
                tokens_used=outcome.tokens_used,
            )

        if self.synthesizer.applies_to(kind):
            return self.synthesizer.synthesize(request.tool_id, kind, outcome.attempts)
        return _error_result(request.tool_id, kind, user_message(kind), outcome.attempts)


def _error_result(tool_id: str, kind: ErrorKind, message: str, attempts: tuple = ()) -> GenerationResult:
    return GenerationResult(
        status=ResultStatus.ERROR,
        source=None,
        content=None,
        tool_id=tool_id,
        error_kind=kind,
        message=message,
        attempts=attempts,
    )


async def generate(tool_id: str, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> GenerationResult:
    """Convenience wrapper using process settings and the default recorder."""
    return await GenerationService().generate(tool_id, fields, **kwargs)
