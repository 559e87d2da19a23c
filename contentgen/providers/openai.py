from __future__ import annotations
import time
from typing import Any, Dict, Optional

import httpx

from ..config import DEFAULT_ATTEMPT_TIMEOUT_S, DEFAULT_BASE_URL
from .types import ProviderRequest, ProviderResponse


def _error_code(r: httpx.Response) -> Optional[str]:
    try:
        body = r.json()
    except ValueError:
        return None
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        code = err.get("code") or err.get("type")
        return str(code) if code else None
    return None


class OpenAIProvider:
    """Single chat-completions call; retries live in the transport above it."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = DEFAULT_ATTEMPT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    async def chat(self, req: ProviderRequest) -> ProviderResponse:
        t0 = time.perf_counter()
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            try:
                r = await client.post(url, json=req.payload(), headers=headers)
            except httpx.TimeoutException as e:
                latency_ms = int((time.perf_counter() - t0) * 1000)
                return ProviderResponse(False, None, latency_ms, {}, timed_out=True, error=f"timeout: {e!r}")
            except httpx.HTTPError as e:
                latency_ms = int((time.perf_counter() - t0) * 1000)
                return ProviderResponse(False, None, latency_ms, {}, error=f"{type(e).__name__}: {e}")
        latency_ms = int((time.perf_counter() - t0) * 1000)
        if not r.is_success:
            return ProviderResponse(
                False, None, latency_ms, {"status": r.status_code},
                status_code=r.status_code,
                error_code=_error_code(r),
                error=r.text[:500],
            )
        try:
            data: Dict[str, Any] = r.json()
        except ValueError:
            return ProviderResponse(True, None, latency_ms, {"status": r.status_code}, status_code=r.status_code,
                                    error="response body is not JSON")
        choices = data.get("choices") or [{}]
        content = ((choices[0] or {}).get("message") or {}).get("content")
        meta = {
            "model": data.get("model"),
            "usage": data.get("usage"),
        }
        return ProviderResponse(True, content if isinstance(content, str) else None, latency_ms, meta,
                                status_code=r.status_code)
