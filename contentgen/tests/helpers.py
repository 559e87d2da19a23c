import json
from typing import Callable, List, Optional

import httpx

from contentgen.usage import UsageRecord, UsageRecorder

BASE_URL = "https://llm.test/v1"


class ListRecorder(UsageRecorder):
    def __init__(self) -> None:
        self.records: List[UsageRecord] = []

    def record(self, rec: UsageRecord) -> None:
        self.records.append(rec)


class SleepLog:
    """Stands in for asyncio.sleep; records requested delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def chat_body(content: Optional[str], total_tokens: int = 42) -> dict:
    return {
        "model": "gpt-4",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": total_tokens - 10, "total_tokens": total_tokens},
    }


def ok(content: Optional[str]) -> httpx.Response:
    return httpx.Response(200, json=chat_body(content))


def rate_limited() -> httpx.Response:
    return httpx.Response(429, json={"error": {"message": "Rate limit reached", "type": "requests", "code": "rate_limit_exceeded"}})


def quota_exceeded() -> httpx.Response:
    return httpx.Response(429, json={"error": {"message": "You exceeded your current quota", "type": "insufficient_quota", "code": "insufficient_quota"}})


def unauthorized() -> httpx.Response:
    return httpx.Response(401, json={"error": {"message": "Incorrect API key provided", "code": "invalid_api_key"}})


def scripted(responses: List[httpx.Response], calls: Optional[list] = None) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler replaying `responses` in order; the last one repeats."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(json.loads(request.content))
        r = queue.pop(0) if len(queue) > 1 else queue[0]
        # fresh copy so a repeated response is never sent twice
        return httpx.Response(r.status_code, headers=r.headers, content=r.content)

    return handler
