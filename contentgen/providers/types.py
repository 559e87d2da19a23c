from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProviderRequest:
    model: str
    messages: List[Dict[str, str]]  # [{role, content}]
    max_tokens: int
    temperature: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }


@dataclass
class ProviderResponse:
    ok: bool
    content: Optional[str]
    latency_ms: int
    provider_meta: Dict[str, Any]
    status_code: Optional[int] = None
    error_code: Optional[str] = None  # provider error code from the JSON body, e.g. insufficient_quota
    timed_out: bool = False
    error: Optional[str] = None
    created_at: str = field(default_factory=_utcnow_iso)

    @property
    def tokens_used(self) -> Optional[int]:
        usage = self.provider_meta.get("usage") or {}
        total = usage.get("total_tokens") if isinstance(usage, dict) else None
        return total if isinstance(total, int) else None
