from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from .errors import ErrorKind


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rateLimited"
    AUTH_ERROR = "authError"
    QUOTA_EXCEEDED = "quotaExceeded"
    TRANSIENT_ERROR = "transientError"
    PARSE_ERROR = "parseError"


OUTCOME_FOR_KIND = {
    ErrorKind.RATE_LIMITED: AttemptOutcome.RATE_LIMITED,
    ErrorKind.AUTHENTICATION: AttemptOutcome.AUTH_ERROR,
    ErrorKind.QUOTA_EXCEEDED: AttemptOutcome.QUOTA_EXCEEDED,
    ErrorKind.TRANSIENT_NETWORK: AttemptOutcome.TRANSIENT_ERROR,
    ErrorKind.PARSE: AttemptOutcome.PARSE_ERROR,
}


class ResultStatus(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"
    ERROR = "error"


class ResultSource(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class GenerationRequest:
    tool_id: str
    fields: Mapping[str, str]
    model: str
    max_tokens: int
    temperature: float
    retry_budget: int

    def __post_init__(self) -> None:
        # freeze a private copy so later mutation of the caller's dict is not observed
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        if self.retry_budget < 0:
            raise ValueError("retry_budget must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.retry_budget + 1


@dataclass(frozen=True)
class GenerationAttempt:
    index: int
    started_at: str
    duration_ms: int
    outcome: AttemptOutcome
    status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "startedAt": self.started_at,
            "durationMs": self.duration_ms,
            "outcome": self.outcome.value,
            "statusCode": self.status_code,
        }


@dataclass(frozen=True)
class GenerationResult:
    status: ResultStatus
    source: Optional[ResultSource]
    content: Optional[BaseModel]
    tool_id: str
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    attempts: Tuple[GenerationAttempt, ...] = field(default_factory=tuple)
    tokens_used: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is not ResultStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "toolId": self.tool_id,
            "status": self.status.value,
            "source": self.source.value if self.source else None,
            "content": self.content.model_dump(mode="json", by_alias=True) if self.content is not None else None,
            "errorKind": self.error_kind.value if self.error_kind else None,
        }
        if self.message:
            payload["message"] = self.message
        payload["attempts"] = [a.to_dict() for a in self.attempts]
        return payload


def attempt_outcomes(attempts: List[GenerationAttempt]) -> List[str]:
    return [a.outcome.value for a in attempts]
