from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PLATFORM_KINDS = ("traffic", "ads", "conversions")


class PlatformMetrics(BaseModel):
    """Partial metrics from one platform; anything a platform does not report stays None."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    traffic: Optional[int] = Field(default=None, ge=0)
    conversions: Optional[int] = Field(default=None, ge=0)
    spend: Optional[float] = Field(default=None, ge=0)
    revenue: Optional[float] = Field(default=None, ge=0)
    bounce_rate: Optional[float] = Field(default=None, ge=0, le=100)


class MetricsPlatform(ABC):
    name: str
    kind: str

    @abstractmethod
    async def fetch_metrics(self, client_config: Mapping[str, Any], start_date: str, end_date: str) -> Dict[str, Any]:
        """Return partial metrics for the window; dates are YYYYMMDD strings. May raise."""


class StaticMetricsPlatform(MetricsPlatform):
    """Returns the same numbers for every call. Used for local runs and tests."""

    def __init__(self, name: str, kind: str, metrics: Mapping[str, Any]) -> None:
        if kind not in PLATFORM_KINDS:
            raise ValueError(f"unknown platform kind {kind!r}")
        self.name = name
        self.kind = kind
        self._metrics = dict(metrics)

    async def fetch_metrics(self, client_config: Mapping[str, Any], start_date: str, end_date: str) -> Dict[str, Any]:
        return dict(self._metrics)


class UnavailableMetricsPlatform(MetricsPlatform):
    """Placeholder for a platform with no credentials configured; always fails."""

    def __init__(self, name: str, kind: str, reason: str = "not configured") -> None:
        self.name = name
        self.kind = kind
        self.reason = reason

    async def fetch_metrics(self, client_config: Mapping[str, Any], start_date: str, end_date: str) -> Dict[str, Any]:
        raise ConnectionError(f"{self.name}: {self.reason}")


def demo_platforms() -> List[MetricsPlatform]:
    return [
        StaticMetricsPlatform("googleAnalytics", "traffic",
                              {"traffic": 15420, "conversions": 234, "revenue": 45678.90, "bounceRate": 42.5}),
        StaticMetricsPlatform("facebookMarketing", "ads", {"spend": 11200.00, "conversions": 690}),
        StaticMetricsPlatform("linkedinMarketing", "ads", {"spend": 15600.00, "conversions": 357}),
        StaticMetricsPlatform("googleAds", "ads", {"spend": 15600.00, "conversions": 357}),
    ]
