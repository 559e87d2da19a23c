"""Composite client report: real platform metrics plus a generated narrative.

Platform fetches fan out concurrently and any subset may fail; the aggregate
reflects whatever arrived. The narrative goes through the normal generation
path, and when it does not come back live the insights block is built from
the aggregate with fixed rules instead. Both halves degrade independently.
"""
from __future__ import annotations
import asyncio
import calendar
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .generation import GenerationService
from .metrics_sources import MetricsPlatform, PlatformMetrics
from .models import GenerationResult, ResultSource
from .tool_results import (
    ClientReportInsights,
    ExecutiveSummary,
    PerformanceAnalysis,
    StrategicRecommendations,
)
from .tools import get_tool, resolve_fields
from .transport import CancellationToken

logger = logging.getLogger(__name__)

REPORT_TOOL_ID = "client-reporting"
DEFAULT_PERIOD = "monthly"
PERIOD_MONTHS = {"monthly": 1, "quarterly": 3}
CLIENT_DEFAULTS = {
    "name": "Client",
    "reportingPeriod": "Monthly",
    "industry": "Business",
    "services": "Marketing services",
}
TOP_CHANNEL_LIMIT = 5
# (attribute, label) in the order a platform's headline metric is picked
PRIMARY_METRICS = (("traffic", "Traffic"), ("conversions", "Conversions"), ("revenue", "Revenue"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _months_back(dt: datetime, months: int) -> datetime:
    years, month0 = divmod(dt.month - 1 - months, 12)
    year = dt.year + years
    month = month0 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def resolve_window(period: Optional[str], now: datetime) -> Tuple[datetime, datetime]:
    """weekly is 7 days back, monthly 1 month, quarterly 3 months; anything else is monthly."""
    key = (period or "").strip().lower()
    if key == "weekly":
        return now - timedelta(days=7), now
    return _months_back(now, PERIOD_MONTHS.get(key, PERIOD_MONTHS[DEFAULT_PERIOD])), now


def _ymd(dt: datetime) -> str:
    return dt.strftime("%Y%m%d")


class MetricsAggregate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    total_traffic: int = 0
    total_conversions: int = 0
    total_spend: float = 0.0
    total_revenue: float = 0.0
    overall_roi: Optional[float] = None
    conversion_rate: Optional[float] = None
    cost_per_conversion: Optional[float] = None
    bounce_rate: Optional[float] = None
    data_sources: Dict[str, bool] = Field(default_factory=dict)


def aggregate_metrics(results: Mapping[str, Optional[PlatformMetrics]]) -> MetricsAggregate:
    """Sum what arrived; ratio fields stay None when a denominator is missing or zero."""
    available = [m for m in results.values() if m is not None]
    traffic = sum(m.traffic or 0 for m in available)
    conversions = sum(m.conversions or 0 for m in available)
    spend = round(sum(m.spend or 0.0 for m in available), 2)
    revenue = round(sum(m.revenue or 0.0 for m in available), 2)
    traffic_reported = any(m.traffic is not None for m in available)
    spend_reported = any(m.spend is not None for m in available)
    revenue_reported = any(m.revenue is not None for m in available)
    bounce = [m.bounce_rate for m in available if m.bounce_rate is not None]

    overall_roi = None
    if spend_reported and revenue_reported and spend > 0:
        overall_roi = round((revenue - spend) / spend * 100, 2)
    conversion_rate = None
    if traffic_reported and traffic > 0:
        conversion_rate = round(conversions / traffic * 100, 2)
    cost_per_conversion = None
    if spend_reported and conversions > 0:
        cost_per_conversion = round(spend / conversions, 2)

    return MetricsAggregate(
        total_traffic=traffic,
        total_conversions=conversions,
        total_spend=spend,
        total_revenue=revenue,
        overall_roi=overall_roi,
        conversion_rate=conversion_rate,
        cost_per_conversion=cost_per_conversion,
        bounce_rate=round(sum(bounce) / len(bounce), 2) if bounce else None,
        data_sources={name: m is not None for name, m in sorted(results.items())},
    )


class TopChannel(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    metric: Union[int, float]


def key_insights(results: Mapping[str, Optional[PlatformMetrics]]) -> List[str]:
    """Insight lines drawn from each platform's own numbers, in platform name order."""
    insights: List[str] = []
    for name, m in sorted(results.items()):
        if m is None:
            continue
        if m.bounce_rate is not None and m.bounce_rate > 50:
            insights.append(
                f"High bounce rate ({m.bounce_rate:.1f}%) on {name} indicates potential content or user experience issues"
            )
        if m.spend and m.revenue is not None:
            roi = (m.revenue - m.spend) / m.spend * 100
            if roi > 0:
                insights.append(f"Positive {name} ROI of {roi:.2f}%")
        if m.spend and m.conversions:
            insights.append(f"{name} delivered {m.conversions:,} conversions at {m.spend / m.conversions:,.2f} per conversion")
    return insights


def top_channels(results: Mapping[str, Optional[PlatformMetrics]], limit: int = TOP_CHANNEL_LIMIT) -> List[TopChannel]:
    """Rank available platforms by the headline metric each reports; ties break on name."""
    channels: List[TopChannel] = []
    for name, m in results.items():
        if m is None:
            continue
        for attr, label in PRIMARY_METRICS:
            value = getattr(m, attr)
            if value is not None:
                channels.append(TopChannel(name=name, type=label, metric=value))
                break
    channels.sort(key=lambda c: (-c.metric, c.name))
    return channels[:limit]


def _fmt_metric(value: Union[int, float]) -> str:
    return f"{value:,}" if isinstance(value, int) else f"{value:,.2f}"


def _na(value: Optional[float], fmt: str) -> str:
    return "N/A" if value is None else fmt.format(value)


def templated_insights(aggregate: MetricsAggregate, client: Mapping[str, str]) -> ClientReportInsights:
    """Deterministic narrative built only from the aggregate numbers."""
    name = client.get("name") or "Client"
    period = (client.get("reportingPeriod") or DEFAULT_PERIOD).lower()
    sources = [s for s, ok in aggregate.data_sources.items() if ok]

    achievements: List[str] = []
    challenges: List[str] = []
    recommendations: List[str] = []
    actions: List[str] = []

    if aggregate.bounce_rate is not None and aggregate.bounce_rate > 50:
        challenges.append(
            f"High bounce rate ({aggregate.bounce_rate:.1f}%) indicates potential content or user experience issues"
        )
    if aggregate.overall_roi is not None and aggregate.overall_roi > 0:
        achievements.append(f"Positive overall ROI of {aggregate.overall_roi:.2f}% on {aggregate.total_spend:,.2f} spend")
    if aggregate.total_traffic < 1000:
        challenges.append(f"Traffic of {aggregate.total_traffic:,} users is below 1,000 for the period")
        recommendations.append("Increase Organic Traffic: focus on SEO optimization and content marketing to boost organic traffic")
        actions.append("Audit top landing pages and publish targeted content for high-intent keywords")
    if aggregate.total_conversions < 100:
        challenges.append(f"Conversions ({aggregate.total_conversions:,}) are below 100 for the period")
        recommendations.append("Improve Conversion Rate: optimize landing pages and run A/B tests on key forms")
        actions.append("Set up A/B tests on the highest-traffic landing page")
    if aggregate.overall_roi is not None and aggregate.overall_roi < 0:
        challenges.append(f"Overall ROI is negative ({aggregate.overall_roi:.2f}%)")
        recommendations.append("Optimize Ad Spend: review and pause underperforming campaigns to restore positive ROI")
        actions.append("Reallocate budget away from campaigns with negative return")
    missing = [s for s, ok in aggregate.data_sources.items() if not ok]
    if missing:
        challenges.append(f"No data received from: {', '.join(missing)}")

    overview = (
        f"{name} {period} report based on data from {len(sources)} of {len(aggregate.data_sources)} connected platforms. "
        f"The period recorded {aggregate.total_traffic:,} users, {aggregate.total_conversions:,} conversions, "
        f"{aggregate.total_spend:,.2f} in ad spend and {aggregate.total_revenue:,.2f} in revenue."
    )
    return ClientReportInsights(
        executive_summary=ExecutiveSummary(
            overview=overview,
            key_achievements=achievements,
            challenges=challenges,
            recommendations=recommendations,
        ),
        performance_analysis=PerformanceAnalysis(
            traffic_analysis=f"{aggregate.total_traffic:,} users, bounce rate {_na(aggregate.bounce_rate, '{:.1f}%')}",
            conversion_analysis=(
                f"{aggregate.total_conversions:,} conversions, conversion rate {_na(aggregate.conversion_rate, '{:.2f}%')}, "
                f"cost per conversion {_na(aggregate.cost_per_conversion, '{:,.2f}')}"
            ),
            roi_analysis=f"Overall ROI {_na(aggregate.overall_roi, '{:.2f}%')}",
            channel_performance=f"Reporting sources: {', '.join(sources) if sources else 'none'}",
        ),
        strategic_recommendations=StrategicRecommendations(immediate_actions=actions),
    )


@dataclass(frozen=True)
class ClientReport:
    client_info: Dict[str, str]
    window: Tuple[datetime, datetime]
    platforms: Dict[str, Optional[PlatformMetrics]]
    metrics: MetricsAggregate
    key_insights: List[str]
    top_channels: List[TopChannel]
    insights: ClientReportInsights
    narrative: GenerationResult
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        metrics = self.metrics.model_dump(mode="json", by_alias=True, exclude={"data_sources"})
        platforms = {
            name: m.model_dump(mode="json", by_alias=True, exclude_none=True) if m is not None else None
            for name, m in sorted(self.platforms.items())
        }
        return {
            "clientInfo": dict(self.client_info),
            "window": {"start": self.window[0].date().isoformat(), "end": self.window[1].date().isoformat()},
            "dataSources": dict(self.metrics.data_sources),
            "platforms": platforms,
            "metrics": metrics,
            "keyInsights": list(self.key_insights),
            "topPerformingChannels": [c.model_dump(mode="json") for c in self.top_channels],
            "insights": self.insights.model_dump(mode="json", by_alias=True),
            "narrative": {
                "status": self.narrative.status.value,
                "source": self.narrative.source.value if self.narrative.source else None,
                "errorKind": self.narrative.error_kind.value if self.narrative.error_kind else None,
            },
            "generatedAt": self.generated_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=2)


def _narrative_fields(
    client: Mapping[str, str],
    aggregate: MetricsAggregate,
    insights: Sequence[str],
    channels: Sequence[TopChannel],
) -> Dict[str, str]:
    fields = {
        "clientName": client["name"],
        "reportingPeriod": client["reportingPeriod"],
        "industry": client["industry"],
        "services": client["services"],
        "totalTraffic": f"{aggregate.total_traffic:,}",
        "totalConversions": f"{aggregate.total_conversions:,}",
        "totalSpend": f"{aggregate.total_spend:,.2f}",
        "totalRevenue": f"{aggregate.total_revenue:,.2f}",
        "dataSources": ", ".join(s for s, ok in aggregate.data_sources.items() if ok) or "none",
        "keyInsights": "; ".join(insights) or "none",
        "topPerformingChannels": ", ".join(
            f"{c.name}: {_fmt_metric(c.metric)} {c.type.lower()}" for c in channels
        ) or "none",
    }
    if aggregate.overall_roi is not None:
        fields["overallRoi"] = f"{aggregate.overall_roi:.2f}%"
    if aggregate.conversion_rate is not None:
        fields["conversionRate"] = f"{aggregate.conversion_rate:.2f}%"
    return fields


class ReportComposer:
    def __init__(
        self,
        service: GenerationService,
        platforms: Sequence[MetricsPlatform],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.service = service
        self.platforms = list(platforms)
        self.clock = clock

    async def _fetch(self, platform: MetricsPlatform, client_config: Mapping[str, Any], start: str, end: str) -> PlatformMetrics:
        raw = await platform.fetch_metrics(client_config, start, end)
        return PlatformMetrics.model_validate(raw)

    async def collect(self, client_config: Mapping[str, Any], start: datetime, end: datetime) -> Dict[str, Optional[PlatformMetrics]]:
        start_s, end_s = _ymd(start), _ymd(end)
        gathered = await asyncio.gather(
            *(self._fetch(p, client_config, start_s, end_s) for p in self.platforms),
            return_exceptions=True,
        )
        results: Dict[str, Optional[PlatformMetrics]] = {}
        for platform, got in zip(self.platforms, gathered):
            if isinstance(got, BaseException):
                if not isinstance(got, Exception):
                    raise got
                logger.warning("Metrics platform %s (%s) unavailable: %s", platform.name, platform.kind, got)
                results[platform.name] = None
            else:
                results[platform.name] = got
        return results

    async def compose(
        self,
        fields: Mapping[str, Any],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        retry_budget: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ClientReport:
        """Build the composite report. Absent client details take CLIENT_DEFAULTS."""
        resolved = resolve_fields(get_tool(REPORT_TOOL_ID), fields)
        client = {
            "name": resolved.get("clientName", CLIENT_DEFAULTS["name"]),
            "reportingPeriod": resolved.get("reportingPeriod", CLIENT_DEFAULTS["reportingPeriod"]),
            "industry": resolved.get("industry", CLIENT_DEFAULTS["industry"]),
            "services": resolved.get("services", CLIENT_DEFAULTS["services"]),
        }
        now = self.clock()
        start, end = resolve_window(client["reportingPeriod"], now)
        per_platform = await self.collect({**fields, **client, "clientName": client["name"]}, start, end)
        aggregate = aggregate_metrics(per_platform)
        platform_insights = key_insights(per_platform)
        channels = top_channels(per_platform)

        narrative = await self.service.generate(
            REPORT_TOOL_ID,
            _narrative_fields(client, aggregate, platform_insights, channels),
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            retry_budget=retry_budget,
            cancel=cancel,
        )
        if narrative.source is ResultSource.LIVE and isinstance(narrative.content, ClientReportInsights):
            insights = narrative.content
        else:
            logger.warning("Narrative for %s not live (%s), using templated insights",
                           client["name"], narrative.error_kind.value if narrative.error_kind else narrative.status.value)
            insights = templated_insights(aggregate, client)

        return ClientReport(
            client_info=client,
            window=(start, end),
            platforms=per_platform,
            metrics=aggregate,
            key_insights=platform_insights,
            top_channels=channels,
            insights=insights,
            narrative=narrative,
            generated_at=now,
        )
