"""Typed output shapes, one per tool.

Wire keys are camelCase. Primitive fields are strict so a provider answer
with the wrong type is rejected instead of coerced; optional fields default
to "N/A", 0 or an empty collection so partially populated answers validate.
"""
from __future__ import annotations
from typing import Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

from .errors import ErrorKind, GenerationError

NA = "N/A"


class ToolResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)


class Recommendation(ToolResult):
    title: StrictStr
    category: StrictStr = NA
    priority: StrictStr = "medium"
    description: StrictStr = NA
    action: StrictStr = NA


# seo-audit

class AuditSummary(ToolResult):
    score: StrictInt = 0
    passed: StrictInt = 0
    warnings: StrictInt = 0
    failed: StrictInt = 0
    critical_issues: StrictInt = 0


class AuditCheck(ToolResult):
    name: StrictStr
    category: StrictStr = NA
    status: StrictStr = "info"
    score: StrictInt = 0
    description: StrictStr = NA
    how_to_fix: StrictStr = NA


class SeoAuditResult(ToolResult):
    url: StrictStr = NA
    overall_score: StrictInt
    summary: AuditSummary = Field(default_factory=AuditSummary)
    checks: List[AuditCheck] = Field(default_factory=list)
    critical_issues: List[StrictStr] = Field(default_factory=list)
    warnings: List[StrictStr] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


# social-media

class SocialPost(ToolResult):
    platform: StrictStr = NA
    content: StrictStr
    hashtags: List[StrictStr] = Field(default_factory=list)
    best_time: StrictStr = NA
    engagement_tip: StrictStr = NA


class CalendarEntry(ToolResult):
    day: StrictStr
    platform: StrictStr = NA
    theme: StrictStr = NA


class ContentMix(ToolResult):
    educational: StrictInt = 0
    engaging: StrictInt = 0
    promotional: StrictInt = 0
    user_generated: StrictInt = 0


class SocialMediaResult(ToolResult):
    posts: List[SocialPost]
    hashtag_strategy: List[StrictStr] = Field(default_factory=list)
    content_calendar: List[CalendarEntry] = Field(default_factory=list)
    content_mix: ContentMix = Field(default_factory=ContentMix)


# blog-writing

class BlogWritingResult(ToolResult):
    title: StrictStr
    meta_description: StrictStr = NA
    outline: List[StrictStr] = Field(default_factory=list)
    content: StrictStr = NA
    keywords: List[StrictStr] = Field(default_factory=list)
    word_count: StrictInt = 0
    seo_score: StrictInt = 0


# email-marketing

class EmailMessage(ToolResult):
    subject: StrictStr
    preview_text: StrictStr = NA
    body: StrictStr
    call_to_action: StrictStr = NA


class EmailMetrics(ToolResult):
    open_rate: StrictStr = NA
    click_rate: StrictStr = NA
    conversion_rate: StrictStr = NA


class EmailMarketingResult(ToolResult):
    emails: List[EmailMessage]
    subject_lines: List[StrictStr] = Field(default_factory=list)
    send_schedule: List[StrictStr] = Field(default_factory=list)
    ab_test_ideas: List[StrictStr] = Field(default_factory=list)
    expected_metrics: EmailMetrics = Field(default_factory=EmailMetrics)


# ad-copy

class AdVariation(ToolResult):
    platform: StrictStr = NA
    headline: StrictStr
    description: StrictStr = NA
    call_to_action: StrictStr = NA


class AdCopyResult(ToolResult):
    variations: List[AdVariation]
    targeting_suggestions: List[StrictStr] = Field(default_factory=list)
    budget_recommendation: StrictStr = NA


# product-launch

class LaunchPhase(ToolResult):
    phase: StrictStr
    timeline: StrictStr = NA
    activities: List[StrictStr] = Field(default_factory=list)
    deliverables: List[StrictStr] = Field(default_factory=list)
    kpis: List[StrictStr] = Field(default_factory=list)


class LaunchAnalytics(ToolResult):
    expected_reach: StrictStr = NA
    projected_signups: StrictStr = NA
    estimated_revenue: StrictStr = NA
    conversion_rate: StrictStr = NA


class ProductLaunchResult(ToolResult):
    timeline: List[LaunchPhase]
    email_campaigns: Dict[str, StrictStr] = Field(default_factory=dict)
    social_media_posts: Dict[str, StrictStr] = Field(default_factory=dict)
    press_release: StrictStr = NA
    analytics: LaunchAnalytics = Field(default_factory=LaunchAnalytics)


# competitor-analysis

class Competitor(ToolResult):
    name: StrictStr
    market_share: StrictStr = NA
    strengths: List[StrictStr] = Field(default_factory=list)
    weaknesses: List[StrictStr] = Field(default_factory=list)


class Swot(ToolResult):
    strengths: List[StrictStr] = Field(default_factory=list)
    weaknesses: List[StrictStr] = Field(default_factory=list)
    opportunities: List[StrictStr] = Field(default_factory=list)
    threats: List[StrictStr] = Field(default_factory=list)


class CompetitorAnalysisResult(ToolResult):
    competitors: List[Competitor]
    market_position: StrictStr = NA
    swot: Swot = Field(default_factory=Swot)
    recommendations: List[StrictStr] = Field(default_factory=list)


# client-reporting (narrative half of the composite report)

class ExecutiveSummary(ToolResult):
    overview: StrictStr
    key_achievements: List[StrictStr] = Field(default_factory=list)
    challenges: List[StrictStr] = Field(default_factory=list)
    recommendations: List[StrictStr] = Field(default_factory=list)


class PerformanceAnalysis(ToolResult):
    traffic_analysis: StrictStr = NA
    conversion_analysis: StrictStr = NA
    roi_analysis: StrictStr = NA
    channel_performance: StrictStr = NA


class StrategicRecommendations(ToolResult):
    immediate_actions: List[StrictStr] = Field(default_factory=list)
    long_term_strategy: StrictStr = NA
    budget_allocation: StrictStr = NA
    expected_outcomes: StrictStr = NA


class ClientReportInsights(ToolResult):
    executive_summary: ExecutiveSummary
    performance_analysis: PerformanceAnalysis = Field(default_factory=PerformanceAnalysis)
    strategic_recommendations: StrategicRecommendations = Field(default_factory=StrategicRecommendations)


class ContentUnavailable(ToolResult):
    message: StrictStr = "Content is temporarily unavailable. Please try again later."
    tool_id: Optional[StrictStr] = None


RESULT_MODELS: Dict[str, Type[ToolResult]] = {
    "seo-audit": SeoAuditResult,
    "social-media": SocialMediaResult,
    "blog-writing": BlogWritingResult,
    "email-marketing": EmailMarketingResult,
    "ad-copy": AdCopyResult,
    "product-launch": ProductLaunchResult,
    "competitor-analysis": CompetitorAnalysisResult,
    "client-reporting": ClientReportInsights,
}


def result_model(tool_id: str) -> Type[ToolResult]:
    return RESULT_MODELS.get(tool_id, ContentUnavailable)


def coerce_content(tool_id: str, data: object) -> ToolResult:
    """Validate a parsed provider answer against the tool's shape.

    Raises GenerationError(PARSE) for non-objects, missing required fields
    and wrongly typed values.
    """
    if not isinstance(data, dict):
        raise GenerationError(ErrorKind.PARSE, f"expected a JSON object, got {type(data).__name__}")
    model = result_model(tool_id)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise GenerationError(
            ErrorKind.PARSE,
            f"{tool_id} content failed validation ({e.error_count()} errors, first at {loc or '<root>'}: {first.get('msg')})",
        ) from e
