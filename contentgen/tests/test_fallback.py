import json

import httpx
import pytest

from contentgen.errors import ErrorKind, GenerationError
from contentgen.fallback import FallbackRegistry, FallbackSynthesizer, load_fallback_registry
from contentgen.models import ResultSource, ResultStatus
from contentgen.schemas import load_data_file
from contentgen.tool_results import RESULT_MODELS, ContentUnavailable
from contentgen.tools import load_catalog

from .helpers import ok, scripted

SAMPLE_FIELDS = {
    "seo-audit": {"url": "https://example.com"},
    "social-media": {"topic": "spring sale"},
    "blog-writing": {"topic": "local SEO for dentists"},
    "email-marketing": {"subject": "Welcome", "audience": "new subscribers"},
    "ad-copy": {"product": "Trail running shoes"},
    "product-launch": {"productName": "Acme Notes"},
    "competitor-analysis": {"companyName": "Acme"},
    "client-reporting": {"clientName": "Acme", "reportingPeriod": "Monthly"},
}


def test_every_catalog_tool_has_a_template():
    registry = load_fallback_registry()
    assert set(load_catalog().ids()) == set(registry.tool_ids)
    assert set(SAMPLE_FIELDS) == set(load_catalog().ids())


@pytest.mark.parametrize("tool_id", sorted(RESULT_MODELS))
def test_templates_match_their_model(tool_id):
    registry = load_fallback_registry()
    template = registry.template(tool_id)
    assert isinstance(template, RESULT_MODELS[tool_id])
    # re-validating the dumped template is lossless
    again = RESULT_MODELS[tool_id].model_validate(template.model_dump(by_alias=True))
    assert again.model_dump() == template.model_dump()


def test_unknown_tool_gets_generic_shape():
    template = load_fallback_registry().template("does-not-exist")
    assert isinstance(template, ContentUnavailable)
    assert template.tool_id == "does-not-exist"


def test_registry_is_read_only():
    registry = load_fallback_registry()
    with pytest.raises(TypeError):
        registry._templates["seo-audit"] = None
    assert load_fallback_registry() is registry


def test_drifted_template_is_rejected():
    data = load_data_file("fallback_templates")
    bad = json.loads(json.dumps(data))
    bad["templates"]["seo-audit"]["overallScore"] = "high"
    with pytest.raises(GenerationError):
        FallbackRegistry.from_data(bad)


@pytest.mark.parametrize("kind", [ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT_NETWORK, ErrorKind.PARSE])
def test_synthesize_for_absorbed_kinds(kind):
    result = FallbackSynthesizer().synthesize("ad-copy", kind)
    assert result.status is ResultStatus.FALLBACK
    assert result.source is ResultSource.FALLBACK
    assert result.error_kind is kind
    assert result.content == load_fallback_registry().template("ad-copy")


@pytest.mark.parametrize("kind", [
    ErrorKind.CONFIGURATION, ErrorKind.AUTHENTICATION, ErrorKind.QUOTA_EXCEEDED,
    ErrorKind.VALIDATION, ErrorKind.CANCELLED,
])
def test_synthesize_refuses_fatal_kinds(kind):
    assert not FallbackSynthesizer.applies_to(kind)
    with pytest.raises(ValueError):
        FallbackSynthesizer().synthesize("ad-copy", kind)


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_id", sorted(SAMPLE_FIELDS))
async def test_fallback_content_matches_tool_schema(make_service, tool_id):
    service = make_service(scripted([httpx.Response(503, text="upstream down")]))
    result = await service.generate(tool_id, SAMPLE_FIELDS[tool_id])
    assert result.status is ResultStatus.FALLBACK
    assert isinstance(result.content, RESULT_MODELS[tool_id])


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_id", sorted(SAMPLE_FIELDS))
async def test_live_content_matches_tool_schema(make_service, tool_id):
    live = load_fallback_registry().template_data(tool_id)
    service = make_service(scripted([ok(json.dumps(live))]))
    result = await service.generate(tool_id, SAMPLE_FIELDS[tool_id])
    assert result.status is ResultStatus.SUCCESS
    assert result.source is ResultSource.LIVE
    assert isinstance(result.content, RESULT_MODELS[tool_id])
