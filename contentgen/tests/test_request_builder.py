import json

import pytest

from contentgen.config import Settings
from contentgen.errors import ErrorKind, GenerationError
from contentgen.request_builder import JSON_ONLY, build_messages, build_request, output_skeleton
from contentgen.tools import get_tool, list_tools, resolve_fields


def test_catalog_order_and_ids():
    assert [t.id for t in list_tools()] == [
        "seo-audit", "social-media", "blog-writing", "email-marketing",
        "ad-copy", "product-launch", "competitor-analysis", "client-reporting",
    ]


def test_unknown_tool_raises_validation():
    with pytest.raises(GenerationError) as exc:
        get_tool("nope")
    assert exc.value.kind is ErrorKind.VALIDATION


def test_missing_fields_are_all_listed():
    with pytest.raises(GenerationError) as exc:
        resolve_fields(get_tool("email-marketing"), {"subject": "  "})
    assert exc.value.kind is ErrorKind.VALIDATION
    assert "subject" in exc.value.message
    assert "audience" in exc.value.message


def test_aliases_fold_into_canonical_names():
    fields = resolve_fields(get_tool("email-marketing"), {
        "tone": "friendly", "subjectLine": "Spring sale", "targetAudience": "returning buyers",
    })
    assert list(fields.items()) == [
        ("subject", "Spring sale"), ("audience", "returning buyers"), ("tone", "friendly"),
    ]


def test_empty_optional_fields_are_dropped():
    fields = resolve_fields(get_tool("seo-audit"), {"url": "https://example.com", "keywords": "", "notes": None})
    assert fields == {"url": "https://example.com"}


def test_request_precedence():
    settings = Settings(api_key="k", model="gpt-4", max_tokens=1000, temperature=0.7, retry_budget=2)
    req = build_request("seo-audit", {"url": "https://example.com"}, settings)
    assert req.model == "gpt-4"
    assert req.retry_budget == 2
    assert req.max_attempts == 3

    req = build_request("seo-audit", {"url": "https://example.com"}, settings,
                        model="gpt-4o", max_tokens=50, temperature=0.0, retry_budget=0)
    assert (req.model, req.max_tokens, req.temperature, req.retry_budget) == ("gpt-4o", 50, 0.0, 0)


def test_request_is_immutable():
    source = {"url": "https://example.com"}
    req = build_request("seo-audit", source, Settings(api_key="k"))
    source["url"] = "https://changed.example"
    assert req.fields["url"] == "https://example.com"
    with pytest.raises(TypeError):
        req.fields["url"] = "x"
    with pytest.raises(Exception):
        req.model = "other"


def test_messages_are_deterministic():
    settings = Settings(api_key="k")
    a = build_messages(build_request("ad-copy", {"product": "Shoes", "platform": "Google"}, settings))
    b = build_messages(build_request("ad-copy", {"product": "Shoes", "platform": "Google"}, settings))
    assert a == b
    assert [m["role"] for m in a] == ["system", "user"]
    assert a[0]["content"] == get_tool("ad-copy").system_prompt


def test_user_prompt_carries_fields_and_shape():
    req = build_request("seo-audit", {"url": "https://example.com"}, Settings(api_key="k"))
    user = build_messages(req)[1]["content"]
    assert "url: https://example.com" in user
    assert "EXACT structure" in user
    assert '"overallScore": 0' in user
    assert user.endswith(JSON_ONLY)


def test_tools_in_one_family_share_a_system_prompt():
    tools = {t.id: t for t in list_tools()}
    assert tools["social-media"].family == tools["blog-writing"].family
    assert tools["social-media"].system_prompt == tools["blog-writing"].system_prompt


def test_output_skeleton_blanks_values():
    template = {"a": "text", "n": 5, "f": 1.5, "b": True, "items": [{"x": "y"}, {"x": "z"}], "empty": [], "none": None}
    assert output_skeleton(template) == {
        "a": "", "n": 0, "f": 0, "b": False, "items": [{"x": ""}], "empty": [], "none": None,
    }
    json.dumps(output_skeleton(template))
