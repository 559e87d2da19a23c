import json

import pytest

from contentgen.cli import _parse_fields, main


@pytest.fixture
def no_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("USAGE_LOG_PATH", raising=False)


def test_parse_fields():
    assert _parse_fields(["url=https://example.com/?a=b", "tone= bold"]) == {
        "url": "https://example.com/?a=b", "tone": " bold",
    }
    with pytest.raises(ValueError):
        _parse_fields(["novalue"])


def test_tools_command(capsys, no_key):
    assert main(["tools"]) == 0
    out = capsys.readouterr().out
    assert "seo-audit" in out
    assert "client-reporting" in out


def test_generate_without_key_exits_2(capsys, no_key):
    assert main(["generate", "--tool", "seo-audit", "--field", "url=https://example.com"]) == 2
    captured = capsys.readouterr()
    assert json.loads(captured.out)["errorKind"] == "configuration_error"
    assert "configuration_error" in captured.err


def test_generate_bad_field_exits_2(capsys, no_key):
    assert main(["generate", "--tool", "seo-audit", "--field", "url"]) == 2


def test_report_degrades_without_key(capsys, no_key):
    assert main(["report", "--client", "Acme", "--period", "weekly"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["narrative"]["errorKind"] == "configuration_error"
    assert doc["clientInfo"]["reportingPeriod"] == "weekly"
    assert doc["insights"]["executiveSummary"]["overview"]


def test_no_command_prints_help(capsys, no_key):
    assert main([]) == 2


def test_report_without_client_uses_defaults(capsys, no_key):
    assert main(["report"]) == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["clientInfo"]["name"] == "Client"
    assert doc["clientInfo"]["reportingPeriod"] == "Monthly"
