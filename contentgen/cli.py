from __future__ import annotations
import argparse
import asyncio
import json
import sys
from typing import Dict, List, Optional

from .config import configure_logging, get_settings
from .generation import GenerationService
from .metrics_sources import demo_platforms
from .models import ResultStatus
from .report_composer import ReportComposer
from .tools import list_tools


def _parse_fields(pairs: List[str]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"expected key=value, got {pair!r}")
        k, v = pair.split("=", 1)
        fields[k.strip()] = v
    return fields


def cmd_tools() -> int:
    for t in list_tools():
        required = ", ".join(t.required_fields)
        print(f"{t.id:<22} {t.category:<12} requires: {required}")
    return 0


def cmd_generate(service: GenerationService, tool_id: str, pairs: List[str], retry_budget: Optional[int]) -> int:
    try:
        fields = _parse_fields(pairs)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    result = asyncio.run(service.generate(tool_id, fields, retry_budget=retry_budget))
    print(json.dumps(result.to_dict(), indent=2))
    if result.status is ResultStatus.ERROR:
        print(f"{result.error_kind.value if result.error_kind else 'error'}: {result.message}", file=sys.stderr)
        return 2
    return 0


def cmd_report(
    composer: ReportComposer,
    client: Optional[str],
    period: Optional[str],
    pairs: List[str],
    retry_budget: Optional[int],
) -> int:
    try:
        fields = _parse_fields(pairs)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    if client:
        fields["clientName"] = client
    if period:
        fields["reportingPeriod"] = period
    report = asyncio.run(composer.compose(fields, retry_budget=retry_budget))
    print(report.to_json())
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="contentgen", description="Generate tool content with retries and fallback")
    sub = p.add_subparsers(dest="command")
    sub.add_parser("tools", help="List available tools")

    g = sub.add_parser("generate", help="Run one tool")
    g.add_argument("--tool", dest="tool", required=True, help="Tool id, e.g. seo-audit")
    g.add_argument("--field", dest="fields", action="append", default=[], help="Input field as key=value (repeatable)")
    g.add_argument("--retry-budget", dest="retry_budget", type=int, default=None, help="Retries after the first attempt")

    r = sub.add_parser("report", help="Compose a client report")
    r.add_argument("--client", dest="client", default=None, help="Client name (default: Client)")
    r.add_argument("--period", dest="period", default=None, help="weekly, monthly or quarterly (default: Monthly)")
    r.add_argument("--field", dest="fields", action="append", default=[], help="Extra field as key=value (repeatable)")
    r.add_argument("--retry-budget", dest="retry_budget", type=int, default=None, help="Retries after the first attempt")
    return p


def main(argv: List[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    if args.command == "tools":
        return cmd_tools()
    if args.command == "generate":
        return cmd_generate(GenerationService(settings), args.tool, args.fields, args.retry_budget)
    if args.command == "report":
        composer = ReportComposer(GenerationService(settings), demo_platforms())
        return cmd_report(composer, args.client, args.period, args.fields, args.retry_budget)
    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
