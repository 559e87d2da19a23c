from __future__ import annotations
import json
from typing import Any, Dict, List, Mapping, Optional

from .config import Settings
from .fallback import load_fallback_registry
from .models import GenerationRequest
from .tools import ToolSpec, get_tool, resolve_fields

JSON_ONLY = "Return ONLY valid JSON, no explanation and no markdown."


def output_skeleton(value: Any) -> Any:
    """Blank copy of a template: strings emptied, numbers zeroed, lists cut to one item."""
    if isinstance(value, dict):
        return {k: output_skeleton(v) for k, v in value.items()}
    if isinstance(value, list):
        return [output_skeleton(value[0])] if value else []
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return 0
    if isinstance(value, str):
        return ""
    return None


def build_request(
    tool_id: str,
    fields: Mapping[str, Any],
    settings: Settings,
    *,
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    retry_budget: Optional[int] = None,
) -> GenerationRequest:
    """Validate inputs and freeze them into a GenerationRequest.

    Unknown tools and missing required fields raise GenerationError(VALIDATION)
    before anything touches the network. Explicit arguments win over the
    tool's catalog defaults, which win over process settings.
    """
    tool = get_tool(tool_id)
    resolved = resolve_fields(tool, fields or {})
    return GenerationRequest(
        tool_id=tool.id,
        fields=resolved,
        model=model or settings.model,
        max_tokens=max_tokens or tool.max_tokens or settings.max_tokens,
        temperature=temperature if temperature is not None else (
            tool.temperature if tool.temperature is not None else settings.temperature
        ),
        retry_budget=retry_budget if retry_budget is not None else settings.retry_budget,
    )


def _user_prompt(tool: ToolSpec, fields: Mapping[str, str]) -> str:
    lines = [f"{name}: {value}" for name, value in fields.items()]
    template = load_fallback_registry().template_data(tool.id)
    shape = json.dumps(output_skeleton(template), indent=2)
    parts = [
        f"Generate {tool.name} output in JSON format for the following requirements:",
        "\n".join(lines),
    ]
    if tool.instructions:
        parts.append(tool.instructions)
    parts.append(f"Generate a JSON object with this EXACT structure:\n{shape}")
    parts.append(JSON_ONLY)
    return "\n\n".join(parts)


def build_messages(request: GenerationRequest) -> List[Dict[str, str]]:
    tool = get_tool(request.tool_id)
    return [
        {"role": "system", "content": tool.system_prompt},
        {"role": "user", "content": _user_prompt(tool, request.fields)},
    ]
