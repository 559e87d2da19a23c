from __future__ import annotations
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ErrorKind, GenerationError
from .schemas import load_data_file


@dataclass(frozen=True)
class ToolSpec:
    id: str
    name: str
    category: str
    family: str
    system_prompt: str
    required_fields: Tuple[str, ...]
    optional_fields: Tuple[str, ...] = ()
    aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    description: str = ""
    instructions: str = ""
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "requiredFields": list(self.required_fields),
            "optionalFields": list(self.optional_fields),
        }


@dataclass(frozen=True)
class ToolCatalog:
    version: str
    tools: Tuple[ToolSpec, ...]

    def get(self, tool_id: str) -> ToolSpec:
        for t in self.tools:
            if t.id == tool_id:
                return t
        raise GenerationError(ErrorKind.VALIDATION, f"Unknown tool: {tool_id}")

    def ids(self) -> List[str]:
        return [t.id for t in self.tools]


def _build_catalog(data: Dict[str, Any]) -> ToolCatalog:
    families: Dict[str, str] = data["families"]
    tools: List[ToolSpec] = []
    for raw in data["tools"]:
        family = raw["family"]
        if family not in families:
            raise ValueError(f"tool {raw['id']} references unknown family {family!r}")
        tools.append(ToolSpec(
            id=raw["id"],
            name=raw["name"],
            category=raw["category"],
            family=family,
            system_prompt=families[family],
            required_fields=tuple(raw["required_fields"]),
            optional_fields=tuple(raw.get("optional_fields") or ()),
            aliases={k: tuple(v) for k, v in (raw.get("aliases") or {}).items()},
            description=raw.get("description", ""),
            instructions=raw.get("instructions", ""),
            max_tokens=raw.get("max_tokens"),
            temperature=raw.get("temperature"),
        ))
    ids = [t.id for t in tools]
    if len(ids) != len(set(ids)):
        raise ValueError("duplicate tool ids in tools.json")
    return ToolCatalog(version=data["version"], tools=tuple(tools))


@lru_cache(maxsize=1)
def load_catalog() -> ToolCatalog:
    return _build_catalog(load_data_file("tools"))


def get_tool(tool_id: str) -> ToolSpec:
    return load_catalog().get(tool_id)


def list_tools() -> List[ToolSpec]:
    return list(load_catalog().tools)


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def resolve_fields(tool: ToolSpec, fields: Mapping[str, Any]) -> Dict[str, str]:
    """Return the tool's inputs as an ordered str->str map.

    Required fields come first in catalog order (aliases folded into the
    canonical name), followed by the remaining non-empty inputs in caller
    order. Raises GenerationError(VALIDATION) listing every missing field.
    """
    resolved: Dict[str, str] = {}
    consumed = set()
    missing: List[str] = []
    for name in tool.required_fields:
        for candidate in (name,) + tuple(tool.aliases.get(name, ())):
            if _present(fields.get(candidate)):
                resolved[name] = str(fields[candidate]).strip()
                consumed.add(candidate)
                break
        else:
            missing.append(name)
    if missing:
        raise GenerationError(
            ErrorKind.VALIDATION,
            f"Missing required field(s) for {tool.id}: {', '.join(missing)}",
        )
    for name, value in fields.items():
        if name in consumed or name in resolved or not _present(value):
            continue
        resolved[name] = str(value).strip()
    return resolved
