from __future__ import annotations
import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ErrorKind
from .models import GenerationAttempt, GenerationResult, ResultSource, ResultStatus
from .schemas import load_data_file
from .tool_results import ContentUnavailable, ToolResult, coerce_content

logger = logging.getLogger(__name__)

FALLBACK_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT_NETWORK, ErrorKind.PARSE})


class FallbackRegistry:
    """Read-only table of schema-valid placeholder results keyed by tool id."""

    def __init__(self, templates: Mapping[str, ToolResult], raw: Mapping[str, Dict[str, Any]], generic: ContentUnavailable) -> None:
        self._templates = MappingProxyType(dict(templates))
        self._raw = MappingProxyType(dict(raw))
        self.generic = generic

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "FallbackRegistry":
        templates: Dict[str, ToolResult] = {}
        for tool_id, payload in data["templates"].items():
            # GenerationError(PARSE) here means the bundled template drifted from its model
            templates[tool_id] = coerce_content(tool_id, payload)
        generic = ContentUnavailable.model_validate(data["generic"])
        return cls(templates, data["templates"], generic)

    @property
    def tool_ids(self) -> Tuple[str, ...]:
        return tuple(self._templates)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._templates

    def template(self, tool_id: str) -> ToolResult:
        found = self._templates.get(tool_id)
        if found is not None:
            return found
        return self.generic.model_copy(update={"tool_id": tool_id})

    def template_data(self, tool_id: str) -> Dict[str, Any]:
        return self._raw.get(tool_id) or self.generic.model_dump(by_alias=True)


@lru_cache(maxsize=1)
def load_fallback_registry() -> FallbackRegistry:
    return FallbackRegistry.from_data(load_data_file("fallback_templates"))


class FallbackSynthesizer:
    def __init__(self, registry: Optional[FallbackRegistry] = None) -> None:
        self.registry = registry or load_fallback_registry()

    @staticmethod
    def applies_to(kind: Optional[ErrorKind]) -> bool:
        return kind in FALLBACK_KINDS

    def synthesize(
        self,
        tool_id: str,
        kind: ErrorKind,
        attempts: Tuple[GenerationAttempt, ...] = (),
        tokens_used: Optional[int] = None,
    ) -> GenerationResult:
        if not self.applies_to(kind):
            raise ValueError(f"{kind.value} must surface to the caller and cannot be replaced by fallback content")
        logger.warning("Serving fallback content for %s after %s (%d attempts)", tool_id, kind.value, len(attempts))
        return GenerationResult(
            status=ResultStatus.FALLBACK,
            source=ResultSource.FALLBACK,
            content=self.registry.template(tool_id),
            tool_id=tool_id,
            error_kind=kind,
            attempts=attempts,
            tokens_used=tokens_used,
        )
