from __future__ import annotations
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import __version__
from .config import api_key_configured, configure_logging, get_settings
from .errors import ErrorKind
from .generation import GenerationService
from .metrics_sources import demo_platforms
from .models import ResultStatus
from .report_composer import REPORT_TOOL_ID, ReportComposer
from .tools import list_tools, load_catalog

HTTP_STATUS_FOR_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.QUOTA_EXCEEDED: 402,
    ErrorKind.CANCELLED: 499,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(get_settings().log_level)
    yield


app = FastAPI(title="Content Generation Service", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class Health(BaseModel):
    status: str


class VersionInfo(BaseModel):
    version: str
    openai_enabled: bool
    model: str
    retry_budget: int
    catalog_version: str


class GenerateBody(BaseModel):
    fields: Dict[str, Any] = Field(default_factory=dict)
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    retry_budget: Optional[int] = Field(default=None, ge=0, le=10)


@lru_cache(maxsize=1)
def get_service() -> GenerationService:
    return GenerationService()


def get_composer(service: GenerationService = Depends(get_service)) -> ReportComposer:
    return ReportComposer(service, demo_platforms())


def _raise_for_kind(kind: ErrorKind, message: str) -> None:
    raise HTTPException(
        status_code=HTTP_STATUS_FOR_KIND.get(kind, 500),
        detail={"errorKind": kind.value, "message": message},
    )


@app.get("/health", response_model=Health)
async def health():
    return Health(status="ok")


@app.get("/version", response_model=VersionInfo)
async def version():
    s = get_settings()
    return VersionInfo(
        version=__version__,
        openai_enabled=api_key_configured(s),
        model=s.model,
        retry_budget=s.retry_budget,
        catalog_version=load_catalog().version,
    )


@app.get("/tools")
async def tools() -> List[Dict[str, Any]]:
    return [t.to_dict() for t in list_tools()]


@app.post("/tools/{tool_id}/generate")
async def generate_tool(
    tool_id: str,
    body: GenerateBody,
    service: GenerationService = Depends(get_service),
    composer: ReportComposer = Depends(get_composer),
) -> Dict[str, Any]:
    if tool_id not in load_catalog().ids():
        raise HTTPException(status_code=404, detail=f"unknown tool: {tool_id}")

    if tool_id == REPORT_TOOL_ID:
        report = await composer.compose(
            body.fields,
            model=body.model,
            max_tokens=body.max_tokens,
            temperature=body.temperature,
            retry_budget=body.retry_budget,
        )
        return report.to_dict()

    result = await service.generate(
        tool_id,
        body.fields,
        model=body.model,
        max_tokens=body.max_tokens,
        temperature=body.temperature,
        retry_budget=body.retry_budget,
    )
    if result.status is ResultStatus.ERROR and result.error_kind is not None:
        _raise_for_kind(result.error_kind, result.message or "")
    return result.to_dict()
