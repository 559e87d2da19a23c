from __future__ import annotations
import asyncio
import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class UsageRecord:
    tool_id: str
    status: str
    duration_ms: int
    tokens_used: Optional[int] = None
    error_kind: Optional[str] = None
    absorbed: bool = False
    recorded_at: str = field(default_factory=_utcnow_iso)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UsageRecorder:
    """Default sink: one structured log line per generate call."""

    def record(self, rec: UsageRecord) -> None:
        logger.info(
            "usage tool=%s status=%s duration_ms=%d tokens=%s error_kind=%s absorbed=%s",
            rec.tool_id, rec.status, rec.duration_ms, rec.tokens_used, rec.error_kind, rec.absorbed,
        )

    async def arecord(self, rec: UsageRecord) -> None:
        # non-blocking sinks record inline; blocking ones override this
        self.record(rec)


class JsonlUsageRecorder(UsageRecorder):
    """Appends each record as a JSON line to `path`, creating parent folders.

    `arecord` hands the write to a worker thread so the event loop never
    waits on the disk.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def record(self, rec: UsageRecord) -> None:
        line = json.dumps(rec.to_dict(), sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    async def arecord(self, rec: UsageRecord) -> None:
        await asyncio.to_thread(self.record, rec)


async def safe_record(recorder: Optional[UsageRecorder], rec: UsageRecord) -> None:
    """Recorder failures are logged and never reach the generate result."""
    if recorder is None:
        return
    try:
        await recorder.arecord(rec)
    except Exception:
        logger.exception("usage recorder %s failed for %s", type(recorder).__name__, rec.tool_id)
