from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ReportMeta:
    run_id: str
    command: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    destination: str | None = None
    api_base_url: str | None = None


@dataclass
class ReportSummary:
    users_total: int = 0
    requests_total: int = 0
    cache_hits: int = 0
    companies: dict[str, int] = field(default_factory=dict)


@dataclass
class ReportEnvelope:
    status: str
    meta: ReportMeta
    summary: ReportSummary
    errors: list[dict[str, Any]] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
