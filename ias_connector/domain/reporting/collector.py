from __future__ import annotations

from dataclasses import asdict
from typing import Any

from ias_connector.common.time import getNowIso
from ias_connector.domain.error_codes import ErrorCode
from ias_connector.domain.models import FetchStats
from ias_connector.domain.reporting.models import ReportEnvelope, ReportMeta, ReportSummary
from ias_connector.errors import AppError


class ReportCollector:
    """
    Назначение/ответственность:
        Единый сборщик отчёта о запуске команды.
    """

    def __init__(self, run_id: str, command: str, started_at: str | None = None) -> None:
        self.meta = ReportMeta(run_id=run_id, command=command, started_at=started_at or getNowIso())
        self.summary = ReportSummary()
        self.errors: list[dict[str, Any]] = []
        self.context: dict[str, Any] = {}
        self.status: str | None = None

    def set_context(self, name: str, value: dict[str, Any]) -> None:
        self.context[name] = value

    def add_fetch(self, stats: FetchStats | None) -> None:
        if stats is None:
            return
        self.summary.requests_total += stats.requests
        self.context.setdefault("fetches", []).append(stats.to_dict())

    def add_cache_hit(self) -> None:
        self.summary.cache_hits += 1

    def add_company(self, company: str, matched: int) -> None:
        self.summary.companies[company] = matched

    def add_error(self, error: AppError | Exception) -> None:
        if isinstance(error, AppError):
            self.errors.append(error.to_dict())
        else:
            self.errors.append({"category": "unexpected", "code": ErrorCode.UNEXPECTED_ERROR.value, "message": str(error)})

    def finish(self, finished_at: str | None = None, duration_ms: int | None = None) -> None:
        self.meta.finished_at = finished_at or getNowIso()
        self.meta.duration_ms = duration_ms
        if self.status is None:
            self.status = "FAILED" if self.errors else "SUCCESS"

    def build(self) -> ReportEnvelope:
        return ReportEnvelope(
            status=self.status or ("FAILED" if self.errors else "SUCCESS"),
            meta=self.meta,
            summary=self.summary,
            errors=self.errors,
            context=self.context,
        )


def asdict_report(report: ReportEnvelope) -> dict[str, Any]:
    return asdict(report)
