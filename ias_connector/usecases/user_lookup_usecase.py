from __future__ import annotations

import logging
from typing import Any

from ias_connector.directory.user_directory import IasUserDirectory
from ias_connector.directory.scim import to_lite_user
from ias_connector.domain.reporting.collector import ReportCollector
from ias_connector.errors import AppError
from ias_connector.infra.logging.setup import logEvent


class UserLookupUseCase:
    """
    Назначение/ответственность:
        Сценарии чтения каталога IAS для CLI: полный список и выборка по компаниям.
    Взаимодействия:
        - IasUserDirectory выполняет обход/кэширование.
        - ReportCollector получает счётчики и статистику обходов.
    Ошибки/исключения:
        AppError логируется, попадает в отчёт и превращается в exit code 2.
        Прочие исключения не перехватываются.
    """

    def __init__(self, directory: IasUserDirectory, logger: logging.Logger, run_id: str):
        self.directory = directory
        self.logger = logger
        self.run_id = run_id

    async def _load_users(self, force_refresh: bool, report: ReportCollector) -> list:
        users = await self.directory.get_all_users(force_refresh=force_refresh)
        if self.directory.last_served_from_cache:
            report.add_cache_hit()
        else:
            report.add_fetch(self.directory.last_fetch_stats)
        return users

    async def list_users(self, force_refresh: bool, report: ReportCollector) -> tuple[int, list[dict[str, Any]]]:
        try:
            users = await self._load_users(force_refresh, report)
        except AppError as exc:
            self._fail(exc, report, "list users failed")
            return 2, []
        report.summary.users_total = len(users)
        logEvent(self.logger, logging.INFO, self.run_id, "directory", f"users listed total={len(users)}")
        return 0, [to_lite_user(u).to_dict() for u in users]

    async def users_by_company(
        self,
        companies: list[str],
        force_refresh: bool,
        report: ReportCollector,
    ) -> tuple[int, dict[str, list[dict[str, Any]]]]:
        """
        Контракт:
            - Один экземпляр директории на все компании: первая выборка прогревает кэш,
              следующие читают из него (force_refresh действует только на первую).
            - Пустое имя компании даёт пустой результат без запросов.
        """
        result: dict[str, list[dict[str, Any]]] = {}
        refresh = force_refresh
        for company in companies:
            try:
                if company:
                    await self._load_users(refresh, report)
                    refresh = False
                matched = await self.directory.get_users_by_company(company)
            except AppError as exc:
                self._fail(exc, report, f"lookup failed company={company}")
                return 2, result
            report.add_company(company, len(matched))
            result[company] = [u.to_dict() for u in matched]
            logEvent(
                self.logger,
                logging.INFO,
                self.run_id,
                "directory",
                f"company={company} matched={len(matched)}",
            )
        cached = self.directory.cache_entry
        report.summary.users_total = len(cached.users) if cached else 0
        return 0, result

    def _fail(self, exc: AppError, report: ReportCollector, message: str) -> None:
        report.add_error(exc)
        logEvent(self.logger, logging.ERROR, self.run_id, "directory", f"{message}: {exc}")
