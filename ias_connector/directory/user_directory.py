from __future__ import annotations

import logging
import time
from typing import Any, Callable

from ias_connector.config import DEFAULT_DESTINATION
from ias_connector.directory import scim
from ias_connector.directory.cache import DEFAULT_TTL_SECONDS, UsersCache
from ias_connector.domain.exceptions import CursorUnsupportedError
from ias_connector.domain.models import CacheEntry, FetchStats, LiteUser, PaginationStrategy, UserRecord
from ias_connector.domain.ports.api import DestinationResolverProtocol, ScimApiProtocol


class IasUserDirectory:
    """
    Назначение/ответственность:
        Клиент каталога пользователей IAS (SCIM /Users):
        - полный обход каталога cursor-пагинацией с fallback на startIndex;
        - кэш полного каталога на ttl_seconds (по умолчанию 5 минут);
        - выборка пользователей компании в облегчённой проекции.
    Взаимодействия:
        Destination резолвится лениво через DestinationResolverProtocol при первом запросе
        и переиспользуется до конца жизни экземпляра.
    Ограничения:
        - Страницы запрашиваются строго последовательно.
        - Параллельные холодные вызовы не координируются: каждый делает свой обход,
          в кэше остаётся результат последнего.
        - Ретраев на этом уровне нет.
    """

    def __init__(
        self,
        resolver: DestinationResolverProtocol,
        destination: str = DEFAULT_DESTINATION,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        page_size: int = scim.PAGE_SIZE,
        max_iterations: int = scim.MAX_ITERATIONS,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ):
        self._resolver = resolver
        self.destination = destination
        self.page_size = page_size
        self.max_iterations = max_iterations
        self._api: ScimApiProtocol | None = None
        self._cache = UsersCache(ttl_seconds=ttl_seconds, clock=clock)
        self._logger = logger or logging.getLogger(__name__)
        self.last_fetch_stats: FetchStats | None = None
        self.last_served_from_cache = False

    async def _get_api(self) -> ScimApiProtocol:
        if self._api is None:
            self._api = await self._resolver.connect(self.destination)
        return self._api

    async def _send(self, params: dict[str, Any], stats: FetchStats) -> Any:
        api = await self._get_api()
        stats.requests += 1
        self._log(logging.DEBUG, f"GET {scim.USERS_PATH} params={params}")
        return await api.getJson(scim.USERS_PATH, params=params)

    def _log(self, level: int, message: str) -> None:
        self._logger.log(level, message, extra={"component": "directory"})

    async def _fetch_all_users_by_cursor(self, stats: FetchStats) -> list[UserRecord]:
        """
        Алгоритм:
            - cursor="" на первом запросе, далее токен из nextCursor/NextCursor/next_cursor.
            - Нет токена и страница неполная -> конец обхода.
            - Нет токена, полная страница на первом запросе -> CursorUnsupportedError.
            - Нет токена, полная страница позже -> повтор того же cursor (записи не дедуплицируются).
            - Не более max_iterations запросов; превышение завершает цикл с WARNING.
        """
        stats.strategy = PaginationStrategy.CURSOR
        all_users: list[UserRecord] = []
        cursor = ""
        iteration = 0

        while True:
            iteration += 1
            if iteration > self.max_iterations:
                stats.safety_bound_hit = True
                self._log(logging.WARNING, f"cursor paging stopped at safety bound iterations={self.max_iterations}")
                break

            response = await self._send(scim.build_cursor_params(cursor, self.page_size), stats)
            users = scim.extract_resources(response)
            all_users.extend(users)

            next_cursor = scim.extract_next_cursor(response)
            if next_cursor:
                cursor = next_cursor
                continue

            if len(users) < self.page_size:
                break

            if iteration == 1:
                raise CursorUnsupportedError(page_size=self.page_size)

            self._log(logging.DEBUG, f"full page without next cursor at iteration={iteration}, repeating cursor")

        return all_users

    async def _fetch_all_users_by_start_index(self, stats: FetchStats) -> list[UserRecord]:
        """
        Алгоритм:
            - startIndex начинается с 1 и растёт на page_size.
            - totalResults берётся из каждого ответа.
            - Остановка: startIndex > totalResults, пустая страница или max_iterations.
        """
        stats.strategy = PaginationStrategy.START_INDEX
        all_users: list[UserRecord] = []
        start_index = 1
        total_results: float = float("inf")
        iteration = 0

        while start_index <= total_results:
            iteration += 1
            if iteration > self.max_iterations:
                stats.safety_bound_hit = True
                self._log(logging.WARNING, f"startIndex paging stopped at safety bound iterations={self.max_iterations}")
                break

            response = await self._send(scim.build_start_index_params(start_index, self.page_size), stats)
            users = scim.extract_resources(response)
            all_users.extend(users)

            total_results = scim.extract_total_results(response)

            if not users:
                break

            start_index += self.page_size

        return all_users

    async def _fetch_all_users(self) -> tuple[list[UserRecord], FetchStats]:
        stats = FetchStats()
        try:
            users = await self._fetch_all_users_by_cursor(stats)
        except CursorUnsupportedError as exc:
            self._log(logging.WARNING, f"{exc}; falling back to startIndex paging")
            stats.fallback_used = True
            stats.extra["cursor_requests"] = stats.requests
            users = await self._fetch_all_users_by_start_index(stats)
        stats.records = len(users)
        return users, stats

    async def get_all_users(self, force_refresh: bool = False) -> list[UserRecord]:
        """
        Контракт:
            - Без force_refresh и при валидном кэше возвращает закэшированный список как есть.
            - Иначе полный обход каталога; кэш обновляется только после успешного обхода.
            - Ошибки API пробрасываются, предыдущий кэш при этом не трогается.
            - last_served_from_cache отражает, откуда взят результат последнего вызова.
        """
        if not force_refresh and self._cache.is_valid():
            self._log(logging.DEBUG, f"users served from cache age_seconds={self._cache.age_seconds():.1f}")
            self.last_served_from_cache = True
            return self._cache.users

        self.last_served_from_cache = False
        users, stats = await self._fetch_all_users()
        self._cache.set(users)
        self.last_fetch_stats = stats
        self._log(
            logging.INFO,
            f"users fetched destination={self.destination} strategy={stats.strategy.value} "
            f"requests={stats.requests} records={stats.records}",
        )
        return users

    async def get_users_by_company(self, company_name: str | None, force_refresh: bool = False) -> list[LiteUser]:
        if not company_name:
            return []
        users = await self.get_all_users(force_refresh=force_refresh)
        return [scim.to_lite_user(u) for u in users if scim.get_company_value(u) == company_name]

    def invalidate_cache(self) -> None:
        self._cache.clear()

    def cache_age_seconds(self) -> float | None:
        return self._cache.age_seconds()

    def is_cache_valid(self) -> bool:
        return self._cache.is_valid()

    @property
    def cache_entry(self) -> CacheEntry | None:
        return self._cache.snapshot()
