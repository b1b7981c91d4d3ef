from __future__ import annotations

import time
from typing import Callable

from ias_connector.domain.models import CacheEntry, UserRecord

DEFAULT_TTL_SECONDS = 5 * 60


class UsersCache:
    """
    Назначение/ответственность:
        Единственный слот кэша полного каталога пользователей одного клиента.
    Инварианты/гарантии:
        - Значение заменяется целиком через set(); частичных обновлений нет.
        - clear() сбрасывает timestamp в 0 и users в None.
        - Валидность: снимок есть и его возраст меньше ttl_seconds.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._timestamp: float = 0
        self._users: list[UserRecord] | None = None

    @property
    def timestamp(self) -> float:
        return self._timestamp

    @property
    def users(self) -> list[UserRecord] | None:
        return self._users

    def age_seconds(self) -> float | None:
        if self._users is None:
            return None
        return self._clock() - self._timestamp

    def is_valid(self) -> bool:
        age = self.age_seconds()
        return age is not None and age < self.ttl_seconds

    def set(self, users: list[UserRecord]) -> CacheEntry:
        self._timestamp = self._clock()
        self._users = users
        return CacheEntry(timestamp=self._timestamp, users=users)

    def snapshot(self) -> CacheEntry | None:
        if self._users is None:
            return None
        return CacheEntry(timestamp=self._timestamp, users=self._users)

    def clear(self) -> None:
        self._timestamp = 0
        self._users = None
