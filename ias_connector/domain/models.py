from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

# Запись пользователя из SCIM /Users как есть (JSON-объект), локально не изменяется.
UserRecord = Mapping[str, Any]


class PaginationStrategy(str, Enum):
    """
    Назначение:
        Способ обхода каталога пользователей.
    """

    CURSOR = "cursor"
    START_INDEX = "start_index"


@dataclass(frozen=True)
class LiteUser:
    """
    Назначение:
        Облегчённая проекция пользователя для диалога выбора согласующих.
    """

    displayName: str | None
    userName: str | None

    def to_dict(self) -> dict[str, str | None]:
        return {"displayName": self.displayName, "userName": self.userName}


@dataclass(frozen=True)
class CacheEntry:
    """
    Назначение:
        Снимок полного каталога пользователей с моментом получения.
    Инварианты/гарантии:
        - Создаётся только после полного успешного обхода.
        - Заменяется целиком, частично не обновляется.
    """

    timestamp: float
    users: list[UserRecord]


@dataclass
class FetchStats:
    """
    Назначение:
        Диагностика последнего полного обхода каталога.
    """

    strategy: PaginationStrategy | None = None
    requests: int = 0
    records: int = 0
    fallback_used: bool = False
    safety_bound_hit: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value if self.strategy else None,
            "requests": self.requests,
            "records": self.records,
            "fallback_used": self.fallback_used,
            "safety_bound_hit": self.safety_bound_hit,
            **self.extra,
        }
