from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ScimApiProtocol(Protocol):
    """
    Назначение:
        Общий контракт для HTTP-клиента SCIM API каталога.

    Контракт:
        - getJson(path, params) -> Any (awaitable)
        - ошибки транспорта/HTTP бросаются как ApiError
    """

    async def getJson(self, path: str, params: dict[str, Any] | None = None) -> Any: ...


@runtime_checkable
class DestinationResolverProtocol(Protocol):
    """
    Назначение:
        Разрешение именованного внешнего подключения (destination) в готовый API-клиент.
    """

    async def connect(self, name: str) -> ScimApiProtocol: ...


__all__ = ["ScimApiProtocol", "DestinationResolverProtocol"]
