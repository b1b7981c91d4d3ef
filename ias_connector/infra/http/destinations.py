from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ias_connector.config import Settings
from ias_connector.domain.error_codes import ErrorCode
from ias_connector.domain.ports.api import DestinationResolverProtocol
from ias_connector.errors import configError
from ias_connector.infra.http.scim_client import ScimApiClient


@dataclass(frozen=True)
class DestinationConfig:
    """
    Назначение:
        Параметры именованного подключения к внешнему сервису.
    """

    name: str
    url: str | None
    username: str | None = None
    password: str | None = None
    timeout_seconds: float = 20.0
    retries: int = 0
    retry_backoff_seconds: float = 0.5
    tls_skip_verify: bool = False
    ca_file: str | None = None

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any], defaults: Settings) -> "DestinationConfig":
        return cls(
            name=name,
            url=data.get("url") or data.get("base_url"),
            username=data.get("username"),
            password=data.get("password"),
            timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
            retries=int(data.get("retries", defaults.retries)),
            retry_backoff_seconds=float(data.get("retry_backoff_seconds", defaults.retry_backoff_seconds)),
            tls_skip_verify=bool(data.get("tls_skip_verify", defaults.tls_skip_verify)),
            ca_file=data.get("ca_file", defaults.ca_file),
        )


class DestinationRegistry(DestinationResolverProtocol):
    """
    Назначение/ответственность:
        Реестр именованных destination и фабрика API-клиентов для них.
    Инварианты/гарантии:
        - Для одного имени создаётся не более одного клиента за время жизни реестра.
        - Неизвестное имя или destination без URL -> AppError(category="config").
    """

    def __init__(
        self,
        destinations: Mapping[str, DestinationConfig],
        clientFactory: Callable[..., ScimApiClient] = ScimApiClient,
        logger: logging.Logger | None = None,
    ):
        self._destinations = dict(destinations)
        self._clientFactory = clientFactory
        self._clients: dict[str, ScimApiClient] = {}
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clientFactory: Callable[..., ScimApiClient] = ScimApiClient,
        logger: logging.Logger | None = None,
    ) -> "DestinationRegistry":
        """
        Алгоритм:
            - Берёт destinations из YAML-конфига.
            - Основной destination (settings.destination) дополняется/перекрывается
              значениями base_url/username/password из итоговых настроек.
        """
        configs = {
            name: DestinationConfig.from_mapping(name, data, settings)
            for name, data in settings.destinations.items()
        }
        primary = dict(settings.destinations.get(settings.destination) or {})
        if settings.base_url:
            primary["url"] = settings.base_url
        if settings.username:
            primary["username"] = settings.username
        if settings.password:
            primary["password"] = settings.password
        if primary:
            configs[settings.destination] = DestinationConfig.from_mapping(settings.destination, primary, settings)
        return cls(configs, clientFactory=clientFactory, logger=logger)

    def names(self) -> list[str]:
        return sorted(self._destinations)

    def get_config(self, name: str) -> DestinationConfig:
        config = self._destinations.get(name)
        if config is None:
            raise configError(
                ErrorCode.DESTINATION_NOT_FOUND,
                f"Destination '{name}' is not configured",
                destination=name,
            )
        if not config.url:
            raise configError(
                ErrorCode.DESTINATION_INVALID,
                f"Destination '{name}' has no url",
                destination=name,
            )
        return config

    async def connect(self, name: str) -> ScimApiClient:
        client = self._clients.get(name)
        if client is not None:
            return client
        config = self.get_config(name)
        client = self._clientFactory(
            baseUrl=config.url,
            username=config.username,
            password=config.password,
            timeoutSeconds=config.timeout_seconds,
            tlsSkipVerify=config.tls_skip_verify,
            caFile=config.ca_file,
            retries=config.retries,
            retryBackoffSeconds=config.retry_backoff_seconds,
        )
        self._clients[name] = client
        self._logger.debug(
            "destination connected name=%s url=%s", name, config.url, extra={"component": "destination"}
        )
        return client

    async def aclose(self) -> None:
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.aclose()
