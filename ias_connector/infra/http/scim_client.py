from __future__ import annotations

import asyncio
from typing import Any

import httpx

from ias_connector.common.sanitize import truncateText
from ias_connector.domain.error_codes import ErrorCode
from ias_connector.errors import AppError

SCIM_MEDIA_TYPE = "application/scim+json"


class ApiError(AppError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body_snippet: str | None = None,
        retryable: bool = False,
        details: dict | None = None,
        code: str | None = None,
    ):
        """
        Назначение:
            Исключение для ошибок HTTP/API уровня ScimApiClient.
        Контракт:
            - code: строковый код (HTTP_*, NETWORK_ERROR, INVALID_JSON).
            - status_code/body_snippet используются для диагностики.
        """
        super().__init__(
            category="api",
            code=code or (f"HTTP_{status_code}" if status_code else ErrorCode.API_ERROR),
            message=message,
            retryable=retryable,
            details=details or {},
        )
        self.status_code = status_code
        self.body_snippet = body_snippet


class ScimApiClient:
    def __init__(
        self,
        baseUrl: str,
        username: str | None = None,
        password: str | None = None,
        timeoutSeconds: float = 20.0,
        tlsSkipVerify: bool = False,
        caFile: str | None = None,
        retries: int = 0,
        retryBackoffSeconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Назначение:
            Асинхронный клиент SCIM API (IAS) поверх httpx.AsyncClient.
        Контракт:
            - baseUrl обязателен; username/password задают basic auth destination.
            - retries=0 по умолчанию: повторы выполняются только если явно включены.
        """
        verify: bool | str = True
        if tlsSkipVerify:
            verify = False
        elif caFile:
            verify = caFile

        auth = None
        if username:
            auth = httpx.BasicAuth(username, password or "")

        self.baseUrl = baseUrl.rstrip("/")
        self.retries = retries
        self.retryBackoffSeconds = retryBackoffSeconds
        self.retry_attempts = 0

        self.client = httpx.AsyncClient(
            base_url=self.baseUrl,
            timeout=timeoutSeconds,
            verify=verify,
            auth=auth,
            transport=transport,
        )

    def resetRetryAttempts(self) -> None:
        """Сбрасывает счётчик retry_attempts."""
        self.retry_attempts = 0

    def getRetryAttempts(self) -> int:
        """Возвращает количество выполненных повторных попыток."""
        return self.retry_attempts

    def _headers(self) -> dict[str, str]:
        return {"Accept": SCIM_MEDIA_TYPE}

    def _should_retry(self, resp: httpx.Response) -> bool:
        """Решает, стоит ли повторить запрос (429 или 5xx)."""
        if resp.status_code == 429:
            return True
        if 500 <= resp.status_code <= 599:
            return True
        return False

    async def _sleep_backoff(self, attempt: int) -> None:
        """Задержка с экспоненциальным ростом для ретраев."""
        delay = self.retryBackoffSeconds * (2 ** attempt)
        if delay > 0:
            await asyncio.sleep(delay)

    async def _get_with_retry(self, path: str, params: dict[str, Any]) -> httpx.Response:
        """GET с ретраями по 429/5xx и сетевым ошибкам (если включены), иначе ApiError."""
        attempt = 0
        while True:
            try:
                resp = await self.client.get(path, params=params, headers=self._headers())
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt >= self.retries:
                    raise ApiError(
                        f"Network error: {exc}",
                        status_code=None,
                        retryable=True,
                        code=ErrorCode.NETWORK_ERROR,
                    ) from exc
                self.retry_attempts += 1
                await self._sleep_backoff(attempt)
                attempt += 1
                continue

            if resp.status_code == 200:
                return resp

            if self._should_retry(resp) and attempt < self.retries:
                self.retry_attempts += 1
                await self._sleep_backoff(attempt)
                attempt += 1
                continue

            body_snippet = truncateText(resp.text) if resp.text else None
            raise ApiError(
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
                body_snippet=body_snippet,
                retryable=self._should_retry(resp),
                details={"path": path, "body_snippet": body_snippet},
            )

    async def getJson(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET JSON, парсит ответ или бросает ApiError."""
        resp = await self._get_with_retry(path, params or {})
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(
                "Invalid JSON response",
                status_code=resp.status_code,
                body_snippet=truncateText(resp.text),
                retryable=False,
                code=ErrorCode.INVALID_JSON,
            ) from exc

    async def aclose(self) -> None:
        await self.client.aclose()
