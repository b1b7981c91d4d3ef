from __future__ import annotations

from ias_connector.domain.error_codes import ErrorCode
from ias_connector.errors import AppError


class CursorUnsupportedError(AppError):
    """
    Назначение:
        Внутренний сигнал: сервер каталога не поддерживает cursor-пагинацию.
    Инварианты/гарантии:
        - code всегда ErrorCode.CURSOR_UNSUPPORTED.
        - Перехватывается только в IasUserDirectory и наружу не выходит.
    """

    def __init__(self, page_size: int, message: str = "Cursor pagination unsupported"):
        super().__init__(
            category="directory",
            code=ErrorCode.CURSOR_UNSUPPORTED,
            message=message,
            retryable=False,
            details={"page_size": page_size},
        )


__all__ = ["CursorUnsupportedError"]
