from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


@dataclass(eq=False)
class AppError(Exception):
    """
    Назначение:
        Базовая ошибка коннектора: категория (api/config/directory),
        стабильный строковый код и диагностические детали.
    """

    category: str
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def code_value(self) -> str:
        return self.code.value if isinstance(self.code, Enum) else str(self.code)

    def __str__(self) -> str:
        return f"[{self.code_value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "code": self.code_value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details or {},
        }


def configError(code: str, message: str, **details: Any) -> AppError:
    """Ошибка конфигурации (destination, настройки)."""
    return AppError(category="config", code=code, message=message, details=details)


__all__ = ["AppError", "configError"]
