from __future__ import annotations

import logging
from pathlib import Path

LOGGER_ROOT = "iasConnector"


class EnsureFieldsFilter(logging.Filter):
    """Подставляет runId и component (по умолчанию "core") в записи без extra."""

    def __init__(self, runId: str, defaultComponent: str = "core"):
        super().__init__()
        self.runId = runId
        self.defaultComponent = defaultComponent

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "runId"):
            record.runId = self.runId
        if not hasattr(record, "component"):
            record.component = self.defaultComponent
        return True


def mapLogLevel(levelName: str) -> int:
    """ERROR|WARN|WARNING|INFO|DEBUG -> logging level; иное -> ValueError."""
    value = (levelName or "").strip().upper()
    if value == "ERROR":
        return logging.ERROR
    if value in ("WARN", "WARNING"):
        return logging.WARNING
    if value == "INFO":
        return logging.INFO
    if value == "DEBUG":
        return logging.DEBUG
    raise ValueError(f"Unsupported log level: {levelName}")


def createCommandLogger(commandName: str, logDir: str, runId: str, logLevel: str) -> tuple[logging.Logger, str]:
    """
    Назначение:
        Логгер команды "iasConnector.<command>.<runId>" с файлом <logDir>/<command>_<runId>.log.
    Контракт:
        - Повторный вызов с тем же runId пересоздаёт хендлеры, записи не дублируются.
        - Возвращает (logger, logFilePath).
    """
    Path(logDir).mkdir(parents=True, exist_ok=True)

    logFilePath = str(Path(logDir) / f"{commandName}_{runId}.log")

    logger = logging.getLogger(f"{LOGGER_ROOT}.{commandName}.{runId}")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    level = mapLogLevel(logLevel)
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    fileHandler = logging.FileHandler(logFilePath, encoding="utf-8")
    fileHandler.setLevel(level)
    fileHandler.setFormatter(formatter)
    fileHandler.addFilter(EnsureFieldsFilter(runId=runId))
    logger.addHandler(fileHandler)

    return logger, logFilePath


def closeCommandLogger(logger: logging.Logger) -> None:
    """Закрывает файловые хендлеры логгера команды."""
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def logEvent(logger: logging.Logger, level: int, runId: str, component: str, message: str) -> None:
    """Унифицированная запись событий с runId/component."""
    logger.log(level, message, extra={"runId": runId, "component": component})
