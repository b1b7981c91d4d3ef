from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок коннектора.
        Ошибки HTTP-статусов кодируются отдельно как HTTP_<status>.
    """

    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_JSON = "INVALID_JSON"
    API_ERROR = "API_ERROR"
    CURSOR_UNSUPPORTED = "CURSOR_UNSUPPORTED"
    DESTINATION_NOT_FOUND = "DESTINATION_NOT_FOUND"
    DESTINATION_INVALID = "DESTINATION_INVALID"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
