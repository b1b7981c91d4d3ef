from __future__ import annotations

from typing import Any, Mapping

from ias_connector.domain.models import LiteUser, UserRecord

USERS_PATH = "/Users"

# Максимальный размер страницы IAS
PAGE_SIZE = 100
MAX_ITERATIONS = 200

EXT_CUSTOM = "urn:sap:cloud:scim:schemas:extension:custom:2.0:User"
COMPANY_ATTRIBUTE = "customAttribute1"

# Минимальный набор атрибутов, чтобы ограничить размер ответа
USER_ATTRS = ("userName", "displayName", EXT_CUSTOM)

# Порядок важен: первое непустое значение выигрывает
NEXT_CURSOR_KEYS = ("nextCursor", "NextCursor", "next_cursor")


def build_cursor_params(cursor: str, page_size: int = PAGE_SIZE) -> dict[str, Any]:
    return {"cursor": cursor, "count": page_size, "attributes": ",".join(USER_ATTRS)}


def build_start_index_params(start_index: int, page_size: int = PAGE_SIZE) -> dict[str, Any]:
    return {"startIndex": start_index, "count": page_size, "attributes": ",".join(USER_ATTRS)}


def extract_resources(response: Any) -> list[UserRecord]:
    """
    Назначение:
        Достаёт массив Resources из ответа SCIM.
    Контракт:
        Ответ без Resources (или не-объект) трактуется как пустая страница.
    """
    if not isinstance(response, Mapping):
        return []
    resources = response.get("Resources")
    if not isinstance(resources, list):
        return []
    return resources


def extract_next_cursor(response: Any) -> str | None:
    if not isinstance(response, Mapping):
        return None
    for key in NEXT_CURSOR_KEYS:
        value = response.get(key)
        if value:
            return str(value)
    return None


def extract_total_results(response: Any) -> int:
    if not isinstance(response, Mapping):
        return 0
    value = response.get("totalResults")
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def get_company_value(user: UserRecord) -> str | None:
    """
    Назначение:
        Читает название компании из customAttribute1 кастомного расширения IAS.
    Контракт:
        Отсутствие расширения, списка attributes или нужного атрибута -> None.
    """
    ext = user.get(EXT_CUSTOM) if isinstance(user, Mapping) else None
    if not isinstance(ext, Mapping):
        return None
    attrs = ext.get("attributes") or []
    if not isinstance(attrs, list):
        return None
    for attr in attrs:
        if isinstance(attr, Mapping) and attr.get("name") == COMPANY_ATTRIBUTE:
            return attr.get("value")
    return None


def to_lite_user(user: UserRecord) -> LiteUser:
    return LiteUser(displayName=user.get("displayName"), userName=user.get("userName"))
