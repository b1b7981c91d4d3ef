from __future__ import annotations

from typing import Callable

import httpx
import pytest

from ias_connector.directory.user_directory import IasUserDirectory
from scim_fakes import FakeClock, make_registry


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scim_directory(clock):
    """
    Фабрика (directory, requests) поверх фейкового SCIM-сервера.
    requests накапливает все httpx.Request, ушедшие на сервер.
    """

    def factory(responder: Callable[[httpx.Request], httpx.Response], **kwargs):
        requests: list[httpx.Request] = []
        kwargs.setdefault("clock", clock)
        directory = IasUserDirectory(make_registry(responder, requests), **kwargs)
        return directory, requests

    return factory
