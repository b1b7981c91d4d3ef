from __future__ import annotations

import httpx
import pytest

from ias_connector.directory.user_directory import IasUserDirectory
from ias_connector.domain.error_codes import ErrorCode
from ias_connector.errors import AppError
from ias_connector.infra.http.destinations import DestinationRegistry
from ias_connector.infra.http.scim_client import ApiError
from scim_fakes import CountingResolver, make_registry, make_users, page


def small_catalog(request: httpx.Request) -> httpx.Response:
    return page(make_users(3))


@pytest.mark.asyncio
async def test_second_call_within_ttl_returns_cached_list_without_request(scim_directory):
    directory, requests = scim_directory(small_catalog)

    first = await directory.get_all_users()
    second = await directory.get_all_users()

    assert second is first
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_last_served_from_cache_tracks_source_of_result(scim_directory):
    directory, _requests = scim_directory(small_catalog)

    await directory.get_all_users()
    assert directory.last_served_from_cache is False

    await directory.get_all_users()
    assert directory.last_served_from_cache is True

    await directory.get_all_users(force_refresh=True)
    assert directory.last_served_from_cache is False


@pytest.mark.asyncio
async def test_force_refresh_always_requests(scim_directory):
    directory, requests = scim_directory(small_catalog)

    await directory.get_all_users()
    await directory.get_all_users(force_refresh=True)

    assert len(requests) == 2


@pytest.mark.asyncio
async def test_invalidate_cache_forces_refetch(scim_directory):
    directory, requests = scim_directory(small_catalog)

    await directory.get_all_users()
    directory.invalidate_cache()

    assert directory.cache_entry is None
    assert directory.cache_age_seconds() is None

    await directory.get_all_users()
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_cache_expires_after_ttl(scim_directory, clock):
    directory, requests = scim_directory(small_catalog)

    await directory.get_all_users()
    clock.advance(299)
    await directory.get_all_users()
    assert len(requests) == 1
    assert directory.cache_age_seconds() == pytest.approx(299)

    clock.advance(1)
    assert directory.is_cache_valid() is False
    await directory.get_all_users()
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_custom_ttl(scim_directory, clock):
    directory, requests = scim_directory(small_catalog, ttl_seconds=10)

    await directory.get_all_users()
    clock.advance(11)
    await directory.get_all_users()

    assert len(requests) == 2


@pytest.mark.asyncio
async def test_empty_catalog_is_cached(scim_directory):
    directory, requests = scim_directory(lambda request: page([]))

    assert await directory.get_all_users() == []
    assert await directory.get_all_users() == []
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_cache(scim_directory, clock):
    state = {"fail": False}

    def responder(request: httpx.Request) -> httpx.Response:
        if state["fail"]:
            return httpx.Response(502, text="bad gateway")
        return page(make_users(3))

    directory, requests = scim_directory(responder)
    original = await directory.get_all_users()
    cached_at = directory.cache_entry.timestamp

    state["fail"] = True
    clock.advance(5)
    with pytest.raises(ApiError):
        await directory.get_all_users(force_refresh=True)

    assert directory.cache_entry.timestamp == cached_at
    assert await directory.get_all_users() is original
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_destination_resolved_lazily_and_once(clock):
    requests: list[httpx.Request] = []
    resolver = CountingResolver(make_registry(small_catalog, requests))
    directory = IasUserDirectory(resolver, clock=clock)

    assert resolver.calls == 0

    await directory.get_all_users()
    await directory.get_all_users(force_refresh=True)
    directory.invalidate_cache()
    await directory.get_all_users()

    assert resolver.calls == 1
    assert len(requests) == 3


@pytest.mark.asyncio
async def test_unknown_destination_raises_config_error():
    directory = IasUserDirectory(DestinationRegistry({}), destination="MISSING")

    with pytest.raises(AppError) as exc:
        await directory.get_all_users()

    assert exc.value.category == "config"
    assert exc.value.code == ErrorCode.DESTINATION_NOT_FOUND
    assert directory.cache_entry is None
