from __future__ import annotations

from datetime import timedelta

import httpx
import pytest

from platebot.datasource.vehicle import (
    DISABILITY_RESOURCE_ID,
    VEHICLE_RESOURCE_ID,
    VehicleLookupService,
    VehicleRecord,
)
from platebot.services.cache import ResultCache
from platebot.services.errors import ErrorCode, InvalidIdentifierError, LookupFailedError
from platebot.services.fetcher import ResilientFetcher

VEHICLE_ROW = {
    "_id": 1,
    "mispar_rechev": 1234567,
    "tozeret_nm": "טויוטה",
    "kinuy_mishari": "COROLLA",
    "shnat_yitzur": 2019,
    "tzeva_rechev": "לבן",
    "sug_delek_nm": "בנזין",
    "tokef_dt": "2025-03-01",
    "moed_aliya_lakvish": None,
}


class Registry:
    """Fake datastore: answers per resource id and counts calls."""

    def __init__(self, vehicles=None, permits=None, status=200):
        self.vehicles = vehicles or []
        self.permits = permits or []
        self.status = status
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        resource_id = request.url.params["resource_id"]
        self.calls.append(resource_id)
        if self.status != 200:
            return httpx.Response(self.status)
        records = self.vehicles if resource_id == VEHICLE_RESOURCE_ID else self.permits
        return httpx.Response(200, json={"success": True, "result": {"records": records}})


async def _no_sleep(seconds: float) -> None:
    return None


def _service(registry: Registry, clock) -> VehicleLookupService:
    fetcher = ResilientFetcher(
        base_url="https://registry.test/datastore_search",
        max_retries=2,
        base_delay=timedelta(0),
        transport=httpx.MockTransport(registry),
        sleep=_no_sleep,
    )
    cache = ResultCache(clock=clock, autostart=False)
    return VehicleLookupService(fetcher, cache)


def test_record_maps_registry_columns():
    record = VehicleRecord.model_validate(VEHICLE_ROW)

    assert record.license_plate == "1234567"
    assert record.manufacturer == "טויוטה"
    assert record.year == "2019"
    assert record.registration_date == ""
    assert record.is_valid()
    assert record.title == "טויוטה COROLLA 2019"


def test_empty_record_title_falls_back_to_plate():
    record = VehicleRecord(license_plate="7654321")

    assert not record.is_valid()
    assert record.title == "Vehicle 7654321"


@pytest.mark.asyncio
async def test_search_vehicle_is_cached(clock):
    registry = Registry(vehicles=[VEHICLE_ROW])
    service = _service(registry, clock)

    first = await service.search_vehicle("12-345-67")
    second = await service.search_vehicle("1234567")
    await service.fetcher.close()

    assert first == second
    assert first.model == "COROLLA"
    assert registry.calls == [VEHICLE_RESOURCE_ID]


@pytest.mark.asyncio
async def test_missing_vehicle_is_cached_as_none(clock):
    registry = Registry()
    service = _service(registry, clock)

    assert await service.search_vehicle("7654321") is None
    assert await service.search_vehicle("7654321") is None
    await service.fetcher.close()

    assert len(registry.calls) == 1


@pytest.mark.asyncio
async def test_cache_expiry_triggers_new_lookup(clock):
    registry = Registry(vehicles=[VEHICLE_ROW])
    service = _service(registry, clock)

    await service.search_vehicle("1234567")
    clock.advance(301)
    await service.search_vehicle("1234567")
    await service.fetcher.close()

    assert len(registry.calls) == 2


@pytest.mark.asyncio
async def test_invalid_plate_raises_before_any_request(clock):
    registry = Registry()
    service = _service(registry, clock)

    with pytest.raises(InvalidIdentifierError):
        await service.search_vehicle("123")

    assert registry.calls == []


@pytest.mark.asyncio
async def test_search_vehicle_propagates_upstream_failure(clock):
    registry = Registry(status=503)
    service = _service(registry, clock)

    with pytest.raises(LookupFailedError) as exc_info:
        await service.search_vehicle("1234567")
    await service.fetcher.close()

    assert exc_info.value.classification.code is ErrorCode.API_SERVER_ERROR
    assert len(registry.calls) == 2


@pytest.mark.asyncio
async def test_disability_permit_found(clock):
    registry = Registry(permits=[{"MISPAR RECHEV": 1234567}])
    service = _service(registry, clock)

    assert await service.check_disability_permit("1234567") is True
    assert await service.check_disability_permit("1234567") is True
    await service.fetcher.close()

    assert registry.calls == [DISABILITY_RESOURCE_ID]


@pytest.mark.asyncio
async def test_disability_permit_failure_reads_as_false(clock):
    registry = Registry(status=500)
    service = _service(registry, clock)

    assert await service.check_disability_permit("1234567") is False
    assert await service.check_disability_permit("abc") is False
    await service.fetcher.close()

    # failures are not cached
    assert service.cache.get("disability:1234567") is None


@pytest.mark.asyncio
async def test_stats_and_configuration(clock):
    service = _service(Registry(), clock)

    stats = service.get_stats()
    await service.fetcher.close()

    assert service.is_configured()
    assert stats["service_id"] == "data_gov_il"
    assert stats["cache"]["size"] == 0
