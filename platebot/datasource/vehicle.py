"""
Israeli vehicle registry lookups on data.gov.il.

API Documentation: https://data.gov.il/api/3/action/datastore_search
Two resources are queried by plate number: the private/commercial vehicle
registry and the disability parking permit registry.
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from platebot.datasource.base import BaseLookupSource
from platebot.identifier import parse_identifier
from platebot.services.cache import ResultCache
from platebot.services.errors import InvalidIdentifierError, LookupFailedError
from platebot.services.fetcher import ResilientFetcher

DEFAULT_BASE_URL = "https://data.gov.il/api/3/action/datastore_search"
VEHICLE_RESOURCE_ID = "053cea08-09bc-40ec-8f7a-156f0677aff3"
DISABILITY_RESOURCE_ID = "c8b9f9c8-4612-4068-934f-d4acd2e3c06e"

VEHICLE_NAMESPACE = "vehicle"
DISABILITY_NAMESPACE = "disability"


class VehicleRecord(BaseModel):
    """Vehicle registry row, keyed by the registry's Hebrew field names."""

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", protected_namespaces=()
    )

    license_plate: str = Field(default="", alias="mispar_rechev")
    manufacturer: str = Field(default="", alias="tozeret_nm")
    model: str = Field(default="", alias="kinuy_mishari")
    year: str = Field(default="", alias="shnat_yitzur")
    color: str = Field(default="", alias="tzeva_rechev")
    engine_volume: str = Field(default="", alias="degem_manoa")
    fuel_type: str = Field(default="", alias="sug_delek_nm")
    ownership_type: str = Field(default="", alias="baalut")
    test_date: str = Field(default="", alias="tokef_dt")
    last_inspection: str = Field(default="", alias="mivchan_acharon_dt")
    vehicle_type: str = Field(default="", alias="sug_degem")
    model_code: str = Field(default="", alias="degem_nm")
    chassis_number: str = Field(default="", alias="misgeret")
    front_tires: str = Field(default="", alias="zmig_kidmi")
    rear_tires: str = Field(default="", alias="zmig_ahori")
    registration_date: str = Field(default="", alias="moed_aliya_lakvish")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_str(cls, value: Any) -> str:
        # The registry returns numbers for some columns and null for missing ones
        if value is None:
            return ""
        return str(value).strip()

    def is_valid(self) -> bool:
        return bool(self.license_plate) and bool(self.manufacturer or self.model)

    @property
    def title(self) -> str:
        parts = [p for p in (self.manufacturer, self.model, self.year) if p]
        return " ".join(parts) if parts else f"Vehicle {self.license_plate}"


class VehicleLookupService(BaseLookupSource):
    """
    Vehicle and disability-permit lookups with caching.

    Negative results are cached too: a plate with no record is stored as
    None, a plate without a permit as False.
    """

    SERVICE_ID = "data_gov_il"

    def __init__(
        self,
        fetcher: ResilientFetcher,
        cache: ResultCache,
        vehicle_resource_id: str = VEHICLE_RESOURCE_ID,
        disability_resource_id: str = DISABILITY_RESOURCE_ID,
        limit: int = 10,
    ):
        super().__init__(fetcher, cache)
        self.vehicle_resource_id = vehicle_resource_id
        self.disability_resource_id = disability_resource_id
        self.limit = limit

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    def is_configured(self) -> bool:
        return bool(self.fetcher.base_url and self.vehicle_resource_id)

    async def search_vehicle(self, plate: str) -> VehicleRecord | None:
        """
        Look up a vehicle by plate.

        Raises:
            InvalidIdentifierError: plate cannot be normalized
            LookupFailedError: upstream failure after retries
        """
        identifier = parse_identifier(plate)

        async def load() -> VehicleRecord | None:
            records = await self.fetcher.search_records(
                self.vehicle_resource_id, identifier, limit=self.limit
            )
            if not records:
                return None
            return VehicleRecord.model_validate(records[0])

        return await self.cached_lookup(VEHICLE_NAMESPACE, identifier, load)

    async def check_disability_permit(self, plate: str) -> bool:
        """Whether the plate holds a disability permit. Failures read as False."""
        try:
            identifier = parse_identifier(plate)
        except InvalidIdentifierError:
            return False

        async def load() -> bool:
            records = await self.fetcher.search_records(
                self.disability_resource_id, identifier, limit=self.limit
            )
            return len(records) > 0

        try:
            return await self.cached_lookup(DISABILITY_NAMESPACE, identifier, load)
        except LookupFailedError as e:
            logger.warning(f"Disability permit check failed for {identifier}: {e}")
            return False
