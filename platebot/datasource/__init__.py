from platebot.datasource.base import BaseLookupSource
from platebot.datasource.vehicle import VehicleLookupService, VehicleRecord

__all__ = ["BaseLookupSource", "VehicleLookupService", "VehicleRecord"]
