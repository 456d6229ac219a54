"""BedHeat integration clients."""

from .device_client import Credentials, DeviceClient, DeviceClientError, DeviceHeatingStatus

__all__ = [
    "Credentials",
    "DeviceClient",
    "DeviceClientError",
    "DeviceHeatingStatus",
]
