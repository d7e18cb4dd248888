"""Registry of device types and the device instances spawned from config."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from melab.cfgparser import ConfigFile, ConfigSection

__all__ = [
    "DeviceRegistryError",
    "DeviceType",
    "DeviceInstance",
    "DeviceRegistry",
]


class DeviceRegistryError(Exception):
    """Raised on duplicate registrations or bad device configuration."""


@dataclass
class DeviceInstance:
    """A named device; *impl* holds the device's own state."""

    name: str
    impl: Any = None


SpawnFunction = Callable[["DeviceRegistry", ConfigFile, ConfigSection], Any]


@dataclass(frozen=True)
class DeviceType:
    """A kind of device, created from a config section by *spawn*.

    *spawn* is called with the registry, the whole configuration and the
    device's section.
    """

    name: str
    spawn: SpawnFunction


class DeviceRegistry:
    """Holds the known device types and the instantiated devices."""

    def __init__(self) -> None:
        self._types: dict[str, DeviceType] = {}
        self._devices: dict[str, DeviceInstance] = {}

    def register_type(self, device_type: DeviceType) -> None:
        if device_type.name in self._types:
            raise DeviceRegistryError(
                f"Tried to redefine device type {device_type.name}"
            )
        self._types[device_type.name] = device_type

    def find_type(self, name: str) -> Optional[DeviceType]:
        return self._types.get(name)

    def register_device(self, device: DeviceInstance) -> None:
        if device.name in self._devices:
            raise DeviceRegistryError(f"Tried to redefine device {device.name}")
        self._devices[device.name] = device

    def find_device(self, name: str) -> Optional[DeviceInstance]:
        return self._devices.get(name)

    def initialize_devices(self, config: ConfigFile) -> list[Any]:
        """Spawn a device for every section of type ``device``, in order.

        Returns what each spawn function returned.
        """
        spawned = []
        for section in config.sections:
            if section.type != "device":
                continue
            type_name = section.find_string("type")
            if type_name is None:
                raise DeviceRegistryError(
                    f"Error instantiating device {section.name}: no type field"
                )
            device_type = self.find_type(type_name)
            if device_type is None:
                raise DeviceRegistryError(
                    f"Error instantiating device {section.name}: "
                    f"unknown type {type_name}"
                )
            spawned.append(device_type.spawn(self, config, section))
        return spawned