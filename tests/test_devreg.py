import pytest

from melab.cfgparser import parse_config
from melab.devreg import (
    DeviceInstance,
    DeviceRegistry,
    DeviceRegistryError,
    DeviceType,
)


def _spawn(registry, config, section):
    device = DeviceInstance(section.name, impl={"freq": section.find_int("freq")})
    registry.register_device(device)
    return device


@pytest.fixture
def registry():
    reg = DeviceRegistry()
    reg.register_type(DeviceType("cpu", _spawn))
    return reg


def test_find_type(registry):
    assert registry.find_type("cpu").name == "cpu"
    assert registry.find_type("gpu") is None


def test_duplicate_type_rejected(registry):
    with pytest.raises(DeviceRegistryError, match="device type cpu"):
        registry.register_type(DeviceType("cpu", _spawn))


def test_register_and_find_device(registry):
    device = DeviceInstance("dev0")
    registry.register_device(device)
    assert registry.find_device("dev0") is device
    assert registry.find_device("dev1") is None


def test_duplicate_device_rejected(registry):
    registry.register_device(DeviceInstance("dev0"))
    with pytest.raises(DeviceRegistryError, match="device dev0"):
        registry.register_device(DeviceInstance("dev0"))


def test_initialize_devices_spawns_device_sections(registry):
    config = parse_config(
        "sys { device a { type = cpu; freq = 5; }, "
        "bus b { type = cpu; }, "
        'device c { type = "cpu"; freq = 7; } }'
    )
    spawned = registry.initialize_devices(config)
    assert [d.name for d in spawned] == ["a", "c"]
    assert registry.find_device("a").impl == {"freq": 5}
    assert registry.find_device("c").impl == {"freq": 7}
    assert registry.find_device("b") is None


def test_initialize_missing_type_field(registry):
    config = parse_config("sys { device a { freq = 5; } }")
    with pytest.raises(DeviceRegistryError, match="no type field"):
        registry.initialize_devices(config)


def test_initialize_non_string_type_field(registry):
    config = parse_config("sys { device a { type = 3; } }")
    with pytest.raises(DeviceRegistryError, match="no type field"):
        registry.initialize_devices(config)


def test_initialize_unknown_type(registry):
    config = parse_config("sys { device a { type = gpu; } }")
    with pytest.raises(DeviceRegistryError, match="unknown type gpu"):
        registry.initialize_devices(config)