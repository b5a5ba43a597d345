from __future__ import annotations

from dataclasses import dataclass, field

from vmclient.utils.exceptions import DeviceError
from vmclient.utils.logging import get_logger
from vmclient.vm.device import Device

logger = get_logger(__name__)

# Highest priority first.
DEVICE_PRIORITY: tuple[str, ...] = ("GPU", "CPU")


@dataclass
class DeviceRegistry:
    """The devices a client may place data and computations on.

    Attributes:
        default_device: Logical name of the default device, e.g. ``"CPU:0"``.
        devices: Active logical device names in priority order.
        global_device_map: Logical name -> backend descriptor (``"cuda(0)"``).
    """

    default_device: str = ""
    devices: list[str] = field(default_factory=list)
    global_device_map: dict[str, str] = field(default_factory=dict)

    @classmethod
    def populate(cls, default_kind: str = "CPU", ordinal: int = 0) -> DeviceRegistry:
        """Build the registry for a configured default device kind.

        Candidates are walked in priority order. Nothing is recorded until the
        default kind is reached; from then on every candidate is kept. The
        result is the default device plus every lower-priority kind, so
        ``"GPU"`` yields GPU and CPU while ``"CPU"`` yields CPU only.

        Raises:
            DeviceError: If `default_kind` is not in the priority list.
        """
        kind = default_kind.strip().upper()
        if kind not in DEVICE_PRIORITY:
            logger.error(f"Unknown default device kind {default_kind!r}")
            raise DeviceError(
                f"Default device kind must be one of {', '.join(DEVICE_PRIORITY)}, got {default_kind!r}",
                device=default_kind,
            )

        registry = cls()
        ignore = True
        for candidate in DEVICE_PRIORITY:
            device = Device(candidate, ordinal)
            if candidate == kind:
                registry.default_device = device.name
                ignore = False
            if not ignore:
                registry.devices.append(device.name)
                registry.global_device_map[device.name] = device.backend_name
        logger.debug(f"Local devices: {registry.devices} (default {registry.default_device})")
        return registry

    def __contains__(self, name: str) -> bool:
        return name in self.global_device_map

    def backend_device(self, name: str) -> Device:
        """Resolve an active logical device name to a backend `Device`."""
        if name not in self.global_device_map:
            raise DeviceError(f"Device {name!r} is not one of {self.devices}", device=name)
        return Device.parse(name)
