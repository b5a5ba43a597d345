"""Client configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .logging import get_logger

logger = get_logger(__name__)

ENV_DEFAULT_DEVICE = "VMCLIENT_DEFAULT_DEVICE"
ENV_LOG_LEVEL = "VMCLIENT_LOG_LEVEL"


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Settings a `ComputationClient` is created with.

    Attributes:
        default_device: Device kind the client prefers ("CPU" or "GPU").
        device_ordinal: Ordinal of every local device. Always 0 until ranks
            are wired in.
        log_level: Level passed to `setup_logging`.
    """

    default_device: str = "CPU"
    device_ordinal: int = 0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> ClientConfig:
        default_device = os.environ.get(ENV_DEFAULT_DEVICE, "").strip().upper() or "CPU"
        log_level = os.environ.get(ENV_LOG_LEVEL, "").strip().upper() or "WARNING"
        logger.debug(f"Loaded config from env: default_device={default_device}, log_level={log_level}")
        return cls(default_device=default_device, log_level=log_level)
