from __future__ import annotations

from typing import Sequence

from vmclient.utils.config import ClientConfig
from vmclient.utils.logging import get_logger, setup_logging

from .compiler import GraphCompiler
from .computation import CompileInstance, Computation, LoweredModuleTable
from .data import Data, Literal, Shape, TensorSource
from .device import DeviceRegistry
from .executor import ExecuteComputationOptions, ExecutionEngine
from .transfer import DataTransferEngine

logger = get_logger(__name__)


class ComputationClient:
    """Front-end facing client: devices, transfers, compile and execute.

    The client owns the table of lowered modules, so there is no process-wide
    state; build one with `create` and pass it to whoever needs it. Calls are
    synchronous and the client does no locking, so concurrent use from
    several threads has to be serialized by the caller.

    Example:
        >>> client = ComputationClient.create()
        >>> [x] = client.transfer_to_server([TensorSource.from_array(a, "CPU:0")])
        >>> [comp] = client.compile([CompileInstance(GenericComputation(fn))])
        >>> [out] = client.execute_computation(comp, [x], "CPU:0")
        >>> client.transfer_from_server([out])[0].data
    """

    def __init__(self, registry: DeviceRegistry, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig(default_device=registry.default_device.partition(":")[0])
        self.registry = registry
        self.lowered = LoweredModuleTable()
        self.transfers = DataTransferEngine(registry.backend_device)
        self.compiler = GraphCompiler(registry, self.lowered)
        self.engine = ExecutionEngine(registry, self.lowered)

    @classmethod
    def create(cls, config: ClientConfig | None = None) -> ComputationClient:
        """Build a client for the configured (or environment) default device."""
        config = config or ClientConfig.from_env()
        setup_logging(config.log_level)
        registry = DeviceRegistry.populate(config.default_device, config.device_ordinal)
        logger.info(f"Created computation client on {registry.default_device}")
        return cls(registry, config)

    def get_default_device(self) -> str:
        return self.registry.default_device

    def get_local_devices(self) -> list[str]:
        return list(self.registry.devices)

    def get_all_devices(self) -> list[str]:
        return list(self.registry.devices)

    def get_backend_device(self, device: str) -> str:
        return self.registry.backend_device(device).backend_name

    def create_data_placeholder(self, device: str, shape: Shape) -> Data:
        return Data(device, shape)

    def transfer_to_server(self, sources: Sequence[TensorSource]) -> list[Data]:
        return self.transfers.transfer_to_server(sources)

    def transfer_from_server(self, handles: Sequence[Data]) -> list[Literal]:
        return self.transfers.transfer_from_server(handles)

    def compile(self, instances: Sequence[CompileInstance]) -> list[Computation]:
        return self.compiler.compile(instances)

    def execute_computation(
        self,
        computation: Computation,
        arguments: Sequence[Data],
        device: str,
        options: ExecuteComputationOptions | None = None,
    ) -> list[Data]:
        return self.engine.execute_computation(computation, arguments, device, options)

    def release_computation(self, computation: Computation) -> bool:
        """Drop the lowered module kept for `computation`. Returns whether one was held."""
        return self.lowered.release(computation)
