from __future__ import annotations

from typing import Sequence

from vmclient.ir import Function, IRModule, IRValidationError
from vmclient.passes import Sequential, default_pipeline
from vmclient.utils.exceptions import CompilationError
from vmclient.utils.logging import get_logger
from vmclient.vm import VMCompiler

from .computation import CompileInstance, Computation, LoweredModuleTable
from .device import DeviceRegistry

logger = get_logger(__name__)


def is_identity_function(func: Function) -> bool:
    """True when `func` has one parameter and returns it untouched."""
    return len(func.params) == 1 and func.body is func.params[0]


class GraphCompiler:
    """Compile traced functions into `Computation`s.

    Each instance goes through `default_pipeline`, is reduced to its ``main``
    function (plus the globals it still references), re-typed, and lowered
    for the instance's compilation device (the client default when unset).
    Pass-through functions skip all of that and get no executable.
    """

    def __init__(self, registry: DeviceRegistry, lowered: LoweredModuleTable) -> None:
        self.registry = registry
        self.lowered = lowered

    def pipeline(self, device: str = "") -> Sequential:
        target = self.registry.backend_device(device or self.registry.default_device)
        return default_pipeline(target.kind)

    def compile(self, instances: Sequence[CompileInstance]) -> list[Computation]:
        return [self._compile_one(ins) for ins in instances]

    def _compile_one(self, ins: CompileInstance) -> Computation:
        func = ins.computation.computation
        if not isinstance(func, Function):
            raise CompilationError(f"Expected a traced Function, got {type(func).__name__}")
        ir_module = IRModule.from_expr(func)
        device_name = ins.compilation_device or self.registry.default_device
        device = self.registry.backend_device(device_name)

        executable = None
        if is_identity_function(func):
            logger.debug("Identity function detected, skipping lowering")
        else:
            ir_module = self.pipeline(device_name).run(ir_module)
            ir_module = ir_module.entry_only("main")
            ir_module = Sequential().run(ir_module)
            executable = VMCompiler().lower(ir_module, {device.kind: device})

        try:
            program_shape = ins.computation.get_program_shape()
        except IRValidationError as e:
            raise CompilationError(f"Cannot derive program shape: {e}", step="program_shape") from e

        computation = Computation(
            ins.computation,
            program_shape,
            list(ins.devices),
            executable,
        )
        self.lowered.record(computation, ir_module)
        return computation
