from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from vmclient.ir import Var
from vmclient.ir.dtypes import from_numpy
from vmclient.utils.exceptions import ClosureResolutionError, ExecutionError
from vmclient.utils.logging import get_logger
from vmclient.vm import VirtualMachine
from vmclient.vm.values import (
    ClosureValue,
    RuntimeValue,
    TensorValue,
    TupleValue,
    VMClosureValue,
    type_key,
)

from .computation import Computation, LoweredModuleTable
from .data import Data, Shape
from .device import DeviceRegistry

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ExecuteComputationOptions:
    explode_tuple: bool = True


class ExecutionEngine:
    """Run compiled computations and turn their results into `Data` handles."""

    def __init__(self, registry: DeviceRegistry, lowered: LoweredModuleTable) -> None:
        self.registry = registry
        self.lowered = lowered

    def execute_computation(
        self,
        computation: Computation,
        arguments: Sequence[Data],
        device: str,
        options: ExecuteComputationOptions | None = None,
    ) -> list[Data]:
        options = options or ExecuteComputationOptions()
        values: list[RuntimeValue] = []
        for i, argument in enumerate(arguments):
            if argument.handle is None:
                raise ExecutionError(f"Argument {i} is a placeholder without a value", {"device": argument.device})
            values.append(argument.handle)

        executable = computation.executable
        if executable is None:
            if len(values) != 1:
                logger.error(f"Identity computation called with {len(values)} arguments")
                raise ExecutionError(
                    f"Identity computation expects exactly 1 argument, got {len(values)}",
                    {"arguments": len(values)},
                )
            ret = values[0]
        else:
            vm = VirtualMachine(executable)
            vm.set_devices(self.registry.backend_device(device))
            ctx = vm.prepare_context("main", values)
            ret = vm.run(ctx)

        ret = self.normalize_value(computation, ret)
        if not options.explode_tuple and isinstance(ret, TupleValue):
            return [Data(device, self.shape_of(ret), ret)]
        return self.explode(ret, device)

    def normalize_value(self, computation: Computation, value: RuntimeValue) -> RuntimeValue:
        """Replace a VM closure by a closure bound to its captured environment.

        The VM closure only knows its function index. The index is mapped back
        to the lifted global through the executable's global map, and each of
        the global's parameters (the captured variables) is bound to the
        matching captured value.
        """
        match value:
            case VMClosureValue():
                return self._resolve_closure(computation, value)
            case _:
                return value

    def _resolve_closure(self, computation: Computation, closure: VMClosureValue) -> ClosureValue:
        func_index, free_vars = closure.func_index, closure.free_vars
        mod = self.lowered.lookup(computation)
        executable = computation.executable
        if mod is None or executable is None:
            raise ClosureResolutionError("No lowered module recorded for this computation", func_index)

        gvar_name = executable.function_name(func_index)
        if gvar_name is None:
            logger.error(f"Closure function index {func_index} is not in the global map")
            raise ClosureResolutionError("Cannot resolve closure function index", func_index)

        gvar = mod.get_global_var(gvar_name)
        func = mod.lookup(gvar)
        if len(func.params) != len(free_vars):
            logger.error(
                f"Closure @{gvar_name} declares {len(func.params)} parameter(s) "
                f"but captured {len(free_vars)} value(s)"
            )
            raise ClosureResolutionError(
                f"Closure @{gvar_name} parameter count {len(func.params)} "
                f"does not match captured value count {len(free_vars)}",
                func_index,
            )

        env: dict[Var, RuntimeValue] = dict(zip(func.params, free_vars))
        logger.debug(f"Resolved closure #{func_index} to @{gvar_name} with {len(env)} binding(s)")
        return ClosureValue(env, mod, gvar)

    def shape_of(self, value: RuntimeValue) -> Shape:
        """Static shape of a runtime value. Tuples nest to any depth."""
        match value:
            case TupleValue(fields=fields):
                return Shape.make_tuple([self.shape_of(f) for f in fields])
            case TensorValue():
                return Shape.array(from_numpy(value.dtype).primitive, value.shape)
            case ClosureValue(mod=mod, gvar=gvar):
                return Shape.from_type(mod.lookup(gvar).checked_type)
            case VMClosureValue():
                # No static shape can be derived from the raw VM closure.
                return Shape()
            case _:
                logger.error(f"Cannot derive a shape for runtime value of kind {type_key(value)}")
                raise ExecutionError(f"NotImplementedError: {type_key(value)}")

    def explode(self, value: RuntimeValue, device: str) -> list[Data]:
        """Flatten a result into handles, one per tuple field."""
        match value:
            case TupleValue(fields=fields):
                out: list[Data] = []
                for i, f in enumerate(fields):
                    field_handles = self.explode(f, device)
                    if len(field_handles) != 1:
                        logger.error(f"Tuple field {i} produced {len(field_handles)} handles")
                        raise ExecutionError(
                            f"Tuple field {i} must produce exactly one handle, got {len(field_handles)}",
                            {"field": i},
                        )
                    out.append(field_handles[0])
                return out
            case _:
                return [Data(device, self.shape_of(value), value)]
