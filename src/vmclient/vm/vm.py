from __future__ import annotations

from dataclasses import dataclass

from vmclient.ir import get_op_def
from vmclient.utils.exceptions import ExecutionError
from vmclient.utils.logging import get_logger

from .bytecode import (
    AllocClosure,
    AllocTuple,
    Executable,
    GetField,
    Invoke,
    InvokeClosure,
    InvokePacked,
    LoadConst,
    Ret,
)
from .device import Device
from .values import RuntimeValue, TensorValue, TupleValue, VMClosureValue, type_key

logger = get_logger(__name__)


@dataclass(slots=True)
class VMContext:
    """Entry function and arguments of one run."""

    func_index: int
    args: list[RuntimeValue]


class VirtualMachine:
    """Interpreter for an `Executable`.

    Usage follows the executor contract: construct from an executable, bind a
    device with `set_devices`, build a context with `prepare_context`, then
    `run` it. Tensors are produced on the bound device.
    """

    def __init__(self, executable: Executable) -> None:
        self.executable = executable
        self.device: Device | None = None

    def set_devices(self, device: Device) -> None:
        self.device = device

    def prepare_context(self, entry: str, args: list[RuntimeValue]) -> VMContext:
        if entry not in self.executable.global_map:
            raise ExecutionError(f"Executable has no function named {entry!r}")
        index = self.executable.global_map[entry]
        fn = self.executable.functions[index]
        if len(args) != fn.arity:
            raise ExecutionError(
                f"{entry} expects {fn.arity} argument(s), got {len(args)}",
                {"function": entry},
            )
        return VMContext(index, [self._to_device(a) for a in args])

    def run(self, ctx: VMContext) -> RuntimeValue:
        if self.device is None:
            self.device = self.executable.device
        return self._invoke(ctx.func_index, ctx.args)

    def _to_device(self, value: RuntimeValue) -> RuntimeValue:
        device = self.device or self.executable.device
        match value:
            case TensorValue() if value.device != device:
                return value.copy_to(device)
            case TupleValue(fields=fields):
                return TupleValue([self._to_device(f) for f in fields])
            case _:
                return value

    def _invoke(self, func_index: int, args: list[RuntimeValue]) -> RuntimeValue:
        fn = self.executable.functions[func_index]
        if len(args) != len(fn.params):
            raise ExecutionError(
                f"{fn.name} expects {len(fn.params)} value(s), got {len(args)}",
                {"function": fn.name},
            )
        regs: list[RuntimeValue | None] = [None] * max(fn.register_count, 1)
        regs[: len(args)] = args

        for inst in fn.instructions:
            match inst:
                case LoadConst(dst=dst, const_index=i):
                    regs[dst] = TensorValue(self.executable.constants[i], self.device).copy_to(self.device)
                case InvokePacked(dst=dst, op=op, args=arg_regs, attrs=attrs):
                    regs[dst] = self._invoke_packed(op, [regs[r] for r in arg_regs], attrs)
                case AllocTuple(dst=dst, fields=fields):
                    regs[dst] = TupleValue([regs[r] for r in fields])
                case GetField(dst=dst, src=src, index=index):
                    tup = regs[src]
                    if not isinstance(tup, TupleValue):
                        raise ExecutionError(f"GetField on a {type_key(tup)} value in {fn.name}")
                    regs[dst] = tup.fields[index]
                case AllocClosure(dst=dst, func_index=target, free_vars=free):
                    regs[dst] = VMClosureValue(target, [regs[r] for r in free])
                case Invoke(dst=dst, func_index=target, args=arg_regs):
                    regs[dst] = self._invoke(target, [regs[r] for r in arg_regs])
                case InvokeClosure(dst=dst, closure=c, args=arg_regs):
                    closure = regs[c]
                    if not isinstance(closure, VMClosureValue):
                        raise ExecutionError(f"Cannot invoke a {type_key(closure)} value in {fn.name}")
                    regs[dst] = self._invoke(closure.func_index, closure.free_vars + [regs[r] for r in arg_regs])
                case Ret(src=src):
                    return regs[src]
                case _:
                    raise ExecutionError(f"Unknown instruction {inst!r}")

        raise ExecutionError(f"Function {fn.name} fell off the end without RET")

    def _invoke_packed(self, op: str, args: list, attrs: dict) -> TensorValue:
        arrays = []
        for a in args:
            if not isinstance(a, TensorValue):
                raise ExecutionError(f"Operator {op} expects tensors, got {type_key(a)}")
            arrays.append(a.data)
        out = get_op_def(op).compute(arrays, attrs)
        return TensorValue(out, self.device)
