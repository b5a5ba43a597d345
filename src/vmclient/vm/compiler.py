from __future__ import annotations

from dataclasses import dataclass, field

from vmclient.ir import (
    Call,
    Constant,
    Expr,
    Function,
    GlobalVar,
    IRModule,
    IRValidationError,
    Let,
    Op,
    Tuple,
    TupleGetItem,
    Var,
    is_canonical,
)
from vmclient.utils.exceptions import CompilationError
from vmclient.utils.logging import get_logger

from .bytecode import (
    AllocClosure,
    AllocTuple,
    Executable,
    GetField,
    Instruction,
    Invoke,
    InvokeClosure,
    InvokePacked,
    LoadConst,
    Ret,
    VMFunction,
)
from .device import Device

logger = get_logger(__name__)


@dataclass
class _FunctionEmitter:
    mod: IRModule
    global_map: dict[str, int]
    constants: list
    instructions: list[Instruction | Ret] = field(default_factory=list)
    registers: dict[int, int] = field(default_factory=dict)
    next_reg: int = 0

    def new_reg(self) -> int:
        r = self.next_reg
        self.next_reg += 1
        return r

    def bind(self, var: Var) -> int:
        r = self.new_reg()
        self.registers[id(var)] = r
        return r

    def emit(self, expr: Expr) -> int:
        if isinstance(expr, Var):
            try:
                return self.registers[id(expr)]
            except KeyError:
                raise IRValidationError(f"Variable %{expr.name} is not bound in this function") from None

        if isinstance(expr, Constant):
            dst = self.new_reg()
            self.constants.append(expr.data)
            self.instructions.append(LoadConst(dst, len(self.constants) - 1))
            return dst

        if isinstance(expr, GlobalVar):
            # A global used as a value is a closure with nothing captured.
            dst = self.new_reg()
            self.instructions.append(AllocClosure(dst, self.global_map[expr.name], ()))
            return dst

        if isinstance(expr, Call):
            args = tuple(self.emit(a) for a in expr.args)
            dst = self.new_reg()
            fn = expr.fn
            if isinstance(fn, Op):
                if not is_canonical(fn.name):
                    raise IRValidationError(f"Operator {fn.name} must be canonicalized before lowering")
                self.instructions.append(InvokePacked(dst, fn.name, args, dict(expr.attrs)))
            elif isinstance(fn, GlobalVar):
                index = self.global_map[fn.name]
                if self.mod.lookup(fn).is_closure:
                    self.instructions.append(AllocClosure(dst, index, args))
                else:
                    self.instructions.append(Invoke(dst, index, args))
            else:
                closure = self.emit(fn)
                self.instructions.append(InvokeClosure(dst, closure, args))
            return dst

        if isinstance(expr, Tuple):
            fields = tuple(self.emit(f) for f in expr.fields)
            dst = self.new_reg()
            self.instructions.append(AllocTuple(dst, fields))
            return dst

        if isinstance(expr, TupleGetItem):
            src = self.emit(expr.tuple_value)
            dst = self.new_reg()
            self.instructions.append(GetField(dst, src, expr.index))
            return dst

        if isinstance(expr, Let):
            value = self.emit(expr.value)
            self.registers[id(expr.var)] = value
            return self.emit(expr.body)

        if isinstance(expr, Function):
            raise IRValidationError("Nested functions must be lambda lifted before lowering")

        if isinstance(expr, Op):
            raise IRValidationError(f"Operator {expr.name} can only appear in call position")

        raise IRValidationError(f"Cannot lower expression kind {type(expr).__name__}")


@dataclass
class VMCompiler:
    """Lower a module into a register-machine `Executable`.

    Every global becomes one `VMFunction`; function indices follow the order of
    the module's functions. Lifted closures are lowered with their captured
    parameters first, so a closure call is an ordinary call on
    ``free_vars + args``.
    """

    def lower(self, mod: IRModule, device_map: dict[str, Device]) -> Executable:
        if not device_map:
            raise CompilationError("Lowering needs at least one target device", step="lower")
        try:
            return self._lower(mod, device_map)
        except IRValidationError as e:
            logger.error(f"Lowering failed: {e}")
            raise CompilationError(str(e), step="lower") from e

    def _lower(self, mod: IRModule, device_map: dict[str, Device]) -> Executable:
        global_map = {name: i for i, name in enumerate(mod.functions)}
        constants: list = []
        functions: list[VMFunction] = []
        kinds: set[str] = set()

        for name, func in mod.functions.items():
            kinds.add(func.attrs.get("device", ""))
            emitter = _FunctionEmitter(mod, global_map, constants)
            params = list(func.params)
            body = func.body
            num_free = 0
            if func.is_closure:
                if not isinstance(body, Function):
                    raise IRValidationError(f"Closure global @{name} must return a function")
                num_free = len(params)
                params += body.params
                body = body.body
            for p in params:
                emitter.bind(p)
            result = emitter.emit(body)
            emitter.instructions.append(Ret(result))
            functions.append(VMFunction(
                name=name,
                params=[p.name for p in params],
                instructions=emitter.instructions,
                register_count=emitter.next_reg,
                num_free_vars=num_free,
            ))

        device = self._select_device(kinds, device_map)
        exe = Executable(functions, global_map, constants, device)
        logger.debug(f"Lowered {len(functions)} function(s) for {device.name}")
        return exe

    @staticmethod
    def _select_device(kinds: set[str], device_map: dict[str, Device]) -> Device:
        for kind in kinds:
            if kind in device_map:
                return device_map[kind]
        return next(iter(device_map.values()))
