from __future__ import annotations

from dataclasses import dataclass, field

from vmclient.ir import IRModule, IRValidationError
from vmclient.utils.exceptions import CompilationError
from vmclient.utils.logging import get_logger

from .assign_device import AssignDevice
from .base import ModulePass
from .canonicalize_ops import CanonicalizeOps
from .dead_code import DeadCodeElimination
from .eliminate_closure import EliminateClosure
from .infer_type import InferType
from .inline_closure import InlineClosure
from .inline_let import InlineLet
from .lambda_lift import LambdaLift

logger = get_logger(__name__)


@dataclass
class Sequential:
    """Run an ordered list of passes, re-typing the module after each one.

    Later passes read the `checked_type` annotations written by InferType, and
    any pass that rebuilds nodes leaves them stale, so type inference is part
    of the runner rather than of the step list. A structural error from any
    step aborts the whole run with `CompilationError`.
    """

    steps: list[ModulePass] = field(default_factory=list)

    def __post_init__(self) -> None:
        for step in self.steps:
            if isinstance(step, InferType):
                raise ValueError("InferType is run by Sequential itself; do not list it as a step")

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def run(self, mod: IRModule) -> IRModule:
        mod = self._apply(InferType(), mod)
        for step in self.steps:
            logger.debug(f"Running pass {step.name}")
            mod = self._apply(step, mod)
            mod = self._apply(InferType(), mod)
        return mod

    __call__ = run

    @staticmethod
    def _apply(step: ModulePass, mod: IRModule) -> IRModule:
        try:
            return step.run(mod)
        except IRValidationError as e:
            logger.error(f"Pass {step.name} failed: {e}")
            raise CompilationError(str(e), step=step.name) from e


def default_pipeline(device_kind: str) -> Sequential:
    """The fixed optimization sequence applied before lowering."""
    return Sequential([
        AssignDevice(device_kind),
        LambdaLift(),
        InlineClosure(),
        DeadCodeElimination(),
        EliminateClosure(),
        InlineLet(),
        DeadCodeElimination(),
        CanonicalizeOps(),
    ])
