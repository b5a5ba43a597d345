from .assign_device import AssignDevice
from .base import FunctionPass, ModulePass
from .canonicalize_ops import CanonicalizeOps
from .dead_code import DeadCodeElimination
from .eliminate_closure import EliminateClosure
from .infer_type import InferType, TypeInferenceError
from .inline_closure import InlineClosure
from .inline_let import InlineLet
from .lambda_lift import LambdaLift
from .pipeline import Sequential, default_pipeline

__all__ = [
    "ModulePass",
    "FunctionPass",
    "InferType",
    "TypeInferenceError",
    "AssignDevice",
    "LambdaLift",
    "InlineClosure",
    "DeadCodeElimination",
    "EliminateClosure",
    "InlineLet",
    "CanonicalizeOps",
    "Sequential",
    "default_pipeline",
]
