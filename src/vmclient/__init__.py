"""vm-client: compile traced tensor programs and run them on a register VM.

The client is deliberately thin: the IR and passes live in `vmclient.ir` and
`vmclient.passes`, the VM in `vmclient.vm`, and `vmclient.client` glues them
into the compile / transfer / execute surface a lazy-tensor front-end calls.
"""

from .client import (
    CompileInstance,
    Computation,
    ComputationClient,
    Data,
    ExecuteComputationOptions,
    GenericComputation,
    Literal,
    Shape,
    TensorSource,
)
from .ir import IRValidationError
from .utils import ClientConfig, ClientError

__all__ = [
    "ClientConfig",
    "ClientError",
    "CompileInstance",
    "Computation",
    "ComputationClient",
    "Data",
    "ExecuteComputationOptions",
    "GenericComputation",
    "IRValidationError",
    "Literal",
    "Shape",
    "TensorSource",
]
