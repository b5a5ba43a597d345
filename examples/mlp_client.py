#!/usr/bin/env python3
"""End-to-end MLP through the computation client.

This script walks the full client path:
1. Build a traced function (IR)
2. Upload inputs (transfer_to_server)
3. Compile (pass pipeline + VM lowering)
4. Execute on the default device
5. Read results back and compare with NumPy

Run with:
    VMCLIENT_DEFAULT_DEVICE=GPU python -m examples.mlp_client
"""

import numpy as np

from vmclient import CompileInstance, ComputationClient, GenericComputation, TensorSource
from vmclient.ir import Call, Function, Let, TensorType, Tuple, Var, dtypes, get_op


def build_mlp() -> Function:
    """Two dense layers, the second one written as a local closure."""
    f32 = dtypes.float32
    x = Var("x", TensorType((32, 64), f32))
    w1 = Var("w1", TensorType((64, 32), f32))
    b1 = Var("b1", TensorType((32,), f32))
    w2 = Var("w2", TensorType((32, 16), f32))

    h1 = Call(get_op("relu"), [Call(get_op("bias_add"), [Call(get_op("matmul"), [x, w1]), b1], {"axis": 1})])

    a = Var("a", TensorType((32, 32), f32))
    layer2 = Var("layer2")
    body = Let(layer2, Function([a], Call(get_op("matmul"), [a, w2])), Call(layer2, [h1]))
    return Function([x, w1, b1, w2], Tuple([body, h1]))


def numpy_reference(x, w1, b1, w2):
    h1 = np.maximum(0, x @ w1 + b1)
    return h1 @ w2, h1


def main():
    print("=" * 70)
    print("MLP through the computation client")
    print("=" * 70)

    client = ComputationClient.create()
    device = client.get_default_device()
    print(f"\n[1] Devices: {client.get_local_devices()} (default {device})")

    rng = np.random.default_rng(0)
    x = rng.standard_normal((32, 64)).astype(np.float32)
    w1 = rng.standard_normal((64, 32)).astype(np.float32)
    b1 = rng.standard_normal((32,)).astype(np.float32)
    w2 = rng.standard_normal((32, 16)).astype(np.float32)

    print("\n[2] Uploading inputs...")
    args = client.transfer_to_server([TensorSource.from_array(a, device) for a in (x, w1, b1, w2)])
    for name, handle in zip(("x", "w1", "b1", "w2"), args):
        print(f"    {name}: {handle.shape}")

    print("\n[3] Compiling...")
    [comp] = client.compile([CompileInstance(GenericComputation(build_mlp()), devices=[device])])
    print(client.lowered.lookup(comp).summary())
    print(comp.executable.summary())

    print("\n[4] Executing...")
    outs = client.execute_computation(comp, args, device)
    print(f"    {len(outs)} result handle(s)")

    print("\n[5] Reading back...")
    got = [lit.to_numpy() for lit in client.transfer_from_server(outs)]
    for i, (g, ref) in enumerate(zip(got, numpy_reference(x, w1, b1, w2))):
        err = float(np.max(np.abs(g - ref)))
        print(f"    out[{i}] shape={g.shape} max_abs_err={err:.2e}")
        assert np.allclose(g, ref, rtol=1e-4, atol=1e-4), f"out[{i}] mismatch"

    print("\nAll outputs match the NumPy reference.")


if __name__ == "__main__":
    main()
