import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    """Put `src/` on the path so `vmclient` imports without an install."""
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))


@pytest.fixture(params=["CPU", "GPU"])
def client(request):
    """A fresh client per default device kind."""
    from vmclient import ClientConfig, ComputationClient

    return ComputationClient.create(ClientConfig(default_device=request.param))
