import logging

import pytest

from vmclient.utils import ClientConfig, ClientError, CompilationError, DeviceError, get_logger, setup_logging
from vmclient.utils.config import ENV_DEFAULT_DEVICE, ENV_LOG_LEVEL


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("vmclient")
    for handler in logger.handlers[:]:
        handler.close()
    setup_logging("WARNING")


def test_config_defaults(monkeypatch) -> None:
    monkeypatch.delenv(ENV_DEFAULT_DEVICE, raising=False)
    monkeypatch.delenv(ENV_LOG_LEVEL, raising=False)
    config = ClientConfig.from_env()
    assert config == ClientConfig()
    assert config.default_device == "CPU"
    assert config.log_level == "WARNING"


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv(ENV_DEFAULT_DEVICE, " gpu ")
    monkeypatch.setenv(ENV_LOG_LEVEL, "debug")
    config = ClientConfig.from_env()
    assert config.default_device == "GPU"
    assert config.log_level == "DEBUG"


def test_setup_logging_level() -> None:
    setup_logging("DEBUG")
    logger = logging.getLogger("vmclient")
    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert len(logger.handlers) == 1


def test_setup_logging_unknown_level_falls_back() -> None:
    setup_logging("chatty")
    assert logging.getLogger("vmclient").level == logging.WARNING


def test_setup_logging_reads_env(monkeypatch) -> None:
    monkeypatch.setenv(ENV_LOG_LEVEL, "ERROR")
    setup_logging()
    assert logging.getLogger("vmclient").level == logging.ERROR


def test_setup_logging_writes_file(tmp_path) -> None:
    log_file = tmp_path / "client.log"
    setup_logging("INFO", str(log_file))
    get_logger("tests").info("hello from the client")
    for handler in logging.getLogger("vmclient").handlers:
        handler.flush()
    assert "hello from the client" in log_file.read_text()


def test_get_logger_namespaces() -> None:
    assert get_logger("vmclient.vm.vm").name == "vmclient.vm.vm"
    assert get_logger("tests").name == "vmclient.tests"


def test_error_details_in_message() -> None:
    err = CompilationError("bad shape", step="InferType")
    assert isinstance(err, ClientError)
    assert err.step == "InferType"
    assert str(err) == "bad shape (step=InferType)"

    assert str(DeviceError("no such device")) == "no such device"
