import io
import logging
from pathlib import Path

import pytest

from chefsolo.config.models import ConnectionInfo, ProvisionRequest
from chefsolo.connection.base import RemoteProcess


# ----------------- Fakes for the transport -----------------

class FakeConnection:
    """Records every call; commands answer from ``responses`` (cmd -> (output, rc))."""

    def __init__(self, responses=None, fail_connects=0, timeout=5.0):
        self.timeout = timeout
        self.log = []
        self.responses = responses or {}
        self.fail_connects = fail_connects
        self.connects = 0
        self.disconnected = False

    def connect(self):
        self.connects += 1
        self.log.append(("connect",))
        if self.connects <= self.fail_connects:
            raise OSError("connection refused")

    def disconnect(self):
        self.disconnected = True
        self.log.append(("disconnect",))

    def start(self, command):
        self.log.append(("exec", command))
        out, rc = self.responses.get(command, ("", 0))
        return RemoteProcess(stream=io.BytesIO(out.encode()), wait=lambda: rc)

    def upload(self, remote_path, content):
        self.log.append(("upload", remote_path, content))

    def upload_dir(self, remote_dir, local_dir):
        self.log.append(("upload_dir", remote_dir, Path(local_dir)))

    @property
    def commands(self):
        return [e[1] for e in self.log if e[0] == "exec"]


class Capture:
    """Output observer and event observer in one."""

    def __init__(self):
        self.lines = []
        self.events = []

    def output(self, line):
        self.lines.append(line)

    def notify(self, event):
        self.events.append(event)


class FakeLocalRunner:
    """Stands in for run_local; records commands instead of running bundler."""

    def __init__(self, fail_on=None):
        self.commands = []
        self.fail_on = fail_on

    def __call__(self, ctx, output, command):
        from chefsolo.errors import LocalCommandError

        self.commands.append(command)
        if self.fail_on and self.fail_on in command:
            raise LocalCommandError(f"error running command '{command}'", command=command, exit_status=1)


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture
def fake_local_runner():
    return FakeLocalRunner()


@pytest.fixture
def make_request(tmp_path: Path):
    module = tmp_path / "module"
    module.mkdir()

    def _make(**overrides) -> ProvisionRequest:
        data = dict(
            instance_id="toto",
            chef_module_path=module,
            output_dir=tmp_path / "output",
            nodes=['{"id":"toto"}'],
            target_node='{"id":"toto"}',
            connection=ConnectionInfo(type="ssh", host="10.0.0.11", timeout=1.0),
        )
        data.update(overrides)
        return ProvisionRequest(**data)

    return _make


@pytest.fixture
def fake_connection_cls():
    return FakeConnection


@pytest.fixture
def fake_local_runner_cls():
    return FakeLocalRunner


@pytest.fixture(autouse=True)
def _restore_chefsolo_logger():
    # init_logging replaces handlers and turns propagation off
    logger = logging.getLogger("chefsolo")
    saved = (logger.level, logger.propagate, list(logger.handlers))
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in saved[2]:
            handler.close()
    logger.setLevel(saved[0])
    logger.propagate = saved[1]
    for handler in saved[2]:
        logger.addHandler(handler)
