"""Pytest fixtures for tunnelwatch tests."""

import os
import stat
import subprocess
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("TUNNELWATCH_APP_LOG_DIR", tempfile.mkdtemp(prefix="tunnelwatch-logs-"))

from tunnelwatch.vpn.cache import ConnectionStateCache  # noqa: E402
from tunnelwatch.vpn.models import ConnectionConfig  # noqa: E402
from tunnelwatch.vpn.poller import StatusPoller  # noqa: E402
from tunnelwatch.vpn.supervisor import ProcessSupervisor  # noqa: E402


class FakeProcess:
    """Stand-in for subprocess.Popen that stays alive until told otherwise."""

    _next_pid = 4000

    def __init__(self, cmd, **kwargs):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.cmd = cmd
        self.kwargs = kwargs
        self.returncode = None
        self.terminated = False
        self.killed = False
        self.ignore_terminate = False
        self.terminate_error = None

    def poll(self):
        return self.returncode

    def exit(self, code=1):
        self.returncode = code

    def terminate(self):
        if self.terminate_error is not None:
            raise self.terminate_error
        self.terminated = True
        if not self.ignore_terminate:
            self.returncode = -15

    def kill(self):
        self.killed = True
        self.returncode = -9

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired(self.cmd, timeout)
        return self.returncode


class FakePopen:
    """Records every spawned FakeProcess."""

    def __init__(self):
        self.processes = []

    def __call__(self, cmd, **kwargs):
        process = FakeProcess(cmd, **kwargs)
        self.processes.append(process)
        return process

    @property
    def last(self):
        return self.processes[-1]


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_popen():
    return FakePopen()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def log_dir(tmp_path):
    path = tmp_path / "logs"
    path.mkdir()
    return path


@pytest.fixture
def config_dir(tmp_path):
    path = tmp_path / "tunnels"
    path.mkdir()
    (path / "cfgA.ovpn").write_text("client\nremote 203.0.113.9 1194\n")
    (path / "alice-de1-tcp.ovpn").write_text("client\n")
    return path


@pytest.fixture
def config(config_dir):
    return ConnectionConfig(name="cfgA", config_path=config_dir / "cfgA.ovpn")


@pytest.fixture
def supervisor(log_dir, fake_popen):
    return ProcessSupervisor(log_dir=log_dir, stop_timeout=0.1, popen=fake_popen)


@pytest.fixture
def cache():
    return ConnectionStateCache()


@pytest.fixture
def poller(supervisor, cache, clock):
    return StatusPoller(supervisor, cache, clock=clock)


@pytest.fixture
def write_log(log_dir):
    """Write lines into the tunnel log the supervisor uses for a config name."""
    def _write(lines, name="cfgA", append=False):
        path = Path(log_dir) / f"{name}.log"
        with open(path, "a" if append else "w") as f:
            for line in lines:
                f.write(line + "\n")
        return path
    return _write


@pytest.fixture
def fake_openvpn(tmp_path):
    """Build an executable script that prints log lines and then sleeps or exits."""
    def _make(lines, exit_code=None, name="fake-openvpn"):
        script = tmp_path / name
        body = ["#!/bin/sh"]
        body += ["echo '" + line.replace("'", "'\\''") + "'" for line in lines]
        if exit_code is None:
            body.append("exec sleep 30")
        else:
            body.append(f"exit {exit_code}")
        script.write_text("\n".join(body) + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)
    return _make
