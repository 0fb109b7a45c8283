"""Tests for ProcessSupervisor."""

import threading
from pathlib import Path

import pytest

from tunnelwatch.vpn.exceptions import (
    AlreadyRunningError,
    ConfigMissingError,
    KillFailedError,
    SpawnFailedError,
)
from tunnelwatch.vpn.models import ConnectionConfig
from tunnelwatch.vpn.supervisor import ProcessSupervisor


class TestStart:
    def test_start_spawns_openvpn_with_config(self, supervisor, config, fake_popen, log_dir):
        handle = supervisor.start(config)

        process = fake_popen.last
        assert process.cmd == ["openvpn", "--config", str(config.config_path)]
        assert handle.log_path == log_dir / "cfgA.log"
        assert process.kwargs["stdout"] is handle.log_file
        assert supervisor.is_alive()

    def test_credentials_are_passed(self, supervisor, config, fake_popen, tmp_path):
        creds = tmp_path / "cfgA.auth"
        creds.write_text("user\npass\n")

        supervisor.start(config, credentials_path=creds)

        cmd = fake_popen.last.cmd
        assert cmd[cmd.index("--auth-user-pass") + 1] == str(creds)

    def test_sudo_and_verbosity(self, log_dir, fake_popen, config):
        supervisor = ProcessSupervisor(log_dir=log_dir, verb=4, use_sudo=True, popen=fake_popen)
        supervisor.start(config)

        cmd = fake_popen.last.cmd
        assert cmd[:2] == ["sudo", "openvpn"]
        assert cmd[-2:] == ["--verb", "4"]

    def test_log_is_truncated_on_start(self, supervisor, config, write_log):
        path = write_log(["stale line from last session"])

        handle = supervisor.start(config)
        handle.log_file.flush()

        assert path.read_text() == ""

    def test_missing_config(self, supervisor, tmp_path):
        config = ConnectionConfig(name="ghost", config_path=tmp_path / "ghost.ovpn")
        with pytest.raises(ConfigMissingError):
            supervisor.start(config)
        assert not supervisor.is_alive()

    def test_already_running(self, supervisor, config, fake_popen):
        supervisor.start(config)
        with pytest.raises(AlreadyRunningError):
            supervisor.start(config)
        assert len(fake_popen.processes) == 1

    def test_binary_not_found(self, log_dir, config):
        supervisor = ProcessSupervisor(log_dir=log_dir, binary="/nonexistent/openvpn")
        with pytest.raises(SpawnFailedError):
            supervisor.start(config)
        assert not supervisor.is_alive()

    def test_permission_denied(self, log_dir, config):
        def deny(cmd, **kwargs):
            raise PermissionError("denied")

        supervisor = ProcessSupervisor(log_dir=log_dir, popen=deny)
        with pytest.raises(SpawnFailedError, match="Permission denied"):
            supervisor.start(config)

    def test_concurrent_starts_spawn_one_process(self, supervisor, config, fake_popen):
        barrier = threading.Barrier(8)
        errors = []

        def attempt():
            barrier.wait()
            try:
                supervisor.start(config)
            except AlreadyRunningError as e:
                errors.append(e)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(fake_popen.processes) == 1
        assert len(errors) == 7


class TestStop:
    def test_stop_without_process_is_noop(self, supervisor):
        supervisor.stop()
        supervisor.stop()
        assert not supervisor.is_alive()

    def test_stop_terminates_and_clears(self, supervisor, config, fake_popen):
        handle = supervisor.start(config)
        supervisor.stop()

        assert fake_popen.last.terminated
        assert not fake_popen.last.killed
        assert handle.log_file.closed
        assert supervisor.current_config() is None

    def test_stop_escalates_to_kill(self, supervisor, config, fake_popen):
        supervisor.start(config)
        fake_popen.last.ignore_terminate = True

        supervisor.stop()

        assert fake_popen.last.killed
        assert not supervisor.is_alive()

    def test_kill_failed_still_clears_handle(self, supervisor, config, fake_popen):
        supervisor.start(config)
        fake_popen.last.terminate_error = PermissionError("operation not permitted")

        with pytest.raises(KillFailedError):
            supervisor.stop()

        assert not supervisor.is_alive()
        supervisor.start(config)
        assert len(fake_popen.processes) == 2

    def test_start_stop_cycles(self, supervisor, config, fake_popen):
        for _ in range(3):
            supervisor.start(config)
            supervisor.stop()
        assert len(fake_popen.processes) == 3
        assert all(p.returncode is not None for p in fake_popen.processes)


class TestIsAlive:
    def test_exit_is_detected_and_handle_cleared(self, supervisor, config, fake_popen):
        handle = supervisor.start(config)
        fake_popen.last.exit(1)

        assert supervisor.is_alive() is False
        assert supervisor.current_config() is None
        assert supervisor.started_at() is None
        assert handle.log_file.closed

    def test_restart_after_crash(self, supervisor, config, fake_popen):
        supervisor.start(config)
        fake_popen.last.exit(1)
        assert not supervisor.is_alive()

        supervisor.start(config)
        assert supervisor.is_alive()


def test_real_process_lifecycle(tmp_path, config, fake_openvpn):
    binary = fake_openvpn(["Peer Connection Initiated with 203.0.113.9:1194 udp"])
    supervisor = ProcessSupervisor(log_dir=tmp_path / "logs", binary=binary, stop_timeout=5)

    handle = supervisor.start(config)
    try:
        assert supervisor.is_alive()
    finally:
        supervisor.stop()

    assert not supervisor.is_alive()
    assert handle.process.poll() is not None
    assert Path(handle.log_path).exists()
