"""
Unit tests for ServiceUnitManager with a mocked process manager.
"""

import os
import sys
from unittest.mock import Mock

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from core.exceptions import ServiceError, ServiceStartFailedError
from core.process_manager import CommandResult, ProcessManager
from core.service_manager import ServiceUnitManager
from core.types import ProxyConfig, ServiceDescriptor, ServiceState

SECRET = "00112233445566778899aabbccddeeff"


def _result(args, code=0, stdout="", stderr=""):
    return CommandResult(list(args), code, stdout, stderr)


class FakeSystemd:
    """Answers systemctl/journalctl the way a host would."""

    def __init__(self, state="active", fail=()):
        self.state = state
        self.fail = set(fail)
        self.calls = []

    def run_command(self, args, **kwargs):
        self.calls.append(list(args))
        if args[0] == "journalctl":
            return _result(args, 0, "line1\nline2")
        if args[:2] == ["systemctl", "status"]:
            return _result(args, 3, f"mtproto-proxy.service - MTProto Proxy Service\n Active: {self.state}")
        if args[1] in self.fail:
            return _result(args, 1, "", f"{args[1]} failed")
        return _result(args, 0)

    def run_systemctl_command(self, action, service):
        args = ["systemctl", action, service]
        if action == "is-active":
            self.calls.append(args)
            return _result(args, 0 if self.state == "active" else 3, self.state + "\n")
        return self.run_command(args)


@pytest.fixture
def sleeps():
    return []


def make_manager(tmp_path, systemd, sleeps):
    pm = Mock(spec=ProcessManager)
    pm.run_command.side_effect = systemd.run_command
    pm.run_systemctl_command.side_effect = systemd.run_systemctl_command
    pm.stream_command.return_value = 0
    return ServiceUnitManager("mtproto-proxy", str(tmp_path / "units"), pm,
                              settle_seconds=3, sleep=sleeps.append)


def _descriptor():
    return ServiceDescriptor.for_proxy("mtproto-proxy", "/opt/mtproto-proxy", "/opt/proxy.conf",
                                       ProxyConfig(secret=SECRET), "nobody", "nogroup", "/opt")


def test_install_writes_unit_reloads_and_enables(tmp_path, sleeps):
    systemd = FakeSystemd()
    manager = make_manager(tmp_path, systemd, sleeps)

    path = manager.install(_descriptor())

    assert path == str(tmp_path / "units" / "mtproto-proxy.service")
    with open(path) as f:
        assert "ExecStart=/opt/mtproto-proxy" in f.read()
    assert systemd.calls == [
        ["systemctl", "daemon-reload"],
        ["systemctl", "enable", "mtproto-proxy"],
    ]


def test_install_enable_failure_raises(tmp_path, sleeps):
    manager = make_manager(tmp_path, FakeSystemd(fail={"enable"}), sleeps)
    with pytest.raises(ServiceError, match="enable failed"):
        manager.install(_descriptor())


def test_start_waits_settle_period_and_reports_active(tmp_path, sleeps):
    systemd = FakeSystemd(state="active")
    manager = make_manager(tmp_path, systemd, sleeps)

    transition = manager.start()

    assert sleeps == [3]
    assert transition.is_active
    assert transition.verified
    assert transition.action == "start"
    assert ["systemctl", "start", "mtproto-proxy"] in systemd.calls


def test_start_failure_includes_journal_tail(tmp_path, sleeps):
    manager = make_manager(tmp_path, FakeSystemd(state="failed"), sleeps)

    with pytest.raises(ServiceStartFailedError) as excinfo:
        manager.start()

    assert excinfo.value.state == "failed"
    assert excinfo.value.diagnostics == "line1\nline2"


def test_restart_without_verify_does_not_wait(tmp_path, sleeps):
    systemd = FakeSystemd(state="activating", fail={"restart"})
    manager = make_manager(tmp_path, systemd, sleeps)

    transition = manager.restart()

    assert sleeps == []
    assert transition.command_succeeded is False
    assert transition.state == ServiceState.ACTIVATING
    assert transition.verified is False


def test_restart_with_verify_raises_when_inactive(tmp_path, sleeps):
    manager = make_manager(tmp_path, FakeSystemd(state="inactive"), sleeps)
    with pytest.raises(ServiceStartFailedError):
        manager.restart(verify=True)
    assert sleeps == [3]


def test_unknown_state_text_maps_to_unknown(tmp_path, sleeps):
    manager = make_manager(tmp_path, FakeSystemd(state="reloading-ish"), sleeps)
    assert manager.get_state() == ServiceState.UNKNOWN


def test_status_text_uses_output_of_inactive_unit(tmp_path, sleeps):
    manager = make_manager(tmp_path, FakeSystemd(state="inactive"), sleeps)
    assert "Active: inactive" in manager.status_text()


def test_follow_logs_streams_journal(tmp_path, sleeps):
    manager = make_manager(tmp_path, FakeSystemd(), sleeps)
    assert manager.follow_logs() == 0
    manager.process_manager.stream_command.assert_called_once_with(
        ["journalctl", "-u", "mtproto-proxy", "-f"]
    )
