import os
import sys
from unittest.mock import Mock

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from core.exceptions import FirewallError, TuningError
from core.network_manager import FirewallManager, SystemTuner
from core.process_manager import CommandResult, ProcessManager

RULES = [(443, "tcp"), (443, "udp"), (8888, "tcp")]


def _pm(installed=(), open_ports=(), failing=()):
    """Process manager double that tracks firewalld's permanent port set."""
    pm = Mock(spec=ProcessManager)
    pm.which.side_effect = lambda program: f"/usr/sbin/{program}" if program in installed else None
    ports = set(open_ports)
    calls = []

    def run_command(args, **kwargs):
        args = list(args)
        calls.append(args)
        if any(token in failing for token in args):
            return CommandResult(args, 1, "", "boom")
        for token in args:
            if token.startswith("--query-port="):
                return CommandResult(args, 0 if token.split("=", 1)[1] in ports else 1, "", "")
            if token.startswith("--add-port="):
                ports.add(token.split("=", 1)[1])
        return CommandResult(args, 0, "", "")

    pm.run_command.side_effect = run_command
    pm.calls = calls
    return pm


class TestFirewallManager:

    def test_no_firewall_is_an_error(self):
        manager = FirewallManager(_pm())
        with pytest.raises(FirewallError, match="No supported firewall"):
            manager.open(RULES)

    def test_firewalld_preferred_over_ufw(self):
        manager = FirewallManager(_pm(installed=("firewall-cmd", "ufw")))
        assert manager.detect_backend() == FirewallManager.FIREWALLD

    def test_firewalld_adds_missing_ports_and_reloads(self):
        pm = _pm(installed=("firewall-cmd",))
        FirewallManager(pm).open(RULES)

        added = [c for c in pm.calls if any(t.startswith("--add-port=") for t in c)]
        assert added == [
            ["firewall-cmd", "--permanent", "--add-port=443/tcp"],
            ["firewall-cmd", "--permanent", "--add-port=443/udp"],
            ["firewall-cmd", "--permanent", "--add-port=8888/tcp"],
        ]
        assert pm.calls[-1] == ["firewall-cmd", "--reload"]

    def test_firewalld_second_run_changes_nothing(self):
        pm = _pm(installed=("firewall-cmd",))
        manager = FirewallManager(pm)
        manager.open(RULES)
        pm.calls.clear()

        manager.open(RULES)

        assert all(any(t.startswith("--query-port=") for t in c) for c in pm.calls)
        assert len(pm.calls) == 3

    def test_duplicate_rules_collapse(self):
        pm = _pm(installed=("firewall-cmd",), open_ports=("443/tcp",))
        FirewallManager(pm).open([(443, "TCP"), (443, "tcp")])
        assert pm.calls == [["firewall-cmd", "--permanent", "--query-port=443/tcp"]]

    def test_ufw_allows_each_rule_then_enables(self):
        pm = _pm(installed=("ufw",))
        backend = FirewallManager(pm).open(RULES)

        assert backend == FirewallManager.UFW
        assert pm.calls == [
            ["ufw", "allow", "443/tcp"],
            ["ufw", "allow", "443/udp"],
            ["ufw", "allow", "8888/tcp"],
            ["ufw", "--force", "enable"],
        ]

    def test_failed_rule_raises(self):
        pm = _pm(installed=("ufw",), failing=("443/udp",))
        with pytest.raises(FirewallError, match="ufw allow 443/udp"):
            FirewallManager(pm).open(RULES)


class TestSystemTuner:

    TUNABLES = {"net.core.rmem_max": "134217728", "net.ipv4.tcp_fastopen": "3"}

    def test_merge_appends_missing_keys(self):
        merged = SystemTuner().merge("# base\nvm.swappiness=10\n", self.TUNABLES)
        assert merged == (
            "# base\nvm.swappiness=10\n"
            "net.core.rmem_max=134217728\n"
            "net.ipv4.tcp_fastopen=3\n"
        )

    def test_merge_replaces_conflicting_and_duplicate_lines(self):
        content = "net.ipv4.tcp_fastopen = 1\nvm.swappiness=10\nnet.ipv4.tcp_fastopen=0\n"
        merged = SystemTuner().merge(content, self.TUNABLES)

        lines = merged.splitlines()
        assert lines.count("net.ipv4.tcp_fastopen=3") == 1
        assert not any(line.startswith("net.ipv4.tcp_fastopen") and line.endswith(("1", "0"))
                       for line in lines)
        assert "vm.swappiness=10" in lines

    def test_merge_ignores_commented_keys(self):
        merged = SystemTuner().merge("# net.core.rmem_max=1\n", self.TUNABLES)
        assert merged.splitlines()[0] == "# net.core.rmem_max=1"
        assert "net.core.rmem_max=134217728" in merged.splitlines()

    def test_apply_twice_leaves_file_identical(self, tmp_path):
        sysctl_file = tmp_path / "sysctl.conf"
        sysctl_file.write_text("vm.swappiness=10\n")
        pm = _pm()
        tuner = SystemTuner(str(sysctl_file), pm)

        tuner.apply(self.TUNABLES)
        first = sysctl_file.read_text()
        tuner.apply(self.TUNABLES)

        assert sysctl_file.read_text() == first
        assert pm.calls == [["sysctl", "-p", str(sysctl_file)]] * 2

    def test_apply_reload_failure(self, tmp_path):
        tuner = SystemTuner(str(tmp_path / "sysctl.conf"), _pm(failing=("sysctl",)))
        with pytest.raises(TuningError):
            tuner.apply(self.TUNABLES)
