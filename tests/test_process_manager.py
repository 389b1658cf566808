import os
import subprocess
import sys
from unittest.mock import Mock, patch

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from core.process_manager import ProcessManager


class TestRunCommand:

    def test_missing_program_maps_to_127(self):
        with patch("core.process_manager.subprocess.run", side_effect=FileNotFoundError("nope")):
            result = ProcessManager().run_command(["nope"])
        assert result.return_code == 127
        assert not result.success

    def test_timeout_maps_to_124(self):
        with patch("core.process_manager.subprocess.run",
                   side_effect=subprocess.TimeoutExpired(["make"], 5)):
            result = ProcessManager().run_command(["make"], timeout=5)
        assert result.return_code == 124


class TestStreamCommand:

    def test_returns_exit_status(self):
        process = Mock()
        process.wait.return_value = 0
        process.poll.return_value = 0
        with patch("core.process_manager.subprocess.Popen", return_value=process):
            assert ProcessManager().stream_command(["journalctl", "-f"]) == 0
        process.terminate.assert_not_called()

    def test_missing_program_maps_to_127(self):
        with patch("core.process_manager.subprocess.Popen",
                   side_effect=FileNotFoundError(2, "No such file or directory", "journalctl")):
            assert ProcessManager().stream_command(["journalctl", "-f"]) == 127

    def test_interrupt_terminates_and_reaps_child(self):
        process = Mock()
        process.wait.side_effect = [KeyboardInterrupt, -15]
        process.poll.return_value = None
        with patch("core.process_manager.subprocess.Popen", return_value=process):
            with pytest.raises(KeyboardInterrupt):
                ProcessManager().stream_command(["journalctl", "-f"])

        process.terminate.assert_called_once_with()
        assert process.wait.call_count == 2
