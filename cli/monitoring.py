#!/usr/bin/env python3
"""Operator tool for the running proxy: status snapshot and live logs."""
import os
import sys
from typing import Dict, List, Optional, Sequence

project_root = os.path.abspath(os.path.join(os.path.dirname(os.path.realpath(__file__)), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from cli.commands import CommandOutcome, Handler, EXIT_FAILED, dispatch, emit
from config.app_config import get_config
from core.exceptions import ProxyManagerError
from core.logging_config import setup_structured_logging
from service.monitoring_service import MonitoringService
from service.units import bytes_to_human

USAGE = "Usage: monitoring {status|logs}"

def status_command(monitor: MonitoringService, args: List[str]) -> CommandOutcome:
    report = monitor.status()
    lines = ["=== MTProto Proxy Status ===", f"State: {report.state.value}"]
    if report.status_text:
        lines.append(report.status_text)
    lines.append("")
    lines.append("=== Active Connections ===")
    lines.append("N/A (run as root)" if report.active_connections is None else str(report.active_connections))
    lines.append("")
    lines.append("=== Memory Usage ===")
    if report.processes:
        for proc in report.processes:
            lines.append(f"PID {proc.pid:<8} {bytes_to_human(proc.rss_bytes):<12} {proc.cmdline}")
        lines.append(f"Total: {bytes_to_human(report.memory_bytes)}")
    else:
        lines.append("No relay process running")
    lines.append("")
    lines.append("=== Disk Usage ===")
    lines.append(f"{bytes_to_human(report.disk_usage_bytes)}\t{monitor.proxy_dir}")
    return CommandOutcome(lines=lines)

def logs_command(monitor: MonitoringService, args: List[str]) -> CommandOutcome:
    try:
        return_code = monitor.follow_logs()
    except KeyboardInterrupt:
        return CommandOutcome()
    return CommandOutcome(exit_code=EXIT_FAILED if return_code else 0)

COMMANDS: Dict[str, Handler] = {
    "status": status_command,
    "logs": logs_command,
}

def main(argv: Optional[Sequence[str]] = None, monitor: Optional[MonitoringService] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if monitor is None:
        try:
            config = get_config()
        except ProxyManagerError as e:
            print(f"❌ Configuration error: {e}")
            return EXIT_FAILED
        setup_structured_logging(config.logging.log_level, config.logging.log_format)
        monitor = MonitoringService.from_config(config)
    return emit(dispatch(COMMANDS, monitor, argv, USAGE))

if __name__ == "__main__":
    sys.exit(main())
