#!/usr/bin/env python3
import os
import sys
from typing import Optional, Sequence

real_script_path = os.path.realpath(__file__)
project_root = os.path.abspath(os.path.join(os.path.dirname(real_script_path), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from config.app_config import get_config
from core.exceptions import (
    ProxyManagerError,
    ProvisioningStepError,
    ServiceStartFailedError,
    CommandError,
)
from core.logging_config import setup_structured_logging, get_logger
from core.orchestrator import Orchestrator, ProvisioningContext
from core.types import ConnectionInfo

GREEN = '\033[0;32m'
YELLOW = '\033[1;33m'
RED = '\033[0;31m'
NC = '\033[0m'

logger = get_logger(__name__)

def print_info(message: str) -> None:
    print(f"{GREEN}[INFO]{NC} {message}")

def print_error(message: str) -> None:
    print(f"{RED}[ERROR]{NC} {message}", file=sys.stderr)

def print_connection_info(info: ConnectionInfo) -> None:
    print("")
    print("==================================")
    print("MTProto Proxy Installation Complete!")
    print("==================================")
    print(f"Server IP: {info.host}")
    print(f"Port: {info.port}")
    print(f"Secret: {info.secret}")
    print("")
    print("Telegram Link:")
    print(info.link)
    print("")
    print("Management Commands:")
    for command in info.management_commands:
        print(command)
    print("==================================")

def report_failure(error: ProvisioningStepError) -> None:
    print_error(f"Installation failed at step '{error.step}': {error.cause}")
    cause = error.cause
    if isinstance(cause, ServiceStartFailedError) and cause.diagnostics:
        print_error("Recent service log:")
        print(cause.diagnostics, file=sys.stderr)
    elif isinstance(cause, CommandError) and cause.output:
        print_error(f"Command output from '{cause.command}':")
        print(cause.output, file=sys.stderr)
    print(f"{YELLOW}[WARNING]{NC} Nothing was rolled back; fix the cause and re-run the installer.",
          file=sys.stderr)

def install(orchestrator: Orchestrator) -> ProvisioningContext:
    print_info("Starting MTProto Proxy installation...")
    ctx = orchestrator.run()
    print_info("MTProto Proxy started successfully!")
    print_connection_info(ctx.connection_info)
    return ctx

def main(argv: Optional[Sequence[str]] = None, orchestrator: Optional[Orchestrator] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv:
        print("Usage: mtproxy-install (takes no arguments, run as root)")
        return 2
    if orchestrator is None:
        try:
            config = get_config()
        except ProxyManagerError as e:
            print_error(f"Configuration error: {e}")
            return 1
        setup_structured_logging(config.logging.log_level, config.logging.log_format)
        orchestrator = Orchestrator.from_config(config, progress=print_info)
    try:
        install(orchestrator)
    except ProvisioningStepError as e:
        logger.error("Installation failed", step=e.step, error=str(e.cause))
        report_failure(e)
        return 1
    except KeyboardInterrupt:
        print_error("Installation interrupted.")
        return 130
    return 0

if __name__ == "__main__":
    sys.exit(main())
