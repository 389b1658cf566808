#!/usr/bin/env python3
"""Operator tool for proxy users: add, remove and list registry records."""
import os
import sys
from typing import Dict, List, Optional, Sequence

project_root = os.path.abspath(os.path.join(os.path.dirname(os.path.realpath(__file__)), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from cli.commands import CommandOutcome, Handler, EXIT_FAILED, EXIT_USAGE, dispatch, emit
from config.app_config import get_config
from config.constants import ProxyConstants
from core.exceptions import ProxyManagerError, ValidationError
from core.logging_config import setup_structured_logging
from service.units import format_connections, format_data_limit, format_expire_time
from service.user_service import UserService

USAGE = ("Usage: user-manager {add|remove|list} [username] "
         "[max_connections] [expire_time] [data_limit]")

LIMIT_ARGS = (
    ("max_connections", ProxyConstants.DEFAULT_USER_MAX_CONNECTIONS),
    ("expire_time", ProxyConstants.DEFAULT_USER_EXPIRE_TIME),
    ("data_limit", ProxyConstants.DEFAULT_USER_DATA_LIMIT),
)

def _parse_limits(args: List[str]) -> List[int]:
    values = []
    for index, (name, default) in enumerate(LIMIT_ARGS):
        if index >= len(args):
            values.append(default)
            continue
        try:
            values.append(int(args[index]))
        except ValueError:
            raise ValidationError(name, args[index], "Must be an integer")
    return values

def add_command(service: UserService, args: List[str]) -> CommandOutcome:
    if not args or len(args) > 1 + len(LIMIT_ARGS):
        return CommandOutcome(EXIT_USAGE, [USAGE])
    username = args[0]
    max_connections, expire_time, data_limit = _parse_limits(args[1:])
    record = service.add_user(username, max_connections, expire_time, data_limit)
    lines = [f"User {record.username} added with secret: {record.secret}"]
    transition = service.last_transition
    if transition is not None and not transition.command_succeeded:
        lines.append(f"⚠️  Could not restart {transition.service}; the user is active after the next restart.")
    return CommandOutcome(lines=lines)

def remove_command(service: UserService, args: List[str]) -> CommandOutcome:
    if len(args) != 1:
        return CommandOutcome(EXIT_USAGE, [USAGE])
    username = args[0]
    if service.remove_user(username):
        return CommandOutcome(lines=[f"User {username} removed"])
    return CommandOutcome(lines=[f"User {username} not found, nothing removed"])

def list_command(service: UserService, args: List[str]) -> CommandOutcome:
    scan = service.list_users()
    lines = ["Current users:"]
    if not scan.records:
        lines.append("No users found.")
    else:
        lines.append("-" * 96)
        lines.append(f"{'Username':<20} {'Secret':<34} {'Max Conn':<10} {'Expires':<16} {'Data Limit'}")
        lines.append("-" * 96)
        for record in scan.records:
            lines.append(
                f"{record.username:<20} {record.secret:<34} "
                f"{format_connections(record.max_connections):<10} "
                f"{format_expire_time(record.expire_time):<16} "
                f"{format_data_limit(record.data_limit)}"
            )
        lines.append("-" * 96)
    for error in scan.errors:
        lines.append(f"⚠️  Skipped malformed line {error.line_number}: {error.reason}")
    return CommandOutcome(exit_code=EXIT_FAILED if scan.errors else 0, lines=lines)

COMMANDS: Dict[str, Handler] = {
    "add": add_command,
    "remove": remove_command,
    "list": list_command,
}

def main(argv: Optional[Sequence[str]] = None, service: Optional[UserService] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if service is None:
        try:
            config = get_config()
        except ProxyManagerError as e:
            print(f"❌ Configuration error: {e}")
            return EXIT_FAILED
        setup_structured_logging(config.logging.log_level, config.logging.log_format)
        service = UserService.from_config(config)
    return emit(dispatch(COMMANDS, service, argv, USAGE))

if __name__ == "__main__":
    sys.exit(main())
