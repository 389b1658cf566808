from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, TypeVar

from core.exceptions import ProxyManagerError
from core.logging_config import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

T = TypeVar('T')

@dataclass
class CommandOutcome:
    """Result of one operator subcommand: exit status plus lines to print."""
    exit_code: int = EXIT_OK
    lines: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_OK

    @classmethod
    def failure(cls, message: str) -> "CommandOutcome":
        return cls(EXIT_FAILED, [f"❌ {message}"])

Handler = Callable[[T, List[str]], CommandOutcome]

def dispatch(table: Dict[str, Handler], target: T, argv: Sequence[str], usage: str) -> CommandOutcome:
    """Route argv[0] to its handler; unknown or missing subcommands yield the usage text."""
    if not argv or argv[0] not in table:
        return CommandOutcome(EXIT_USAGE, [usage])
    command, args = argv[0], list(argv[1:])
    try:
        return table[command](target, args)
    except (ProxyManagerError, OSError) as e:
        logger.error("Command failed", command=command, error=str(e), error_type=type(e).__name__)
        return CommandOutcome.failure(str(e))

def emit(outcome: CommandOutcome) -> int:
    for line in outcome.lines:
        print(line)
    return outcome.exit_code
