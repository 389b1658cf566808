import fcntl
import os
import random
import time
from contextlib import contextmanager
from pathlib import Path

from core.exceptions import RegistryError
from core.logging_config import get_logger

_logger = get_logger(__name__)


class LockTimeout(RegistryError):
    pass


def try_lock_exclusively(fileno: int) -> bool:
    # flock locks the open file description, so two opens in one process
    # (two threads) still exclude each other, unlike fcntl.lockf.
    try:
        fcntl.flock(fileno, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


@contextmanager
def locked_exclusively(file: Path, timeout_sec: float):
    """Hold an exclusive advisory lock on `file` for the duration of the block.

    The lock is released when the descriptor is closed, on every exit path.
    """
    end_at = time.monotonic() + timeout_sec
    min_delay_msec = 10
    max_delay_msec = 100
    file.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(file, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        while not try_lock_exclusively(fd):
            if time.monotonic() >= end_at:
                raise LockTimeout(f"Can't lock {file} after {timeout_sec} seconds")
            time.sleep(random.randint(min_delay_msec, max_delay_msec) / 1000)
        _logger.debug("Locked exclusively", lock_file=str(file))
        yield
    finally:
        os.close(fd)
        _logger.debug("Lock released", lock_file=str(file))
