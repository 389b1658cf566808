import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from config.constants import ProxyConstants
from core.exceptions import DuplicateUserError, RegistryParseError
from core.logging_config import LoggerMixin
from core.secret_generator import SecretGenerator
from core.types import Username, Secret
from .file_lock import locked_exclusively
from .models import UserRecord, validate_username, is_record_line, record_username

REGISTRY_HEADER = (
    "# User Management\n"
    "# Format: username:secret:max_connections:expire_time:data_limit\n"
)

# Lines that are not valid UTF-8 are kept byte-for-byte across rewrites
REGISTRY_ERRORS = "surrogateescape"

@dataclass
class RegistryScan:
    """Result of reading the registry: parsed records plus per-line errors."""
    records: List[UserRecord] = field(default_factory=list)
    errors: List[RegistryParseError] = field(default_factory=list)

class UserRegistry(LoggerMixin):
    """Flat-file store of proxy users, one colon-delimited record per line.

    All mutations run under an exclusive lock on `<path>.lock` held across the
    whole read-modify-write span.
    """

    def __init__(self, path: str, secret_generator: Optional[SecretGenerator] = None,
                 allow_duplicates: bool = False, lock_timeout: float = 30.0) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.secret_generator = secret_generator or SecretGenerator()
        self.allow_duplicates = allow_duplicates
        self.lock_timeout = lock_timeout

    def _locked(self):
        return locked_exclusively(self.lock_path, self.lock_timeout)

    def _read_lines(self) -> List[str]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8", errors=REGISTRY_ERRORS) as f:
            return f.read().splitlines()

    def _write_lines(self, lines: List[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors=REGISTRY_ERRORS) as f:
                f.write("\n".join(lines) + "\n")
                f.flush()
                os.fsync(f.fileno())
            if self.path.exists():
                os.chmod(tmp_path, self.path.stat().st_mode & 0o777)
            else:
                os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _parse(self, lines: List[str]) -> RegistryScan:
        scan = RegistryScan()
        for number, line in enumerate(lines, start=1):
            if not is_record_line(line):
                continue
            try:
                scan.records.append(UserRecord.from_line(line, number))
            except RegistryParseError as e:
                scan.errors.append(e)
        return scan

    def _contains(self, lines: List[str], username: Username) -> bool:
        return any(is_record_line(line) and record_username(line) == username for line in lines)

    def scan(self) -> RegistryScan:
        """Parse every non-comment line; malformed lines are collected, not raised."""
        with self._locked():
            lines = self._read_lines()
        return self._parse(lines)

    def list_users(self) -> List[UserRecord]:
        scan = self.scan()
        for error in scan.errors:
            self.logger.warning("Skipping malformed registry line", path=str(self.path),
                                line_number=error.line_number, reason=error.reason)
        return scan.records

    def add(self, username: Username,
            max_connections: int = ProxyConstants.DEFAULT_USER_MAX_CONNECTIONS,
            expire_time: int = ProxyConstants.DEFAULT_USER_EXPIRE_TIME,
            data_limit: int = ProxyConstants.DEFAULT_USER_DATA_LIMIT) -> UserRecord:
        validate_username(username)
        record = UserRecord(username, self.secret_generator.generate(),
                            max_connections, expire_time, data_limit)
        with self._locked():
            lines = self._read_lines()
            if self._contains(lines, username):
                if not self.allow_duplicates:
                    raise DuplicateUserError(username)
                self.logger.warning("Appending duplicate user", username=username)
            if not lines:
                lines = REGISTRY_HEADER.splitlines()
            lines.append(record.to_line())
            self._write_lines(lines)
        self.logger.info("User added", username=username, path=str(self.path))
        return record

    def remove(self, username: Username) -> bool:
        """Delete every record whose username matches exactly. Returns whether any was removed."""
        with self._locked():
            lines = self._read_lines()
            kept = [line for line in lines
                    if not (is_record_line(line) and record_username(line) == username)]
            removed = len(lines) - len(kept)
            if removed:
                self._write_lines(kept)
        if removed:
            self.logger.info("User removed", username=username, records=removed)
        else:
            self.logger.info("User not present, nothing removed", username=username)
        return bool(removed)

    def ensure_admin(self, secret: Secret,
                     username: Username = ProxyConstants.ADMIN_USERNAME,
                     max_connections: int = ProxyConstants.ADMIN_MAX_CONNECTIONS) -> UserRecord:
        """Create or refresh the install-time admin record, keeping every other line."""
        record = UserRecord(username, secret, max_connections, 0, 0)
        with self._locked():
            lines = self._read_lines()
            if not lines:
                lines = REGISTRY_HEADER.splitlines()
            updated: List[str] = []
            placed = False
            for line in lines:
                if is_record_line(line) and record_username(line) == username:
                    if not placed:
                        updated.append(record.to_line())
                        placed = True
                    continue
                updated.append(line)
            if not placed:
                # Admin goes first, right after the leading comment block
                index = 0
                while index < len(updated) and not is_record_line(updated[index]):
                    index += 1
                updated.insert(index, record.to_line())
            if updated != lines:
                self._write_lines(updated)
        return record
