from dataclasses import dataclass
from typing import List

from core.types import Username, Secret, validate_secret
from core.exceptions import ValidationError, RegistryParseError

FIELD_DELIMITER = ":"
COMMENT_PREFIX = "#"
RECORD_FIELDS = ("username", "secret", "max_connections", "expire_time", "data_limit")

def validate_username(username: str) -> Username:
    """Usernames become the first field of a colon-delimited line."""
    if not username:
        raise ValidationError("username", username, "Must not be empty")
    try:
        username.encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError("username", repr(username), "Must be valid UTF-8")
    if FIELD_DELIMITER in username:
        raise ValidationError("username", username, f"Must not contain '{FIELD_DELIMITER}'")
    if username.startswith(COMMENT_PREFIX):
        raise ValidationError("username", username, f"Must not start with '{COMMENT_PREFIX}'")
    if any(ch.isspace() for ch in username):
        raise ValidationError("username", username, "Must not contain whitespace")
    return username

def _validate_limit(field: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(field, str(value), "Must be a non-negative integer")
    return value

@dataclass(frozen=True)
class UserRecord:
    """One proxy identity in users.conf."""
    username: Username
    secret: Secret
    max_connections: int
    expire_time: int
    data_limit: int

    def __post_init__(self):
        validate_username(self.username)
        validate_secret(self.secret)
        _validate_limit("max_connections", self.max_connections)
        _validate_limit("expire_time", self.expire_time)
        _validate_limit("data_limit", self.data_limit)

    def to_line(self) -> str:
        return FIELD_DELIMITER.join([
            self.username,
            self.secret,
            str(self.max_connections),
            str(self.expire_time),
            str(self.data_limit),
        ])

    @classmethod
    def from_line(cls, line: str, line_number: int = 0) -> "UserRecord":
        try:
            line.encode("utf-8")
        except UnicodeEncodeError:
            # undecodable bytes survive the read as surrogate escapes
            raise RegistryParseError(line_number, line, "Not valid UTF-8")
        parts: List[str] = line.strip().split(FIELD_DELIMITER)
        if len(parts) != len(RECORD_FIELDS):
            raise RegistryParseError(
                line_number, line, f"Expected {len(RECORD_FIELDS)} fields, got {len(parts)}"
            )
        username, secret, max_connections, expire_time, data_limit = parts
        try:
            numbers = [int(max_connections), int(expire_time), int(data_limit)]
        except ValueError:
            raise RegistryParseError(line_number, line, "Limits must be integers")
        try:
            return cls(username, secret, *numbers)
        except ValidationError as e:
            raise RegistryParseError(line_number, line, str(e))

def is_record_line(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith(COMMENT_PREFIX)

def record_username(line: str) -> str:
    """Username field of a raw line, without validating the rest of it."""
    return line.strip().split(FIELD_DELIMITER, 1)[0]
