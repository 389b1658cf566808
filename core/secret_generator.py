import os
from typing import Callable
from core.types import Secret
from core.exceptions import EntropyUnavailable

SECRET_BYTES = 16

class SecretGenerator:
    """Produces per-identity relay secrets: 16 random bytes as 32 lowercase hex chars."""

    def __init__(self, random_source: Callable[[int], bytes] = os.urandom):
        self.random_source = random_source

    def generate(self) -> Secret:
        try:
            raw = self.random_source(SECRET_BYTES)
        except (OSError, NotImplementedError) as e:
            raise EntropyUnavailable(f"Cannot read secure random source: {e}") from e
        if len(raw) != SECRET_BYTES:
            raise EntropyUnavailable(f"Short read from random source: {len(raw)} of {SECRET_BYTES} bytes")
        return raw.hex()
