"""Identifier generation helpers."""

import secrets
import string
import threading
import time
from typing import Callable, Optional

import ulid

_ALPHANUMERIC = string.ascii_letters + string.digits

# 2024-01-01T00:00:00Z in milliseconds
DEFAULT_EPOCH_MS = 1704067200000

_INSTANCE_BITS = 10
_SEQUENCE_BITS = 12
_MAX_INSTANCE = (1 << _INSTANCE_BITS) - 1
_MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def random_alphanumeric(length: int) -> str:
    """Cryptographically random [A-Za-z0-9] string."""
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


class SnowflakeGenerator:
    """
    Process-wide, time-ordered 64-bit id allocator.

    Layout: 41 bits of milliseconds since ``epoch_ms``, 10 bits of instance id,
    12 bits of per-millisecond sequence. Ids are strictly increasing within one
    generator; uniqueness across processes requires distinct ``instance_id``
    values.
    """

    def __init__(
        self,
        instance_id: int = 0,
        *,
        epoch_ms: int = DEFAULT_EPOCH_MS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if not 0 <= instance_id <= _MAX_INSTANCE:
            raise ValueError(f"instance_id must be between 0 and {_MAX_INSTANCE}")
        self.instance_id = instance_id
        self.epoch_ms = epoch_ms
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000) - self.epoch_ms

    def next_id(self) -> int:
        with self._lock:
            now = self._now_ms()
            # Clock went backwards: keep issuing from the last timestamp.
            if now < self._last_ms:
                now = self._last_ms
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & _MAX_SEQUENCE
                if self._sequence == 0:
                    # Sequence exhausted for this millisecond; borrow the next one.
                    now = self._last_ms + 1
            else:
                self._sequence = 0
            self._last_ms = now
            return (now << (_INSTANCE_BITS + _SEQUENCE_BITS)) | (
                self.instance_id << _SEQUENCE_BITS
            ) | self._sequence


_session_id_generator: Optional[SnowflakeGenerator] = None


def get_session_id_generator() -> SnowflakeGenerator:
    global _session_id_generator

    if _session_id_generator is None:
        from .config import settings

        _session_id_generator = SnowflakeGenerator(settings.instance_id)
    return _session_id_generator
