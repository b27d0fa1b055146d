"""
Native record locators.

A locator is 12 bytes: 4-byte big-endian UNIX seconds, 5 random bytes fixed
per process, and a 3-byte counter. Its text form is 24 hex characters, so
ordering by locator roughly follows insertion time.
"""

from __future__ import annotations

import itertools
import re
import secrets
import struct
import threading
import time
from datetime import datetime, timezone
from functools import total_ordering

LOCATOR_BYTES = 12
_HEX_RE = re.compile(r"^[0-9a-fA-F]{24}$")
_COUNTER_MAX = 0xFFFFFF

_process_unique = secrets.token_bytes(5)
_counter = itertools.count(secrets.randbelow(_COUNTER_MAX + 1))
_counter_lock = threading.Lock()


def _next_counter() -> int:
    with _counter_lock:
        return next(_counter) & _COUNTER_MAX


@total_ordering
class Locator:
    __slots__ = ("_binary",)

    def __init__(self, binary: bytes) -> None:
        binary = bytes(binary)
        if len(binary) != LOCATOR_BYTES:
            raise ValueError(f"Locator must be {LOCATOR_BYTES} bytes, got {len(binary)}.")
        self._binary = binary

    @classmethod
    def generate(cls, at: float | None = None) -> "Locator":
        seconds = int(time.time() if at is None else at)
        counter = _next_counter()
        return cls(struct.pack(">I", seconds) + _process_unique + counter.to_bytes(3, "big"))

    @staticmethod
    def is_valid(text: object) -> bool:
        return isinstance(text, str) and _HEX_RE.match(text) is not None

    @classmethod
    def from_hex(cls, text: str) -> "Locator":
        if not cls.is_valid(text):
            raise ValueError(f"Not a locator: {text!r}")
        return cls(bytes.fromhex(text))

    @property
    def binary(self) -> bytes:
        return self._binary

    @property
    def generation_time(self) -> datetime:
        (seconds,) = struct.unpack(">I", self._binary[:4])
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    def __str__(self) -> str:
        return self._binary.hex()

    def __repr__(self) -> str:
        return f"Locator('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Locator):
            return NotImplemented
        return self._binary == other._binary

    def __lt__(self, other: "Locator") -> bool:
        if not isinstance(other, Locator):
            return NotImplemented
        return self._binary < other._binary

    def __hash__(self) -> int:
        return hash(self._binary)
