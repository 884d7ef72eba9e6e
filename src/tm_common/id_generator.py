"""Process-local ID sources.

SnowflakeIdGenerator produces unique, time-ordered transaction ids.
GenerationCounter hands out the monotonically increasing generation id each
MarketEngine is tagged with, so a scheduled round can tell whether the engine
it was scheduled against is still the active one.
"""

import itertools
import threading
import time


class SnowflakeIdGenerator:
    """Simple snowflake ID generator.

    Layout (64 bits):
      - 41 bits: millisecond timestamp (since custom epoch)
      - 10 bits: node_id (0-1023)
      - 12 bits: sequence (0-4095 per millisecond)
    """

    _EPOCH_MS = 1_700_000_000_000
    _NODE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, node_id: int = 0, prefix: str = "") -> None:
        if not (0 <= node_id < (1 << self._NODE_BITS)):
            raise ValueError(f"node_id must be 0-{(1 << self._NODE_BITS) - 1}")
        self._node_id = node_id
        self._prefix = prefix
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            ts = int(time.time() * 1000)
            if ts < self._last_ms:
                ts = self._last_ms  # clock stepped back; stay monotonic
            if ts == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    ts = self._last_ms + 1
            else:
                self._sequence = 0
            self._last_ms = ts
            id_int = (
                ((ts - self._EPOCH_MS) << (self._NODE_BITS + self._SEQUENCE_BITS))
                | (self._node_id << self._SEQUENCE_BITS)
                | self._sequence
            )
            return f"{self._prefix}{id_int}"


class GenerationCounter:
    """Thread-safe monotonically increasing counter, starting at 1."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._current = 0

    def next(self) -> int:
        with self._lock:
            self._current = next(self._counter)
            return self._current

    @property
    def current(self) -> int:
        return self._current


_tx_generator = SnowflakeIdGenerator(prefix="tx_")
_ref_generator = SnowflakeIdGenerator(node_id=1, prefix="stl_")


def generate_transaction_id() -> str:
    return _tx_generator.next_id()


def generate_settlement_ref() -> str:
    return _ref_generator.next_id()
