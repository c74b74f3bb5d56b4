"""Operating-system services used by the AT command engine."""

from __future__ import annotations

import enum
import queue
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from espat.util import HW_RST_ASSERT, HW_RST_DEASSERT

# Passed as a block time to wait without limit.
WAIT_FOREVER = None

T = TypeVar("T")


class SchedulerState(enum.Enum):
    """State of the task scheduler."""

    NOT_STARTED = enum.auto()
    RUNNING = enum.auto()
    SUSPENDED = enum.auto()


@dataclass
class LowLevelDriver:
    """The hardware link to the device: a byte sender and an optional reset line."""

    send_fn: Callable[[bytes, int], Any]
    reset_fn: Optional[Callable[[int], Any]] = None
    sleep_fn: Callable[[float], Any] = time.sleep

    @property
    def can_reset(self) -> bool:
        """True when a hardware reset line is available."""
        return self.reset_fn is not None

    def send(self, data, timeout: int) -> None:
        """Send raw bytes to the device within ``timeout`` milliseconds."""
        self.send_fn(bytes(data), timeout)

    def reset(self, state: int) -> None:
        """Drive the reset line to ``HW_RST_ASSERT`` or ``HW_RST_DEASSERT``."""
        if self.reset_fn is None:
            raise RuntimeError("no hardware reset line configured")
        if state not in (HW_RST_ASSERT, HW_RST_DEASSERT):
            raise ValueError(f"invalid reset line state: {state!r}")
        self.reset_fn(state)

    def delay(self, ms: float) -> None:
        """Wait for ``ms`` milliseconds."""
        if ms < 0:
            raise ValueError("delay must not be negative")
        self.sleep_fn(ms / 1000)


class Mailbox(Generic[T]):
    """A bounded FIFO of messages passed between threads.

    Block times are in milliseconds; ``None`` waits forever, 0 does not wait.
    """

    def __init__(self, length: int) -> None:
        if length <= 0:
            raise ValueError("mailbox length must be positive")
        self.length = length
        self._queue: queue.Queue[T] = queue.Queue(maxsize=length)

    def __len__(self) -> int:
        return self._queue.qsize()

    @staticmethod
    def _wait(block_time: Optional[float]) -> tuple[bool, Optional[float]]:
        if block_time is None:
            return True, None
        if block_time < 0:
            raise ValueError("block time must not be negative")
        if block_time == 0:
            return False, None
        return True, block_time / 1000

    def put(self, msg: T, block_time: Optional[float] = WAIT_FOREVER) -> None:
        """Put a message, raising TimeoutError if the mailbox stays full."""
        block, timeout = self._wait(block_time)
        try:
            self._queue.put(msg, block, timeout)
        except queue.Full:
            raise TimeoutError("mailbox is full") from None

    def get(self, block_time: Optional[float] = WAIT_FOREVER) -> T:
        """Take the oldest message, raising TimeoutError if none arrives."""
        block, timeout = self._wait(block_time)
        try:
            return self._queue.get(block, timeout)
        except queue.Empty:
            raise TimeoutError("mailbox is empty") from None

    def put_nowait(self, msg: T) -> None:
        """Put a message without waiting, as an interrupt handler would."""
        self.put(msg, 0)