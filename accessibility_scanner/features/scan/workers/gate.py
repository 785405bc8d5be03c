import enum
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)


class SlotState(str, enum.Enum):
    """Per-slot state machine: idle -> leased -> executing -> reporting -> idle"""
    idle = "idle"
    leased = "leased"
    executing = "executing"
    reporting = "reporting"


_ALLOWED_TRANSITIONS = {
    SlotState.idle: {SlotState.leased},
    SlotState.leased: {SlotState.executing, SlotState.idle},
    SlotState.executing: {SlotState.reporting, SlotState.idle},
    SlotState.reporting: {SlotState.idle},
}


class GateClosed(Exception):
    """The pool is shutting down and admits no new executions."""


class ExecutionSlot:

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.state = SlotState.idle
        self.transition(SlotState.leased)

    def transition(self, new_state: SlotState) -> None:
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid slot transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[{self.job_id}] slot {self.state.value} -> {new_state.value}")
        self.state = new_state


class ExecutionGate:
    """
    Hard upper bound on concurrent pipeline executions.

    Every execution holds one of `capacity` permits for its whole lifetime.
    Once closed, the gate admits nothing new; in-flight executions finish
    normally and wait_idle() reports when the last one has left.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._permits = threading.BoundedSemaphore(capacity)
        self._cond = threading.Condition()
        self._active = 0
        self._peak = 0
        self._closed = False

    @property
    def active(self) -> int:
        with self._cond:
            return self._active

    @property
    def peak(self) -> int:
        with self._cond:
            return self._peak

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @contextmanager
    def slot(self, job_id: str) -> Iterator[ExecutionSlot]:
        if self.closed:
            raise GateClosed(f"Not admitting job {job_id}: worker pool is shutting down")

        self._permits.acquire()
        with self._cond:
            if self._closed:
                self._permits.release()
                raise GateClosed(f"Not admitting job {job_id}: worker pool is shutting down")
            self._active += 1
            self._peak = max(self._peak, self._active)

        slot = ExecutionSlot(job_id)
        try:
            yield slot
        finally:
            if slot.state != SlotState.idle:
                slot.transition(SlotState.idle)
            with self._cond:
                self._active -= 1
                self._cond.notify_all()
            self._permits.release()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no execution is in flight. Returns False if timeout elapsed first."""
        with self._cond:
            return self._cond.wait_for(lambda: self._active == 0, timeout=timeout)
