import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("rowpost.gate")


class SignalKind(str, Enum):
    """Which callback fired the gate."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GateSignal:
    """The single signal a gate was fired with."""

    kind: SignalKind
    response: Any = None
    error: Optional[BaseException] = None


class CompletionGate:
    """
    One-shot completion gate.

    Implements the client callback contract (completed / failed / cancelled).
    Exactly one of them takes effect; later calls are ignored and return
    False. The gate may be fired from any thread and waited on from another.
    """

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._signal: Optional[GateSignal] = None

    def _fire(self, signal: GateSignal) -> bool:
        with self._lock:
            if self._signal is not None:
                logger.debug(
                    f"Gate {self.request_id} already {self._signal.kind.value}, "
                    f"ignoring {signal.kind.value}"
                )
                return False
            self._signal = signal
        self._event.set()
        return True

    def completed(self, response: Any) -> bool:
        return self._fire(GateSignal(SignalKind.COMPLETED, response=response))

    def failed(self, error: BaseException) -> bool:
        return self._fire(GateSignal(SignalKind.FAILED, error=error))

    def cancelled(self) -> bool:
        return self._fire(GateSignal(SignalKind.CANCELLED))

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def signal(self) -> Optional[GateSignal]:
        return self._signal

    def wait(self, timeout: Optional[float] = None) -> Optional[GateSignal]:
        """
        Block until the gate fires.

        Args:
            timeout: Max seconds to wait (None waits forever)

        Returns:
            The fired signal, or None if the timeout expired first
        """
        if not self._event.wait(timeout):
            return None
        return self._signal
