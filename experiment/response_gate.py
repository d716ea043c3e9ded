from typing import Optional

from data.models import INPUT_KINDS


GATE_CLOSED = "CLOSED"
GATE_ARMED = "ARMED"
GATE_CAPTURED = "CAPTURED"
GATE_EXPIRED = "EXPIRED"


class ResponseGate:
    """
    Single-use latch for one trial's response window.

    arm() opens it; then either capture() or expire() wins, exactly once.
    The loser (and any later caller) gets False and changes nothing.
    """

    def __init__(self) -> None:
        self.state: str = GATE_CLOSED
        self.response: Optional[str] = None
        self.response_time_ms: Optional[int] = None

    def arm(self) -> None:
        self.state = GATE_ARMED
        self.response = None
        self.response_time_ms = None

    def disarm(self) -> None:
        self.state = GATE_CLOSED

    @property
    def is_armed(self) -> bool:
        return self.state == GATE_ARMED

    def capture(self, kind: str, time_ms: int) -> bool:
        if self.state != GATE_ARMED or kind not in INPUT_KINDS:
            return False
        self.state = GATE_CAPTURED
        self.response = kind
        self.response_time_ms = time_ms
        return True

    def expire(self) -> bool:
        if self.state != GATE_ARMED:
            return False
        self.state = GATE_EXPIRED
        return True
