import pygame
from typing import List, Optional

from data.models import INPUT_PRIMARY, INPUT_SECONDARY_LEFT, INPUT_SECONDARY_RIGHT, InputEvent


KEY_TO_INPUT = {
    pygame.K_SPACE: INPUT_PRIMARY,
    pygame.K_LEFT: INPUT_SECONDARY_LEFT,
    pygame.K_RIGHT: INPUT_SECONDARY_RIGHT,
}


def read_input_kind(event) -> Optional[str]:
    if event.type != pygame.KEYDOWN:
        return None
    return KEY_TO_INPUT.get(event.key)


class InputManager:
    """
    Sits between pygame and the trial engine.

    Only KEYDOWN on SPACE / LEFT / RIGHT is kept; every key press is queued
    with its arrival time, in order. Deciding which press counts is the
    response gate's job, not ours.
    """

    def __init__(self) -> None:
        self._queue: List[InputEvent] = []

    def process_pygame_event(self, event, now_ms: Optional[int] = None) -> None:
        kind = read_input_kind(event)
        if kind is None:
            return
        t = pygame.time.get_ticks() if now_ms is None else now_ms
        self._queue.append(InputEvent(kind=kind, time_ms=t))

    def poll_events(self) -> List[InputEvent]:
        events = self._queue
        self._queue = []
        return events

    def reset(self) -> None:
        self._queue = []
