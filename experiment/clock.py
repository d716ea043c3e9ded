import heapq
import itertools
import logging
import random
from typing import Callable, Dict, List, Optional, Tuple

import pygame

from config.settings import TimingConfig


logger = logging.getLogger(__name__)

TimeSource = Callable[[], int]


class TrialClock:
    """
    One-shot, cancelable timers on top of the frame loop.

    Nothing fires on its own: the owner calls update() every frame (or a test
    calls it after moving a fake time source), and every timer that is due by
    then runs once, in due order.
    """

    def __init__(self, time_source: Optional[TimeSource] = None) -> None:
        # pygame ticks unless a test injects its own source
        self._time_source = time_source or pygame.time.get_ticks
        # handles are never reused
        self._ids = itertools.count(1)
        # heap of (due_ms, handle); handles stay in _callbacks until they fire or are canceled
        self._heap: List[Tuple[int, int]] = []
        self._callbacks: Dict[int, Callable[[], None]] = {}
        # slot name -> the one live handle in that slot
        self._slots: Dict[str, int] = {}

    def now(self) -> int:
        return int(self._time_source())

    def schedule(self, delay_ms: int, callback: Callable[[], None], slot: Optional[str] = None) -> int:
        # a slot holds at most one timer
        if slot is not None:
            self.cancel(self._slots.get(slot))
        handle = next(self._ids)
        # negative delays fire on the next update
        due_ms = self.now() + max(0, int(delay_ms))
        self._callbacks[handle] = callback
        heapq.heappush(self._heap, (due_ms, handle))
        if slot is not None:
            self._slots[slot] = handle
        return handle

    def cancel(self, handle: Optional[int]) -> None:
        # Unknown, fired and already canceled handles are all fine here.
        if handle is None:
            return
        self._callbacks.pop(handle, None)

    def cancel_all(self) -> None:
        # drop everything, heap included
        self._callbacks.clear()
        self._heap.clear()
        self._slots.clear()

    def is_active(self, handle: Optional[int]) -> bool:
        return handle is not None and handle in self._callbacks

    def pending(self) -> int:
        return len(self._callbacks)

    def update(self, now_ms: Optional[int] = None) -> int:
        now_ms = self.now() if now_ms is None else now_ms
        fired = 0
        # due order; equal due times fire in scheduling order
        while self._heap and self._heap[0][0] <= now_ms:
            _, handle = heapq.heappop(self._heap)
            callback = self._callbacks.pop(handle, None)
            # canceled: its heap entry is just skipped
            if callback is None:
                continue
            # a fired timer frees its slot
            for slot, owner in list(self._slots.items()):
                if owner == handle:
                    del self._slots[slot]
            # the callback may schedule or cancel more timers
            callback()
            fired += 1
        return fired


def draw_stimulus_duration(timing: TimingConfig, rng: random.Random) -> int:
    return rng.randint(timing.stimulus_min_ms, timing.stimulus_max_ms)
