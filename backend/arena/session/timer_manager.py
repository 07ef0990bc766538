"""Manage the scheduled callbacks of one game session."""

from enum import StrEnum

from arena.logic.timer import PhaseTimer, TimerCallback


class TimerSlot(StrEnum):
    """Kinds of timers a session can have pending. At most one per kind."""

    CLOCK = "clock"
    MENTION_FALLBACK = "mention_fallback"
    ADVANCE = "advance"


class TimerManager:
    """Own one PhaseTimer per slot for a single session.

    Starting a slot replaces whatever was pending in it. The caller decides
    which slots to cancel on a phase change.
    """

    def __init__(self) -> None:
        self._timers = {slot: PhaseTimer(name=slot.value) for slot in TimerSlot}

    def is_active(self, slot: TimerSlot) -> bool:
        return self._timers[slot].is_active

    def start_once(self, slot: TimerSlot, delay: float, callback: TimerCallback) -> None:
        self._timers[slot].start_once(delay, callback)

    def start_repeating(self, slot: TimerSlot, interval: float, callback: TimerCallback) -> None:
        self._timers[slot].start_repeating(interval, callback)

    def cancel(self, *slots: TimerSlot) -> None:
        for slot in slots:
            self._timers[slot].cancel()

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
