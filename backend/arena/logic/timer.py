"""
Cancellable scheduled callbacks for session phases.

A PhaseTimer owns at most one asyncio task. Starting it again cancels the
previous task first, so a timer can never run twice concurrently. Callbacks
run inside the timer task; a callback may cancel or restart its own timer.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

TimerCallback = Callable[[], Awaitable[None]]


class PhaseTimer:
    """One-shot or repeating timer backed by a single asyncio task."""

    def __init__(self, name: str = "timer") -> None:
        self._name = name
        self._active_task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_active(self) -> bool:
        return self._active_task is not None and not self._active_task.done()

    def start_once(self, delay: float, callback: TimerCallback) -> None:
        """Run callback once after delay seconds."""
        self.cancel()
        self._active_task = asyncio.create_task(self._run_once(delay, callback))

    def start_repeating(self, interval: float, callback: TimerCallback) -> None:
        """Run callback every interval seconds until cancelled."""
        self.cancel()
        self._active_task = asyncio.create_task(self._run_repeating(interval, callback))

    def cancel(self) -> None:
        """Cancel the pending task. Safe to call repeatedly and from inside the callback."""
        task = self._active_task
        self._active_task = None
        if task is None or task.done():
            return
        if task is _current_task():
            # the callback is cancelling its own timer; let it finish normally
            return
        task.cancel()

    async def _run_once(self, delay: float, callback: TimerCallback) -> None:
        try:
            await asyncio.sleep(delay)
            await callback()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("timer callback failed", timer=self._name)
        finally:
            self._forget_current()

    async def _run_repeating(self, interval: float, callback: TimerCallback) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                await callback()
                if self._active_task is not _current_task():
                    return
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("timer callback failed", timer=self._name)
        finally:
            self._forget_current()

    def _forget_current(self) -> None:
        if self._active_task is not None and self._active_task is _current_task():
            self._active_task = None


def _current_task() -> asyncio.Task[None] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
