"""
Cancellable deferred transitions for quiz sessions.
Handles join-window and question-round expiry timers.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_scheduled(key: str, name: str, delay: float) -> None:
        logger.info(
            f"Timer lifecycle: SCHEDULED - Session {key}, Timer {name}, Delay {delay:.3f}s",
            extra={
                'event_type': 'timer_scheduled',
                'group_id': key,
                'timer_name': name,
                'delay': delay,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_fired(key: str, name: str, late_by: float) -> None:
        logger.info(
            f"Timer lifecycle: FIRED - Session {key}, Timer {name}, Late by {late_by:.3f}s",
            extra={
                'event_type': 'timer_fired',
                'group_id': key,
                'timer_name': name,
                'late_by': late_by,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_cancelled(key: str, name: str, reason: str) -> None:
        logger.info(
            f"Timer lifecycle: CANCELLED - Session {key}, Timer {name} ({reason})",
            extra={
                'event_type': 'timer_cancelled',
                'group_id': key,
                'timer_name': name,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_fire(key: str, name: str, details: str) -> None:
        """Log a timer that fired after its phase was superseded."""
        logger.warning(
            f"Timer lifecycle: STALE - Session {key}, Timer {name}: {details}",
            extra={
                'event_type': 'timer_stale',
                'group_id': key,
                'timer_name': name,
                'details': details,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(key: str, name: str, error_type: str, error_message: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - Session {key}, Timer {name}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'group_id': key,
                'timer_name': name,
                'error_type': error_type,
                'error_message': error_message,
                'timestamp': time.time()
            },
            exc_info=True
        )


class TimerHandle:
    """A single scheduled callback backed by an asyncio task."""

    def __init__(self, key: str, name: str, delay: float):
        self.key = key
        self.name = name
        self.delay = delay
        self.deadline = time.monotonic() + delay
        self._task: Optional[asyncio.Task] = None
        self._fired = False
        self._cancelled = False

    def cancel(self, reason: str = "cancel requested") -> bool:
        """
        Cancel the timer if it has not fired yet.

        Returns:
            True if the pending callback was prevented, False otherwise
        """
        if self._fired or self._cancelled:
            return False
        self._cancelled = True
        if self._task and not self._task.done():
            self._task.cancel()
        TimerLifecycleLogger.log_timer_cancelled(self.key, self.name, reason)
        return True

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        return not (self._fired or self._cancelled)


class Scheduler:
    """
    Runs deferred session transitions on the event loop.

    Timers are keyed by session (group id) and timer name; scheduling a timer
    under a key and name that is already pending replaces the old one.
    """

    def __init__(self):
        self._timers: Dict[Tuple[str, str], TimerHandle] = {}

    def schedule(self, key: str, name: str, delay: float, callback: TimerCallback) -> TimerHandle:
        """
        Schedule a callback to run after a delay.

        Args:
            key: Session identifier the timer belongs to
            name: Timer kind, e.g. "join" or "round"
            delay: Seconds to wait before firing
            callback: Coroutine function invoked on expiry

        Returns:
            Handle that can cancel the timer
        """
        existing = self._timers.get((key, name))
        if existing is not None:
            existing.cancel("replaced by new timer")

        handle = TimerHandle(key, name, max(0.0, delay))
        self._timers[(key, name)] = handle
        handle._task = asyncio.create_task(self._run(handle, callback))
        TimerLifecycleLogger.log_timer_scheduled(key, name, handle.delay)
        return handle

    async def _run(self, handle: TimerHandle, callback: TimerCallback) -> None:
        try:
            await asyncio.sleep(handle.delay)
        except asyncio.CancelledError:
            return

        if handle.cancelled:
            return
        handle._fired = True
        # Untrack before the callback so it may cancel its own session's timers
        if self._timers.get((handle.key, handle.name)) is handle:
            del self._timers[(handle.key, handle.name)]

        TimerLifecycleLogger.log_timer_fired(
            handle.key, handle.name, time.monotonic() - handle.deadline
        )
        try:
            await callback()
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                handle.key, handle.name, type(e).__name__, str(e)
            )

    def cancel(self, key: str, name: Optional[str] = None, reason: str = "cancel requested") -> int:
        """
        Cancel pending timers of a session.

        Args:
            key: Session identifier
            name: Only cancel this timer kind; all kinds if None
            reason: Logged cancellation reason

        Returns:
            Number of timers cancelled
        """
        cancelled = 0
        for timer_key in list(self._timers):
            if timer_key[0] != key or (name is not None and timer_key[1] != name):
                continue
            handle = self._timers.pop(timer_key)
            if handle.cancel(reason):
                cancelled += 1
        return cancelled

    def cancel_all(self) -> int:
        """Cancel every pending timer, used on shutdown."""
        cancelled = 0
        for key in {timer_key[0] for timer_key in self._timers}:
            cancelled += self.cancel(key, reason="scheduler shutdown")
        return cancelled

    def pending(self, key: str) -> List[str]:
        """Names of the timers still pending for a session."""
        return sorted(
            name for (timer_key, name), handle in self._timers.items()
            if timer_key == key and handle.pending
        )
