"""Cancellable periodic timers for the asyncio event loop.

Every timer is bound to a CancellationToken. Cancelling the token is enough to
turn any pending tick into a no-op, so callers rotating to a new authorization
code only need to cancel the old token rather than find every running timer.
"""

import asyncio
from collections.abc import Awaitable, Callable

import logfire

IntervalSource = float | Callable[[], float | None]


class CancellationToken:
    """One-shot cancellation flag tied to a generation number."""

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"CancellationToken(generation={self.generation}, cancelled={self._cancelled})"


class PeriodicTimer:
    """Runs an async callback repeatedly until its token is cancelled.

    The interval is re-evaluated after every tick; returning None from an
    interval callable stops the timer, which is how status-dependent polling
    winds itself down.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[None]],
        interval: IntervalSource,
        token: CancellationToken | None = None,
        immediate: bool = False,
        max_ticks: int | None = None,
    ) -> None:
        """Initialize timer.

        Args:
            name: Task name, used in logs
            callback: Coroutine function invoked on each tick
            interval: Seconds between ticks, or a callable returning them
            token: Cancellation token (a fresh one is created if omitted)
            immediate: Run the first tick without waiting
            max_ticks: Stop after this many ticks
        """
        self.name = name
        self.token = token or CancellationToken()
        self._callback = callback
        self._interval = interval
        self._immediate = immediate
        self._max_ticks = max_ticks
        self._ticks = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return (
            self._task is not None
            and not self._task.done()
            and not self.token.cancelled
        )

    @property
    def ticks(self) -> int:
        return self._ticks

    def start(self) -> None:
        """Schedule the timer on the running loop."""
        if self._task is not None:
            raise RuntimeError(f"Timer {self.name} already started")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=self.name
        )

    def cancel(self) -> None:
        """Cancel the token and the underlying task.

        Safe to call from inside the timer's own callback: the task is not
        cancelled in that case, the loop simply exits after the callback.
        """
        self.token.cancel()
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    async def wait(self) -> None:
        """Wait for the timer to finish (after cancellation or exhaustion)."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            if not self._immediate and not await self._sleep():
                return
            while not self.token.cancelled:
                self._ticks += 1
                await self._callback()
                if self._max_ticks is not None and self._ticks >= self._max_ticks:
                    return
                if not await self._sleep():
                    return
        except Exception:
            logfire.exception("Timer callback failed", timer=self.name)
            raise

    async def _sleep(self) -> bool:
        delay = self._interval() if callable(self._interval) else self._interval
        if delay is None or self.token.cancelled:
            return False
        await asyncio.sleep(delay)
        return not self.token.cancelled
