"""
Cancellation coordination for a network run.

A run owns exactly one CancellationScope. It is cancelled either by an OS
termination signal or by the first fatal error raised by any task in the
run's SupervisedTaskGroup. Every poll loop checks the scope at the top of
each iteration and sleeps through it, so cancellation is observed within
one poll interval.
"""

import asyncio
import signal
from collections.abc import Awaitable, Coroutine
from typing import Any, Optional

from avasim.commands.constants import SHUTDOWN_GRACE
from avasim.commands.errors import CancellationError
from avasim.commands.utils import console

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationScope:
    """Single-writer, many-reader cancellation signal."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the scope. Returns False if it was already cancelled."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(reason=self.reason)

    async def wait(self) -> None:
        """Block until the scope is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            CancellationError: if the scope is (or becomes) cancelled.
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` but give up as soon as the scope is cancelled.

        The guarded operation is cancelled and CancellationError raised, so
        an in-flight network call never outlives the run.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise CancellationError(reason=self.reason)


def _on_signal(scope: CancellationScope, signum: int) -> None:
    sig_name = signal.Signals(signum).name
    if scope.cancelled:
        console.print(
            f"\n[yellow]Received {sig_name} while already shutting down, please wait...[/yellow]"
        )
        return
    console.print(
        f"\n[yellow]Received {sig_name}, initiating graceful shutdown...[/yellow]"
    )
    scope.cancel(f"received {sig_name}")


def install_signal_handlers(
    scope: CancellationScope, loop: Optional[asyncio.AbstractEventLoop] = None
) -> list[int]:
    """Route SIGINT/SIGTERM into ``scope``. Returns the signals installed."""
    loop = loop or asyncio.get_running_loop()
    installed = []
    for signum in HANDLED_SIGNALS:
        try:
            loop.add_signal_handler(signum, _on_signal, scope, signum)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            continue
        installed.append(signum)
    return installed


def remove_signal_handlers(
    signals: list[int], loop: Optional[asyncio.AbstractEventLoop] = None
) -> None:
    """Remove handlers previously added by install_signal_handlers."""
    loop = loop or asyncio.get_running_loop()
    for signum in signals:
        loop.remove_signal_handler(signum)


class SupervisedTaskGroup:
    """Run sibling tasks under one scope with first-error-wins semantics.

    - The first task to fail with anything other than CancellationError
      cancels the scope; its error becomes the group's error.
    - Errors raised after the scope is already cancelled are discarded.
    - Tasks that have not returned ``shutdown_grace`` seconds after
      cancellation are hard-cancelled.
    """

    def __init__(self, scope: CancellationScope, shutdown_grace: float = SHUTDOWN_GRACE):
        self.scope = scope
        self.shutdown_grace = shutdown_grace
        self.first_error: Optional[BaseException] = None
        self.first_error_task: Optional[str] = None
        self.discarded: list[tuple[str, BaseException]] = []
        self._tasks: dict[asyncio.Task, str] = {}

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks[task] = name
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None or isinstance(error, CancellationError):
            return

        name = self._tasks.get(task, task.get_name())
        if self.first_error is None and not self.scope.cancelled:
            self.first_error = error
            self.first_error_task = name
            console.print(f"[red]✗ {name} failed: {error}[/red]")
            self.scope.cancel(f"{name} failed")
        else:
            self.discarded.append((name, error))
            console.print(f"[dim]{name} failed during shutdown: {error}[/dim]")

    async def wait(self) -> None:
        """Wait for every task.

        Raises:
            The first fatal error, or CancellationError when the scope was
            cancelled from outside the group.
        """
        pending = set(self._tasks)
        try:
            while pending:
                if self.scope.cancelled:
                    await self._drain(pending)
                    pending = set()
                    break

                cancel_waiter = asyncio.ensure_future(self.scope.wait())
                try:
                    _, pending = await asyncio.wait(
                        pending | {cancel_waiter},
                        return_when=asyncio.FIRST_COMPLETED,
                    )
                finally:
                    cancel_waiter.cancel()
                pending.discard(cancel_waiter)
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

        if self.first_error is not None:
            raise self.first_error
        self.scope.raise_if_cancelled()

    async def _drain(self, pending: set) -> None:
        _, still_running = await asyncio.wait(pending, timeout=self.shutdown_grace)
        if not still_running:
            return
        names = ", ".join(sorted(self._tasks[t] for t in still_running))
        console.print(
            f"[yellow]⚠ Forcing {len(still_running)} task(s) to stop: {names}[/yellow]"
        )
        for task in still_running:
            task.cancel()
        await asyncio.gather(*still_running, return_exceptions=True)
