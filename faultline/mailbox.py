"""Mailbox — bounded request/response queue in front of an asyncio actor."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


class MailboxErrorKind(enum.Enum):
    CLOSED = "closed"
    FULL = "full"
    TIMEOUT = "timeout"


class MailboxError(Exception):
    """Message could not be delivered to, or answered by, the actor."""

    def __init__(self, kind: MailboxErrorKind, mailbox: str = "mailbox") -> None:
        super().__init__(f"{mailbox}: {kind.value}")
        self.kind = kind
        self.mailbox = mailbox


class Mailbox:
    """Single worker task draining a bounded queue into an async *handler*.

    Usage::

        box = Mailbox(handle_message, capacity=32, name="mailer")
        box.start()
        reply = await box.send(msg, timeout=5)
        await box.stop()
    """

    def __init__(self, handler: Handler, *, capacity: int = 16, name: str = "mailbox") -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self._handler = handler
        self._queue: asyncio.Queue[tuple[Any, asyncio.Future[Any]]] = asyncio.Queue(
            maxsize=capacity
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the worker task. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"mailbox-{self.name}")
        logger.info("mailbox.started", mailbox=self.name)

    async def stop(self) -> None:
        """Cancel the worker and fail every queued request with CLOSED."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        dropped = 0
        while not self._queue.empty():
            _msg, fut = self._queue.get_nowait()
            if not fut.done():
                fut.set_exception(MailboxError(MailboxErrorKind.CLOSED, self.name))
            dropped += 1
        logger.info("mailbox.stopped", mailbox=self.name, dropped=dropped)

    def do_send(self, msg: Any) -> None:
        """Enqueue *msg* without waiting for a reply."""
        fut = self._enqueue(msg)
        # Nobody awaits the reply; keep handler errors from surfacing as
        # "exception was never retrieved".
        fut.add_done_callback(_discard_result)

    async def send(self, msg: Any, timeout: float | None = None) -> Any:
        """Enqueue *msg* and wait for the handler's reply.

        Raises :class:`MailboxError` when the mailbox is closed or full, or
        when no reply arrives within *timeout* seconds. Exceptions raised by
        the handler propagate unchanged.
        """
        fut = self._enqueue(msg)
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await fut
        except TimeoutError:
            # A TimeoutError raised by the handler itself is its own failure.
            if deadline.expired():
                raise MailboxError(MailboxErrorKind.TIMEOUT, self.name) from None
            raise

    def _enqueue(self, msg: Any) -> asyncio.Future[Any]:
        if not self.running:
            raise MailboxError(MailboxErrorKind.CLOSED, self.name)
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        try:
            self._queue.put_nowait((msg, fut))
        except asyncio.QueueFull:
            raise MailboxError(MailboxErrorKind.FULL, self.name) from None
        return fut

    async def _run(self) -> None:
        while True:
            msg, fut = await self._queue.get()
            try:
                if fut.done():
                    # Sender gave up (timeout) before the message was picked up.
                    continue
                result = await self._handler(msg)
            except asyncio.CancelledError:
                if not fut.done():
                    fut.set_exception(MailboxError(MailboxErrorKind.CLOSED, self.name))
                raise
            except Exception as exc:
                if not fut.done():
                    fut.set_exception(exc)
            else:
                if not fut.done():
                    fut.set_result(result)
            finally:
                self._queue.task_done()


def _discard_result(fut: asyncio.Future[Any]) -> None:
    if not fut.cancelled() and fut.exception() is not None:
        logger.warning("mailbox.unanswered_error", error=str(fut.exception()))
