"""
Confirmation Port - asks the operator whether a running timer should continue.

ask() may answer directly (bool), or hand back a coroutine, an asyncio future,
or a concurrent.futures.Future. resolve_answer() turns any of these into one
callback so the controller never cares which kind of host it runs under.
"""

import asyncio
import concurrent.futures
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from .entries import format_timer_display

logger = logging.getLogger(__name__)

AnswerCallback = Callable[[bool | None, BaseException | None], None]


@dataclass(frozen=True)
class PromptContext:
    entry_id: str
    operator_id: str
    client_id: str
    description: str
    started_at: datetime
    elapsed: timedelta
    prompt_number: int
    client_name: str | None = None

    @property
    def message(self) -> str:
        who = self.client_name or "this client"
        return (
            f"Timer is still running for {who} "
            f"({format_timer_display(self.elapsed.total_seconds())}). Keep it running?"
        )


class ConfirmationPort(Protocol):
    def ask(self, context: PromptContext) -> bool | Awaitable[bool]: ...


class StaticConfirmation:
    """Always gives the same answer. For headless hosts and tests."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: list[PromptContext] = []

    def ask(self, context: PromptContext) -> bool:
        self.prompts.append(context)
        return self.answer


# Running prompt tasks; the event loop only keeps weak references to them
_pending_prompts: set[asyncio.Task] = set()


async def _await(awaitable: Awaitable[bool]) -> bool:
    return await awaitable


def resolve_answer(result, on_answer: AnswerCallback) -> None:
    """
    Deliver the port's answer to *on_answer(answer, error)* exactly once.

    - plain value: delivered immediately
    - concurrent.futures.Future / asyncio future: delivered on completion
    - coroutine with a running loop in this thread: scheduled as a task
    - coroutine without a running loop: run to completion here
    """
    if isinstance(result, concurrent.futures.Future) or asyncio.isfuture(result):
        result.add_done_callback(lambda fut: _deliver_future(fut, on_answer))
        return

    if not inspect.isawaitable(result):
        on_answer(bool(result), None)
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is not None:
        task = loop.create_task(_await(result))
        _pending_prompts.add(task)
        task.add_done_callback(_pending_prompts.discard)
        task.add_done_callback(lambda fut: _deliver_future(fut, on_answer))
        return

    try:
        answer = asyncio.run(_await(result))
    except Exception as exc:
        on_answer(None, exc)
        return
    on_answer(bool(answer), None)


def _deliver_future(fut, on_answer: AnswerCallback) -> None:
    if fut.cancelled():
        on_answer(None, asyncio.CancelledError("confirmation prompt was cancelled"))
        return
    exc = fut.exception()
    if exc is not None:
        on_answer(None, exc)
        return
    on_answer(bool(fut.result()), None)
