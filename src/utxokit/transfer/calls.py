"""
Cancellable ledger calls.

Every ledger call made by the engine is raced against the caller's
cancellation event: if the event fires first the in-flight call is cancelled
and TransferCancelledError is raised. Task cancellation (CancelledError) is
never converted and propagates as usual.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Coroutine
from typing import Any, TypeVar

from loguru import logger

from utxokit.errors import LedgerError, TransferCancelledError, TransferError

T = TypeVar("T")


def check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise TransferCancelledError("Operation cancelled")


async def run_cancellable(coro: Coroutine[Any, Any, T], cancel: asyncio.Event | None = None) -> T:
    """Await coro unless cancel is set first."""
    if cancel is None:
        return await coro
    if cancel.is_set():
        coro.close()
        raise TransferCancelledError("Operation cancelled")

    task = asyncio.ensure_future(coro)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    raise TransferCancelledError("Operation cancelled")


async def ledger_call(
    name: str, coro: Coroutine[Any, Any, T], cancel: asyncio.Event | None = None
) -> T:
    """
    Run a ledger client call, mapping client failures to LedgerError.

    Engine errors (TransferError subclasses) raised by the client pass
    through unchanged.
    """
    try:
        return await run_cancellable(coro, cancel)
    except TransferError:
        raise
    except Exception as e:
        logger.error(f"Ledger call {name} failed: {type(e).__name__}: {e}")
        raise LedgerError(f"{name} failed: {e}") from e
