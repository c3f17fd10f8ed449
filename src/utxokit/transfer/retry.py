"""
Confirmation of submitted transaction requests.

After a submission the engine reads the request back a bounded number of
times with a linear backoff. Only the read is retried, never the
submission. Running out of attempts means the confirmation was not
observed, not that the transaction failed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger
from pydantic import BaseModel, Field

from utxokit.errors import ConfirmationTimeoutError, TransferCancelledError
from utxokit.ledger.base import LedgerClient
from utxokit.models import TransactionRequest
from utxokit.transfer.calls import check_cancelled, run_cancellable

SleepFunc = Callable[[float], Awaitable[None]]


class BackoffPolicy(BaseModel):
    """Bounded linear backoff."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0.0, description="Seconds after the first attempt")
    multiplier: float = Field(
        default=1.0, ge=0.0, description="Growth of the delay per attempt, in base_delay units"
    )

    def delay_for(self, attempt: int) -> float:
        """
        Wait after the given (1-based) failed attempt.

        With the default multiplier of 1.0 this is ``attempt * base_delay``;
        a multiplier of 0 gives a constant delay.
        """
        return self.base_delay * (1 + self.multiplier * (attempt - 1))


async def backoff_wait(
    delay: float, cancel: asyncio.Event | None = None, sleep: SleepFunc = asyncio.sleep
) -> None:
    """Sleep for delay seconds, raising TransferCancelledError if cancelled meanwhile."""
    await run_cancellable(sleep(delay), cancel)
    check_cancelled(cancel)


class ConfirmationReader:
    """Reads back submitted requests until the ledger reports them."""

    def __init__(
        self,
        ledger: LedgerClient,
        policy: BackoffPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.ledger = ledger
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep

    async def confirm(
        self,
        request_id: str,
        cancel: asyncio.Event | None = None,
        policy: BackoffPolicy | None = None,
    ) -> TransactionRequest:
        """
        Read request_id until the ledger returns it.

        A not-found answer or a failed read counts as a failed attempt.

        Raises:
            ConfirmationTimeoutError: All attempts failed
            TransferCancelledError: The cancel event fired
        """
        policy = policy or self.policy

        for attempt in range(1, policy.max_attempts + 1):
            check_cancelled(cancel)
            try:
                request = await run_cancellable(
                    self.ledger.read_transaction_request(request_id), cancel
                )
            except TransferCancelledError:
                raise
            except Exception as e:
                logger.debug(f"Reading request {request_id} failed: {type(e).__name__}: {e}")
                request = None

            if request is not None:
                logger.info(
                    f"Request {request_id} confirmed ({request.state.value}) "
                    f"tx={request.transaction_hash or '-'}"
                )
                return request

            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.debug(
                    f"Request {request_id} not visible yet, retrying in {delay:.2f}s "
                    f"(attempt {attempt}/{policy.max_attempts})"
                )
                await backoff_wait(delay, cancel, self._sleep)

        logger.warning(f"Request {request_id} not confirmed after {policy.max_attempts} attempts")
        raise ConfirmationTimeoutError(request_id, policy.max_attempts)
