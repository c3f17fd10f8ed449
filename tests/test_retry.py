"""
Tests for confirmation reads, backoff and cancellation.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from utxokit.errors import (
    ConfirmationTimeoutError,
    LedgerError,
    TransferCancelledError,
)
from utxokit.models import RequestState, TransactionRequest
from utxokit.transfer.calls import ledger_call, run_cancellable
from utxokit.transfer.retry import BackoffPolicy, ConfirmationReader, backoff_wait

REQUEST_ID = "5e0c3a0e-9d41-4b8e-8f0c-2f1d5c6b7a80"


def confirmed() -> TransactionRequest:
    return TransactionRequest(REQUEST_ID, RequestState.SIGNED, transaction_hash="ab" * 32)


class TestBackoffPolicy:
    """Tests for BackoffPolicy."""

    def test_defaults(self) -> None:
        policy = BackoffPolicy()
        assert policy.max_attempts == 3
        assert policy.base_delay == 1.0

    def test_linear_delays(self) -> None:
        """Default policy waits attempt-number seconds."""
        policy = BackoffPolicy()
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 3.0]

    def test_constant_delay(self) -> None:
        policy = BackoffPolicy(base_delay=0.5, multiplier=0.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 0.5, 0.5]

    def test_invalid_attempts(self) -> None:
        with pytest.raises(ValidationError):
            BackoffPolicy(max_attempts=0)


class TestConfirmationReader:
    """Tests for ConfirmationReader.confirm."""

    @pytest.fixture
    def mock_ledger(self):
        ledger = MagicMock()
        ledger.read_transaction_request = AsyncMock(return_value=confirmed())
        return ledger

    @pytest.mark.asyncio
    async def test_first_read_succeeds(self, mock_ledger, fake_sleep, sleeps) -> None:
        reader = ConfirmationReader(mock_ledger, sleep=fake_sleep)
        result = await reader.confirm(REQUEST_ID)
        assert result.transaction_hash == "ab" * 32
        assert mock_ledger.read_transaction_request.await_count == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_retries_not_found(self, mock_ledger, fake_sleep, sleeps) -> None:
        """Not-found reads are retried with linear backoff."""
        mock_ledger.read_transaction_request = AsyncMock(side_effect=[None, None, confirmed()])
        reader = ConfirmationReader(mock_ledger, sleep=fake_sleep)
        result = await reader.confirm(REQUEST_ID)
        assert result.request_id == REQUEST_ID
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retries_read_errors(self, mock_ledger, fake_sleep, sleeps) -> None:
        """A failing read counts as a failed attempt, not a fatal error."""
        mock_ledger.read_transaction_request = AsyncMock(
            side_effect=[ConnectionError("reset"), confirmed()]
        )
        reader = ConfirmationReader(mock_ledger, sleep=fake_sleep)
        assert (await reader.confirm(REQUEST_ID)).state == RequestState.SIGNED
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_timeout_after_max_attempts(self, mock_ledger, fake_sleep, sleeps) -> None:
        mock_ledger.read_transaction_request = AsyncMock(return_value=None)
        reader = ConfirmationReader(mock_ledger, sleep=fake_sleep)
        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await reader.confirm(REQUEST_ID)
        assert exc_info.value.attempts == 3
        assert exc_info.value.request_id == REQUEST_ID
        assert mock_ledger.read_transaction_request.await_count == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_policy_override(self, mock_ledger, fake_sleep) -> None:
        mock_ledger.read_transaction_request = AsyncMock(return_value=None)
        reader = ConfirmationReader(mock_ledger, sleep=fake_sleep)
        with pytest.raises(ConfirmationTimeoutError):
            await reader.confirm(REQUEST_ID, policy=BackoffPolicy(max_attempts=5))
        assert mock_ledger.read_transaction_request.await_count == 5

    @pytest.mark.asyncio
    async def test_cancelled_before_first_read(self, mock_ledger, fake_sleep) -> None:
        cancel = asyncio.Event()
        cancel.set()
        reader = ConfirmationReader(mock_ledger, sleep=fake_sleep)
        with pytest.raises(TransferCancelledError):
            await reader.confirm(REQUEST_ID, cancel)
        mock_ledger.read_transaction_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retries(self, mock_ledger) -> None:
        """Cancellation observed after a backoff wait prevents the next read."""
        cancel = asyncio.Event()

        async def cancelling_sleep(delay: float) -> None:
            cancel.set()

        mock_ledger.read_transaction_request = AsyncMock(return_value=None)
        reader = ConfirmationReader(mock_ledger, sleep=cancelling_sleep)
        with pytest.raises(TransferCancelledError):
            await reader.confirm(REQUEST_ID, cancel)
        assert mock_ledger.read_transaction_request.await_count == 1


class TestRunCancellable:
    """Tests for cancellable calls."""

    @pytest.mark.asyncio
    async def test_without_event(self) -> None:
        async def value() -> int:
            return 42

        assert await run_cancellable(value()) == 42

    @pytest.mark.asyncio
    async def test_aborts_in_flight_call(self) -> None:
        """Setting the event cancels a call that is still running."""
        cancel = asyncio.Event()
        started = asyncio.Event()
        was_cancelled = False

        async def slow_call() -> None:
            nonlocal was_cancelled
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                was_cancelled = True
                raise

        async def trigger() -> None:
            await started.wait()
            cancel.set()

        trigger_task = asyncio.create_task(trigger())
        with pytest.raises(TransferCancelledError):
            await run_cancellable(slow_call(), cancel)
        await trigger_task
        assert was_cancelled

    @pytest.mark.asyncio
    async def test_already_set(self) -> None:
        cancel = asyncio.Event()
        cancel.set()

        async def value() -> int:
            return 1

        with pytest.raises(TransferCancelledError):
            await run_cancellable(value(), cancel)

    @pytest.mark.asyncio
    async def test_backoff_wait_observes_cancel(self) -> None:
        cancel = asyncio.Event()

        async def sleep(delay: float) -> None:
            cancel.set()

        with pytest.raises(TransferCancelledError):
            await backoff_wait(1.0, cancel, sleep)


class TestLedgerCall:
    """Tests for ledger error mapping."""

    @pytest.mark.asyncio
    async def test_wraps_client_errors(self) -> None:
        async def failing() -> None:
            raise ConnectionError("connection refused")

        with pytest.raises(LedgerError, match="list_unspent_outputs failed") as exc_info:
            await ledger_call("list_unspent_outputs", failing())
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_passes_engine_errors(self) -> None:
        async def failing() -> None:
            raise ConfirmationTimeoutError(REQUEST_ID, 3)

        with pytest.raises(ConfirmationTimeoutError):
            await ledger_call("read_transaction_request", failing())
