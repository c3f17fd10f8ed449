"""
Transfer orchestration.

Each UTXO-consuming operation runs list -> select -> build -> create ->
sign -> submit while holding the lock of its (client, asset) pair, then
releases the lock and reads the request back. Two operations on the same
asset of the same client therefore never act on the same listing, while
unrelated assets proceed independently. The ledger's double-spend rejection
remains the final authority across clients.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING

from loguru import logger

from utxokit.errors import BatchTransferError, MaxBatchExceededError, TransferError
from utxokit.keys import parse_spend_key
from utxokit.ledger.base import LedgerClient
from utxokit.models import (
    InscriptionTransferRequest,
    TransactionOutput,
    TransactionRequest,
    TransferManyRequest,
    TransferOneRequest,
    UnspentOutput,
    derive_sub_request_id,
)
from utxokit.transfer.aggregator import UtxoAggregator
from utxokit.transfer.batching import split_batches
from utxokit.transfer.calls import ledger_call, run_cancellable
from utxokit.transfer.retry import BackoffPolicy, ConfirmationReader, SleepFunc, backoff_wait
from utxokit.transfer.selection import select_inscription, select_utxos
from utxokit.transfer.submit import submit_transaction

if TYPE_CHECKING:
    from utxokit.config import TransferConfig


class AssetLocks:
    """One asyncio.Lock per asset id."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, asset_id: str) -> asyncio.Lock:
        lock = self._locks.get(asset_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[asset_id] = lock
        return lock

    def locked(self, asset_id: str) -> bool:
        lock = self._locks.get(asset_id)
        return lock is not None and lock.locked()


class TransferOrchestrator:
    """
    Transfer engine for one ledger client.

    Every operation is idempotent per request id: if the ledger already
    holds a submitted request with that id it is returned as is and nothing
    is spent.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        config: TransferConfig,
        confirm_policy: BackoffPolicy | None = None,
        listing_policy: BackoffPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.ledger = ledger
        self.config = config
        self.spend_key = parse_spend_key(config.spend_key, config.spend_public_key)
        self.listing_policy = listing_policy or config.listing_policy()
        self._sleep = sleep

        self.reader = ConfirmationReader(ledger, confirm_policy or config.confirm_policy(), sleep)
        self.aggregator = UtxoAggregator(ledger, config, self.spend_key, self.reader, sleep)
        self.locks = AssetLocks()

        logger.info(f"Initialized transfer engine for client {config.client_id}")

    async def aggregate(self, asset_id: str, cancel: asyncio.Event | None = None) -> int:
        """Consolidate outputs of asset_id; returns the number of rounds run."""
        async with self._locked(asset_id, cancel):
            return await self.aggregator.aggregate(asset_id, cancel)

    async def transfer_one(
        self, request: TransferOneRequest, cancel: asyncio.Event | None = None
    ) -> TransactionRequest:
        """Pay request.amount to a single member."""
        return await self.transfer_many(request.to_many(), cancel)

    async def transfer_many(
        self, request: TransferManyRequest, cancel: asyncio.Event | None = None
    ) -> TransactionRequest:
        """
        Pay every recipient in one transaction.

        Raises:
            MaxBatchExceededError: More recipients than max_inputs
            InsufficientFundsError: The outputs cannot cover the total
            LedgerError: A ledger call failed; the transfer may have been applied
            ConfirmationTimeoutError: Submitted but not read back in time
        """
        cap = self.config.max_inputs
        if len(request.recipients) > cap:
            raise MaxBatchExceededError(len(request.recipients), cap)

        total = request.total_amount
        async with self._locked(request.asset_id, cancel):
            existing = await self._find_submitted(request.request_id, cancel)
            if existing is not None:
                return existing

            logger.info(
                f"Transfer {request.request_id}: {total} of {request.asset_id} "
                f"to {len(request.recipients)} recipients"
            )
            await self.aggregator.aggregate(request.asset_id, cancel)
            utxos = await self._list_spendable(request.asset_id, cancel)
            selected = select_utxos(utxos, total, cap)

            outputs = []
            for recipient in request.recipients:
                address = await self._address(recipient.members, recipient.threshold, cancel)
                outputs.append(TransactionOutput(address=address, amount=recipient.amount))

            await submit_transaction(
                self.ledger,
                self.spend_key,
                request.request_id,
                selected,
                outputs,
                request.memo,
                cancel,
            )

        return await self.reader.confirm(request.request_id, cancel)

    async def transfer_many_unbounded(
        self, request: TransferManyRequest, cancel: asyncio.Event | None = None
    ) -> list[TransactionRequest]:
        """
        Pay any number of recipients, max_inputs per transaction.

        Sub-batch request ids are derived from request.request_id and the
        batch index, so calling again with the same request resumes after
        the last confirmed sub-batch.

        Raises:
            BatchTransferError: A sub-batch failed; carries the ids of the
                sub-batches confirmed before it
        """
        cap = self.config.max_inputs
        if len(request.recipients) < cap:
            return [await self.transfer_many(request, cancel)]

        batches = split_batches(request.recipients, cap)
        logger.info(
            f"Batch {request.request_id}: {len(request.recipients)} recipients "
            f"in {len(batches)} sub-batches"
        )

        results: list[TransactionRequest] = []
        completed: list[str] = []
        for index, recipients in enumerate(batches):
            sub_request = TransferManyRequest(
                request_id=derive_sub_request_id(request.request_id, index),
                asset_id=request.asset_id,
                recipients=recipients,
                memo=request.memo,
            )
            try:
                result = await self.transfer_many(sub_request, cancel)
            except TransferError as e:
                logger.error(
                    f"Batch {request.request_id} sub-batch {index} "
                    f"({sub_request.request_id}) failed: {e}"
                )
                raise BatchTransferError(
                    request.request_id, sub_request.request_id, completed, e
                ) from e
            results.append(result)
            completed.append(sub_request.request_id)

        return results

    async def inscription_transfer(
        self, request: InscriptionTransferRequest, cancel: asyncio.Event | None = None
    ) -> TransactionRequest:
        """
        Send the whole output carrying request.inscription_hash to a member.

        Raises:
            InscriptionNotFoundError: No unspent output carries the inscription
            InscriptionAmbiguousError: Several outputs carry it
        """
        async with self._locked(request.asset_id, cancel):
            existing = await self._find_submitted(request.request_id, cancel)
            if existing is not None:
                return existing

            utxos = await self._list(request.asset_id, cancel)
            utxo = select_inscription(utxos, request.inscription_hash)
            address = await self._address([request.member], 1, cancel)

            logger.info(
                f"Inscription transfer {request.request_id}: {request.inscription_hash} "
                f"({utxo.amount} of {request.asset_id}) to {request.member}"
            )
            await submit_transaction(
                self.ledger,
                self.spend_key,
                request.request_id,
                [utxo],
                [TransactionOutput(address=address, amount=utxo.amount)],
                request.memo,
                cancel,
            )

        return await self.reader.confirm(request.request_id, cancel)

    async def close(self) -> None:
        """Close ledger client"""
        await self.ledger.close()

    @contextlib.asynccontextmanager
    async def _locked(self, asset_id: str, cancel: asyncio.Event | None) -> AsyncIterator[None]:
        """Hold the asset lock; waiting for it gives up when cancel fires."""
        lock = self.locks.get(asset_id)
        await run_cancellable(lock.acquire(), cancel)
        try:
            yield
        finally:
            lock.release()

    async def _find_submitted(
        self, request_id: str, cancel: asyncio.Event | None
    ) -> TransactionRequest | None:
        request = await ledger_call(
            "read_transaction_request", self.ledger.read_transaction_request(request_id), cancel
        )
        if request is not None and request.submitted:
            logger.info(f"Request {request_id} already {request.state.value}, not resubmitting")
            return request
        return None

    async def _list(self, asset_id: str, cancel: asyncio.Event | None) -> list[UnspentOutput]:
        return await ledger_call(
            "list_unspent_outputs",
            self.ledger.list_unspent_outputs(
                asset_id, self.config.output_threshold, self.config.list_limit
            ),
            cancel,
        )

    async def _list_spendable(
        self, asset_id: str, cancel: asyncio.Event | None
    ) -> list[UnspentOutput]:
        """List outputs, retrying while none are visible (e.g. right after aggregation)."""
        policy = self.listing_policy
        for attempt in range(1, policy.max_attempts + 1):
            utxos = await self._list(asset_id, cancel)
            if utxos:
                return utxos
            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.debug(f"No UTXOs for {asset_id} yet, listing again in {delay:.2f}s")
                await backoff_wait(delay, cancel, self._sleep)
        return []

    async def _address(
        self, members: Sequence[str], threshold: int | None, cancel: asyncio.Event | None
    ) -> str:
        return await ledger_call(
            "derive_threshold_address",
            self.ledger.derive_threshold_address(list(members), threshold or len(members)),
            cancel,
        )
