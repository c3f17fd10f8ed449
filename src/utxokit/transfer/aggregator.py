"""
UTXO consolidation.

A transaction can spend at most MAX_UTXO_NUM outputs, so an asset spread
over many small outputs may be unspendable in one go. The aggregator merges
batches of fungible outputs into a single self-addressed output until the
listed count fits under the cap.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING

from loguru import logger

from utxokit.constants import AGGREGATE_UTXO_MEMO
from utxokit.errors import AggregationStalledError, ConfirmationTimeoutError
from utxokit.keys import SpendKey
from utxokit.ledger.base import LedgerClient
from utxokit.models import TransactionOutput, gen_uuid_from_strings
from utxokit.transfer.calls import ledger_call
from utxokit.transfer.retry import ConfirmationReader, SleepFunc, backoff_wait
from utxokit.transfer.selection import fungible_outputs
from utxokit.transfer.submit import submit_transaction

if TYPE_CHECKING:
    from utxokit.config import TransferConfig


class UtxoAggregator:
    """
    Consolidates an asset's outputs down to the input cap.

    Not locked itself: callers must hold the asset lock for the whole call,
    including the confirmation reads between rounds, since each round's
    listing depends on the previous round having landed.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        config: TransferConfig,
        spend_key: SpendKey,
        reader: ConfirmationReader,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.ledger = ledger
        self.config = config
        self.spend_key = spend_key
        self.reader = reader
        self._sleep = sleep

    async def aggregate(self, asset_id: str, cancel: asyncio.Event | None = None) -> int:
        """
        Merge outputs of asset_id until at most max_inputs remain.

        Stops early, with a warning, when fewer than two fungible outputs
        are left to merge (the rest carry inscriptions).

        Returns:
            Number of consolidation transactions submitted

        Raises:
            AggregationStalledError: max_aggregation_rounds rounds were not enough
            LedgerError: A list or submit call failed
        """
        cap = self.config.max_inputs
        rounds = 0

        while True:
            utxos = await ledger_call(
                "list_unspent_outputs",
                self.ledger.list_unspent_outputs(
                    asset_id, self.config.output_threshold, self.config.list_limit
                ),
                cancel,
            )

            if len(utxos) <= cap:
                if rounds:
                    logger.info(
                        f"Aggregation of {asset_id} done after {rounds} rounds: "
                        f"{len(utxos)} UTXOs left"
                    )
                return rounds

            candidates = fungible_outputs(utxos)[:cap]
            if len(candidates) < 2:
                logger.warning(
                    f"Cannot aggregate {asset_id} further: {len(utxos)} UTXOs, "
                    f"{len(candidates)} without inscription"
                )
                return rounds

            if rounds >= self.config.max_aggregation_rounds:
                raise AggregationStalledError(asset_id, rounds, len(utxos))

            amount = sum((u.amount for u in candidates), Decimal(0))
            # Same inputs give the same id, so a rerun cannot double-submit
            request_id = gen_uuid_from_strings(asset_id, *(u.output_id for u in candidates))
            address = await ledger_call(
                "derive_threshold_address",
                self.ledger.derive_threshold_address([self.config.client_id], 1),
                cancel,
            )

            logger.info(
                f"Aggregating {len(candidates)} of {len(utxos)} UTXOs of {asset_id} "
                f"into {amount} (round {rounds + 1})"
            )
            await submit_transaction(
                self.ledger,
                self.spend_key,
                request_id,
                candidates,
                [TransactionOutput(address=address, amount=amount)],
                AGGREGATE_UTXO_MEMO,
                cancel,
            )
            rounds += 1

            try:
                await self.reader.confirm(request_id, cancel)
            except ConfirmationTimeoutError as e:
                logger.warning(f"Aggregation request not confirmed, continuing: {e}")

            await backoff_wait(self.config.aggregate_pause, cancel, self._sleep)
