"""
Build, register, sign and submit a transaction through the ledger client.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from loguru import logger

from utxokit.keys import SpendKey
from utxokit.ledger.base import LedgerClient
from utxokit.models import TransactionOutput, TransactionRequest, UnspentOutput
from utxokit.transfer.calls import ledger_call


async def submit_transaction(
    ledger: LedgerClient,
    spend_key: SpendKey,
    request_id: str,
    utxos: Sequence[UnspentOutput],
    outputs: Sequence[TransactionOutput],
    memo: str,
    cancel: asyncio.Event | None = None,
) -> TransactionRequest:
    """
    Spend utxos into outputs under request_id.

    Create must precede signing since it returns the views the signature
    is made over. Once submit returns, the inputs are spent on the ledger
    whatever happens afterwards.
    """
    envelope = await ledger_call(
        "build_transaction", ledger.build_transaction(utxos, outputs, memo), cancel
    )
    pending = await ledger_call(
        "create_transaction_request",
        ledger.create_transaction_request(request_id, envelope),
        cancel,
    )
    signed = await ledger_call(
        "sign_transaction", ledger.sign_transaction(envelope, spend_key, pending.views), cancel
    )
    ack = await ledger_call(
        "submit_transaction_request", ledger.submit_transaction_request(request_id, signed), cancel
    )
    logger.info(
        f"Submitted request {request_id}: {len(utxos)} inputs, {len(outputs)} outputs, "
        f"total {sum((o.amount for o in outputs), 0)}"
    )
    return ack
