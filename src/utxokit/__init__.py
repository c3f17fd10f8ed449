"""
utxokit - UTXO transfer orchestration for ledger payment clients

Provides coin selection, output aggregation, batched multi-recipient
transfers and confirmation handling on top of an abstract ledger client.
"""

__version__ = "0.1.0"

from utxokit.config import TransferConfig
from utxokit.constants import AGGREGATE_UTXO_MEMO, MAX_MEMO_BYTES, MAX_UTXO_NUM
from utxokit.errors import (
    AggregationStalledError,
    BatchTransferError,
    ConfigInvalidError,
    ConfirmationTimeoutError,
    InscriptionAmbiguousError,
    InscriptionNotFoundError,
    InsufficientFundsError,
    LedgerError,
    MaxBatchExceededError,
    TransferCancelledError,
    TransferError,
)
from utxokit.keys import SpendKey, parse_spend_key
from utxokit.ledger import LedgerClient
from utxokit.models import (
    InscriptionTransferRequest,
    PendingRequest,
    RecipientAmount,
    RequestState,
    TransactionEnvelope,
    TransactionOutput,
    TransactionRequest,
    TransferManyRequest,
    TransferOneRequest,
    UnspentOutput,
    UtxoState,
    derive_sub_request_id,
    gen_uuid_from_strings,
)
from utxokit.transfer import (
    BackoffPolicy,
    ConfirmationReader,
    TransferOrchestrator,
    UtxoAggregator,
    select_inscription,
    select_utxos,
    split_batches,
)

__all__ = [
    "AGGREGATE_UTXO_MEMO",
    "AggregationStalledError",
    "BackoffPolicy",
    "BatchTransferError",
    "ConfigInvalidError",
    "ConfirmationReader",
    "ConfirmationTimeoutError",
    "InscriptionAmbiguousError",
    "InscriptionNotFoundError",
    "InscriptionTransferRequest",
    "InsufficientFundsError",
    "LedgerClient",
    "LedgerError",
    "MAX_MEMO_BYTES",
    "MAX_UTXO_NUM",
    "MaxBatchExceededError",
    "PendingRequest",
    "RecipientAmount",
    "RequestState",
    "SpendKey",
    "TransactionEnvelope",
    "TransactionOutput",
    "TransactionRequest",
    "TransferCancelledError",
    "TransferConfig",
    "TransferError",
    "TransferManyRequest",
    "TransferOneRequest",
    "TransferOrchestrator",
    "UnspentOutput",
    "UtxoAggregator",
    "UtxoState",
    "derive_sub_request_id",
    "gen_uuid_from_strings",
    "parse_spend_key",
    "select_inscription",
    "select_utxos",
    "split_batches",
]
