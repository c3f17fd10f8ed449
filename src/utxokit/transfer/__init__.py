"""
Transfer engine: coin selection, aggregation, batching and confirmation.
"""

from utxokit.transfer.aggregator import UtxoAggregator
from utxokit.transfer.batching import split_batches
from utxokit.transfer.orchestrator import AssetLocks, TransferOrchestrator
from utxokit.transfer.retry import BackoffPolicy, ConfirmationReader
from utxokit.transfer.selection import select_inscription, select_utxos

__all__ = [
    "AssetLocks",
    "BackoffPolicy",
    "ConfirmationReader",
    "TransferOrchestrator",
    "UtxoAggregator",
    "select_inscription",
    "select_utxos",
    "split_batches",
]
