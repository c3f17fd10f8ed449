"""
Base ledger client interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from utxokit.keys import SpendKey
from utxokit.models import (
    PendingRequest,
    TransactionEnvelope,
    TransactionOutput,
    TransactionRequest,
    UnspentOutput,
)


class LedgerClient(ABC):
    """
    Abstract client for the remote ledger service.

    Implementations own transport, serialization and transaction encoding.
    The transfer engine only calls these methods, always in the order
    list -> build -> create -> sign -> submit -> read, and never caches
    their results across operations. Any exception raised here is treated
    as a network failure by the engine.
    """

    @abstractmethod
    async def list_unspent_outputs(
        self, asset_id: str, threshold: int, limit: int
    ) -> list[UnspentOutput]:
        """List unspent outputs of an asset owned with the given signature threshold"""

    @abstractmethod
    async def build_transaction(
        self,
        utxos: Sequence[UnspentOutput],
        outputs: Sequence[TransactionOutput],
        memo: str,
    ) -> TransactionEnvelope:
        """Build an unsigned transaction spending utxos into outputs"""

    @abstractmethod
    async def create_transaction_request(
        self, request_id: str, envelope: TransactionEnvelope
    ) -> PendingRequest:
        """Register an unsigned transaction; returns the views needed to sign it"""

    @abstractmethod
    async def sign_transaction(
        self, envelope: TransactionEnvelope, spend_key: SpendKey, views: Sequence[str]
    ) -> TransactionEnvelope:
        """Sign a transaction with the spend key"""

    @abstractmethod
    async def submit_transaction_request(
        self, request_id: str, envelope: TransactionEnvelope
    ) -> TransactionRequest:
        """Submit a signed transaction"""

    @abstractmethod
    async def read_transaction_request(self, request_id: str) -> TransactionRequest | None:
        """Read a transaction request. Returns None if the ledger does not know it."""

    @abstractmethod
    async def derive_threshold_address(self, members: Sequence[str], threshold: int) -> str:
        """Deterministic address for a member set and signature threshold"""

    async def close(self) -> None:
        """Close client connection"""
        pass
