"""
Exceptions raised by the transfer engine.

Selection and validation errors are raised before any ledger mutation.
LedgerError and the errors raised after submission (ConfirmationTimeoutError,
BatchTransferError) do not imply that nothing was applied on the ledger.
"""

from __future__ import annotations

from decimal import Decimal


class TransferError(Exception):
    """Base class for all transfer engine errors."""

    pass


class ConfigInvalidError(TransferError):
    """Missing or invalid configuration, e.g. malformed spend key material."""

    pass


class InsufficientFundsError(TransferError):
    """The eligible UTXO pool cannot cover the requested amount."""

    def __init__(self, required: Decimal, available: Decimal, reachable: Decimal | None = None):
        self.required = required
        self.available = available
        self.reachable = available if reachable is None else reachable
        message = f"Insufficient funds: need {required}, have {available}"
        if self.reachable < available:
            message += f" ({self.reachable} within the input cap)"
        super().__init__(message)


class InscriptionNotFoundError(TransferError):
    """No unspent output carries the requested inscription."""

    def __init__(self, inscription_hash: str):
        self.inscription_hash = inscription_hash
        super().__init__(f"Inscription not found: {inscription_hash}")


class InscriptionAmbiguousError(TransferError):
    """More than one unspent output carries the requested inscription."""

    def __init__(self, inscription_hash: str, matches: int):
        self.inscription_hash = inscription_hash
        self.matches = matches
        super().__init__(f"Inscription {inscription_hash} matches {matches} outputs")


class MaxBatchExceededError(TransferError):
    """Too many recipients for a single transaction."""

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(f"{count} recipients exceeds maximum of {limit} per transaction")


class LedgerError(TransferError):
    """A call to the ledger client failed (network, RPC or server error)."""

    pass


class ConfirmationTimeoutError(TransferError):
    """
    A submitted request could not be read back within the retry bound.

    The transaction may still have been applied; callers must reconcile
    using the request id.
    """

    def __init__(self, request_id: str, attempts: int):
        self.request_id = request_id
        self.attempts = attempts
        super().__init__(f"Request {request_id} not confirmed after {attempts} attempts")


class TransferCancelledError(TransferError):
    """The caller's cancellation signal fired."""

    pass


class AggregationStalledError(TransferError):
    """UTXO consolidation did not finish within the configured number of rounds."""

    def __init__(self, asset_id: str, rounds: int, remaining: int):
        self.asset_id = asset_id
        self.rounds = rounds
        self.remaining = remaining
        super().__init__(
            f"Aggregation of {asset_id} stopped after {rounds} rounds "
            f"with {remaining} outputs remaining"
        )


class BatchTransferError(TransferError):
    """
    A sub-batch of an unbounded batch transfer failed.

    Sub-batches run in order and processing stops at the first failure.
    ``completed`` lists the sub-request ids confirmed before the failure,
    ``failed_request_id`` is the sub-request that raised ``error``.
    """

    def __init__(
        self,
        request_id: str,
        failed_request_id: str,
        completed: list[str],
        error: TransferError,
    ):
        self.request_id = request_id
        self.failed_request_id = failed_request_id
        self.completed = completed
        self.error = error
        super().__init__(
            f"Batch {request_id} failed at sub-request {failed_request_id} "
            f"after {len(completed)} completed: {error}"
        )
