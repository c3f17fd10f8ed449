"""
Transfer data models.

Ledger artifacts (outputs, envelopes, request handles) are plain dataclasses
produced by the ledger client. Caller-supplied requests are Pydantic models
so that malformed input is rejected before any ledger call.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from utxokit.constants import MAX_MEMO_BYTES


def gen_uuid_from_strings(*parts: str) -> str:
    """Deterministic UUIDv5 (OID namespace) over the concatenated parts."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, "".join(parts)))


def derive_sub_request_id(parent_request_id: str, index: int) -> str:
    """Request id of the ``index``-th sub-batch of ``parent_request_id``."""
    return gen_uuid_from_strings(parent_request_id, str(index))


class UtxoState(str, Enum):
    UNSPENT = "unspent"
    SPENT = "spent"


class RequestState(str, Enum):
    UNSPENT = "unspent"  # created, not yet signed
    SIGNED = "signed"
    SPENT = "spent"


@dataclass(frozen=True)
class UnspentOutput:
    """An output as reported by the ledger's listing call."""

    output_id: str
    asset_id: str
    amount: Decimal
    inscription_hash: str | None = None
    state: UtxoState = UtxoState.UNSPENT

    @property
    def is_inscription(self) -> bool:
        return bool(self.inscription_hash)


@dataclass
class TransactionOutput:
    address: str
    amount: Decimal


@dataclass
class TransactionEnvelope:
    """Opaque transaction produced by the ledger client, passed through as-is."""

    raw: str
    payload: Any = None


@dataclass
class PendingRequest:
    """Handle returned when a transaction request is created."""

    request_id: str
    views: list[str] = field(default_factory=list)


@dataclass
class TransactionRequest:
    """Ledger-side state of a transaction request."""

    request_id: str
    state: RequestState
    transaction_hash: str = ""
    asset_id: str = ""
    amount: Decimal = Decimal(0)

    @property
    def submitted(self) -> bool:
        return self.state in (RequestState.SIGNED, RequestState.SPENT)


def _normalize_request_id(v: str) -> str:
    try:
        return str(uuid.UUID(v))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"request_id must be a UUID, got {v!r}") from exc


def _check_memo(v: str) -> str:
    if len(v.encode("utf-8")) > MAX_MEMO_BYTES:
        raise ValueError(f"memo exceeds {MAX_MEMO_BYTES} bytes")
    return v


RequestId = Annotated[str, AfterValidator(_normalize_request_id)]
Memo = Annotated[str, AfterValidator(_check_memo)]


class RecipientAmount(BaseModel):
    """Amount paid to the threshold address of a member set."""

    model_config = ConfigDict(frozen=True)

    members: list[str] = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    threshold: int | None = None

    @model_validator(mode="after")
    def check_threshold(self) -> RecipientAmount:
        """Default to all-of-n; reject thresholds outside 1..n."""
        if self.threshold is None:
            object.__setattr__(self, "threshold", len(self.members))
        elif not 1 <= self.threshold <= len(self.members):
            raise ValueError(
                f"threshold must be between 1 and {len(self.members)}, got {self.threshold}"
            )
        return self


class TransferManyRequest(BaseModel):
    """Pay several recipients of one asset, in one or more transactions."""

    request_id: RequestId
    asset_id: str = Field(..., min_length=1)
    recipients: list[RecipientAmount] = Field(..., min_length=1)
    memo: Memo = ""

    @property
    def total_amount(self) -> Decimal:
        return sum((r.amount for r in self.recipients), Decimal(0))


class TransferOneRequest(BaseModel):
    """Pay a single member."""

    request_id: RequestId
    asset_id: str = Field(..., min_length=1)
    member: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    memo: Memo = ""

    def to_many(self) -> TransferManyRequest:
        return TransferManyRequest(
            request_id=self.request_id,
            asset_id=self.asset_id,
            recipients=[RecipientAmount(members=[self.member], amount=self.amount, threshold=1)],
            memo=self.memo,
        )


class InscriptionTransferRequest(BaseModel):
    """Move the single output carrying ``inscription_hash`` to ``member``."""

    request_id: RequestId
    asset_id: str = Field(..., min_length=1)
    inscription_hash: str = Field(..., min_length=1)
    member: str = Field(..., min_length=1)
    memo: Memo = ""
