"""
Test configuration and fixtures for utxokit.
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
from collections.abc import Sequence
from decimal import Decimal

import pytest

from utxokit.config import TransferConfig
from utxokit.keys import SpendKey
from utxokit.ledger.base import LedgerClient
from utxokit.models import (
    PendingRequest,
    RequestState,
    TransactionEnvelope,
    TransactionOutput,
    TransactionRequest,
    UnspentOutput,
    UtxoState,
)

CLIENT_ID = "7d4a6e9c-1b2f-4c3d-8e5f-0a1b2c3d4e5f"
ASSET = "965e5c6e-434c-3fa9-b780-c50f43cd955c"
SPEND_KEY_HEX = "11" * 32


class FakeLedger(LedgerClient):
    """
    In-memory ledger.

    Submitting a transaction spends its inputs and creates new outputs for
    every output paid to the client's own address, plus one for the change.
    Every call is recorded
    in ``calls`` as (task name, operation) and yields to the event loop so
    that concurrent callers get a chance to interleave.
    """

    def __init__(self, client_id: str = CLIENT_ID):
        self.client_id = client_id
        self.utxos: dict[str, UnspentOutput] = {}
        self.requests: dict[str, TransactionRequest] = {}
        self.calls: list[tuple[str, str]] = []
        self.submissions: list[str] = []
        self.built: list[dict] = []
        self.read_misses = 0
        self.fail_on: dict[str, Exception] = {}
        self._ids = itertools.count()

    def add_utxo(
        self, amount: Decimal | int | str, asset_id: str = ASSET, inscription: str | None = None
    ) -> UnspentOutput:
        utxo = UnspentOutput(
            output_id=f"utxo-{next(self._ids):04d}",
            asset_id=asset_id,
            amount=Decimal(amount),
            inscription_hash=inscription,
        )
        self.utxos[utxo.output_id] = utxo
        return utxo

    def unspent(self, asset_id: str = ASSET) -> list[UnspentOutput]:
        return [
            u for u in self.utxos.values() if u.asset_id == asset_id and u.state == UtxoState.UNSPENT
        ]

    def ops(self) -> list[str]:
        return [op for _, op in self.calls]

    async def _record(self, op: str) -> None:
        task = asyncio.current_task()
        self.calls.append((task.get_name() if task else "", op))
        await asyncio.sleep(0)
        if op in self.fail_on:
            raise self.fail_on[op]

    async def list_unspent_outputs(
        self, asset_id: str, threshold: int, limit: int
    ) -> list[UnspentOutput]:
        await self._record("list")
        return self.unspent(asset_id)[:limit]

    async def build_transaction(
        self,
        utxos: Sequence[UnspentOutput],
        outputs: Sequence[TransactionOutput],
        memo: str,
    ) -> TransactionEnvelope:
        await self._record("build")
        payload = {
            "inputs": [u.output_id for u in utxos],
            "asset_id": utxos[0].asset_id,
            "outputs": list(outputs),
            "memo": memo,
        }
        self.built.append(payload)
        return TransactionEnvelope(raw=f"raw-{len(self.built)}", payload=payload)

    async def create_transaction_request(
        self, request_id: str, envelope: TransactionEnvelope
    ) -> PendingRequest:
        await self._record("create")
        self.requests.setdefault(request_id, TransactionRequest(request_id, RequestState.UNSPENT))
        return PendingRequest(request_id=request_id, views=["view-0"])

    async def sign_transaction(
        self, envelope: TransactionEnvelope, spend_key: SpendKey, views: Sequence[str]
    ) -> TransactionEnvelope:
        await self._record("sign")
        assert list(views) == ["view-0"]
        return TransactionEnvelope(raw=envelope.raw + ":signed", payload=envelope.payload)

    async def submit_transaction_request(
        self, request_id: str, envelope: TransactionEnvelope
    ) -> TransactionRequest:
        await self._record("submit")
        payload = envelope.payload
        for output_id in payload["inputs"]:
            if self.utxos[output_id].state == UtxoState.SPENT:
                raise ValueError(f"double spend of {output_id}")
        for output_id in payload["inputs"]:
            old = self.utxos[output_id]
            self.utxos[output_id] = UnspentOutput(
                old.output_id, old.asset_id, old.amount, old.inscription_hash, UtxoState.SPENT
            )

        own_address = await self._address([self.client_id], 1)
        for output in payload["outputs"]:
            if output.address == own_address:
                self.add_utxo(output.amount, payload["asset_id"])

        spent = sum((self.utxos[i].amount for i in payload["inputs"]), Decimal(0))
        change = spent - sum((o.amount for o in payload["outputs"]), Decimal(0))
        if change > 0:
            self.add_utxo(change, payload["asset_id"])

        self.submissions.append(request_id)
        request = TransactionRequest(
            request_id=request_id,
            state=RequestState.SIGNED,
            transaction_hash=hashlib.sha256(envelope.raw.encode()).hexdigest(),
            asset_id=payload["asset_id"],
            amount=sum((o.amount for o in payload["outputs"]), Decimal(0)),
        )
        self.requests[request_id] = request
        return request

    async def read_transaction_request(self, request_id: str) -> TransactionRequest | None:
        await self._record("read")
        request = self.requests.get(request_id)
        if request is not None and request.submitted and self.read_misses > 0:
            self.read_misses -= 1
            return None
        return request

    async def derive_threshold_address(self, members: Sequence[str], threshold: int) -> str:
        return await self._address(members, threshold)

    @staticmethod
    async def _address(members: Sequence[str], threshold: int) -> str:
        return f"mix:{threshold}:" + ",".join(sorted(members))


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def config() -> TransferConfig:
    return TransferConfig(
        client_id=CLIENT_ID,
        spend_key=SPEND_KEY_HEX,
        confirm_base_delay=1.0,
        aggregate_pause=0.25,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested from the fake sleep."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
        await asyncio.sleep(0)

    return _sleep
