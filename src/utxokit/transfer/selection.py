"""
Coin selection.

Fungible transfers use a sliding-window greedy selection over the outputs
sorted by ascending amount: small outputs are consumed first so that dust
gets spent, while the window never grows past the protocol input cap.
Inscription-bearing outputs are indivisible and only ever selected by
select_inscription().
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from decimal import Decimal

from loguru import logger

from utxokit.constants import MAX_UTXO_NUM
from utxokit.errors import (
    InscriptionAmbiguousError,
    InscriptionNotFoundError,
    InsufficientFundsError,
)
from utxokit.models import UnspentOutput


def fungible_outputs(utxos: Iterable[UnspentOutput]) -> list[UnspentOutput]:
    """New list of the outputs without an inscription, smallest first."""
    eligible = [utxo for utxo in utxos if not utxo.is_inscription]
    eligible.sort(key=lambda u: (u.amount, u.output_id))
    return eligible


def select_utxos(
    utxos: Iterable[UnspentOutput], target: Decimal, max_inputs: int = MAX_UTXO_NUM
) -> list[UnspentOutput]:
    """
    Select outputs covering target with at most max_inputs inputs.

    Outputs are added smallest first. Once the window holds more than
    max_inputs outputs the smallest one is evicted. Selection stops as soon
    as the window sum reaches target.

    Raises:
        InsufficientFundsError: If no window of max_inputs outputs covers target
    """
    if target <= 0:
        raise ValueError(f"Target amount must be positive, got {target}")
    if max_inputs < 1:
        raise ValueError(f"max_inputs must be positive, got {max_inputs}")

    eligible = fungible_outputs(utxos)
    window: deque[UnspentOutput] = deque()
    total = Decimal(0)

    for utxo in eligible:
        window.append(utxo)
        total += utxo.amount

        if len(window) > max_inputs:
            evicted = window.popleft()
            total -= evicted.amount

        if total >= target:
            logger.debug(f"Selected {len(window)} UTXOs totalling {total} for target {target}")
            return list(window)

    available = sum((u.amount for u in eligible), Decimal(0))
    raise InsufficientFundsError(required=target, available=available, reachable=total)


def select_inscription(utxos: Iterable[UnspentOutput], inscription_hash: str) -> UnspentOutput:
    """
    Find the single output carrying inscription_hash.

    Raises:
        InscriptionNotFoundError: No output carries it
        InscriptionAmbiguousError: Several outputs carry it
    """
    matches = [utxo for utxo in utxos if utxo.inscription_hash == inscription_hash]
    if not matches:
        raise InscriptionNotFoundError(inscription_hash)
    if len(matches) > 1:
        raise InscriptionAmbiguousError(inscription_hash, len(matches))
    return matches[0]
