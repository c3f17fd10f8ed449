"""
Splitting of recipient lists into transaction-sized batches.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def split_batches(items: Sequence[T], cap: int) -> list[list[T]]:
    """
    Partition items into contiguous chunks of at most cap elements.

    Returns ceil(len(items) / cap) chunks in input order; only the last one
    may be shorter than cap. An empty input gives no chunks.
    """
    if cap <= 0:
        raise ValueError(f"Batch cap must be positive, got {cap}")
    return [list(items[start : start + cap]) for start in range(0, len(items), cap)]
