"""
Ledger protocol constants used by the transfer engine.

The input cap is a protocol rule: a single transaction may consume at most
255 outputs. The same bound is reused for the number of recipients a single
multi-output transaction may carry.
"""

from __future__ import annotations

# Maximum number of inputs (and outputs) per transaction
MAX_UTXO_NUM = 255

# Memo attached to self-addressed consolidation transactions
AGGREGATE_UTXO_MEMO = "aggregate utxos"

# Maximum memo size in UTF-8 bytes (ledger "extra" field limit)
MAX_MEMO_BYTES = 256

# Default page size when listing unspent outputs
DEFAULT_LIST_LIMIT = 500

# Only list outputs spendable by a single signature of ours
DEFAULT_OUTPUT_THRESHOLD = 1

# Pause between consolidation rounds (seconds)
AGGREGATE_PAUSE_SECONDS = 0.25

# Hard bound on consolidation rounds per aggregation call
MAX_AGGREGATION_ROUNDS = 64
