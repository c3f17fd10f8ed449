"""
Ledger client interface.

The transfer engine talks to the remote ledger only through LedgerClient.
Concrete clients (transport, signing, transaction encoding) live outside
this package.
"""

from utxokit.ledger.base import LedgerClient

__all__ = ["LedgerClient"]
