"""
Spend key material.

The spend key authorizes consumption of the client's outputs. It is an
ed25519 key given either as a 32-byte seed or as a 64-byte NaCl secret key
(seed followed by public key), hex encoded.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field

from utxokit.errors import ConfigInvalidError


@dataclass(frozen=True)
class SpendKey:
    """Parsed spend key. The secret never appears in repr()."""

    seed: bytes = field(repr=False)
    public_key: str = ""

    def hex(self) -> str:
        return self.seed.hex()


def _unhex(value: str, what: str) -> bytes:
    try:
        return binascii.unhexlify(value.strip())
    except (TypeError, binascii.Error) as exc:
        raise ConfigInvalidError(f"{what} is not valid hex") from exc


def derive_public_key(seed: bytes) -> str:
    """ed25519 public key (hex) for a 32-byte seed."""
    import libnacl

    pk, _sk = libnacl.crypto_sign_seed_keypair(seed)
    return pk.hex()


def parse_spend_key(spend_key: str | None, expected_public_key: str | None = None) -> SpendKey:
    """
    Parse hex spend key material.

    Args:
        spend_key: 32-byte seed or 64-byte secret key, hex encoded
        expected_public_key: Optional hex public key the spend key must match

    Returns:
        SpendKey

    Raises:
        ConfigInvalidError: If the key is missing, malformed or does not
            match the expected public key
    """
    if not spend_key:
        raise ConfigInvalidError("Spend key is required")

    raw = _unhex(spend_key, "Spend key")
    if len(raw) == 64:
        seed, embedded_pk = raw[:32], raw[32:].hex()
    elif len(raw) == 32:
        seed, embedded_pk = raw, ""
    else:
        raise ConfigInvalidError(f"Spend key must be 32 or 64 bytes, got {len(raw)}")

    if expected_public_key is None and not embedded_pk:
        return SpendKey(seed=seed)

    derived = derive_public_key(seed)
    if embedded_pk and embedded_pk != derived:
        raise ConfigInvalidError("Spend key is inconsistent with its embedded public key")
    if expected_public_key is not None:
        expected = _unhex(expected_public_key, "Spend public key").hex()
        if expected != derived:
            raise ConfigInvalidError("Spend key does not match the spend public key")
    return SpendKey(seed=seed, public_key=derived)
