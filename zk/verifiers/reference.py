"""
zk.verifiers.reference
======================

Reference proof backend: a keyed MAC over the public signals.

This is the development stand-in for a SNARK. An *attester* holding the key
first checks the circuit relations itself (see `vault.prover`), then issues a
tag binding the exact public-signal vector. The verifier recomputes the tag.
It shares the Groth16 contract at the boundary (opaque proof object, ordered
public signals, verifying-key object) so the engine cannot tell them apart,
but it is neither zero-knowledge nor publicly verifiable: whoever holds the
verifying key can mint proofs. Never deploy it.

Shapes
------
vk    = {"protocol": "reference", "nPublic": n, "key": "<64 hex>"}
proof = {"protocol": "reference", "tag": "<64 hex>"}

Tag = HMAC-SHA3-256(key, DOMAIN || u8(n) || fr32(s_1) || ... || fr32(s_n))
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Any, Mapping, Sequence

from . import ZKError
from .field import fr_to_bytes, parse_int

DOMAIN = b"vault/reference-proof/v1"
KEY_LEN = 32


def keygen(n_public: int) -> dict:
    """Fresh verifying key for a circuit with `n_public` public signals."""
    if not 0 < n_public < 256:
        raise ZKError("n_public must be in [1, 255]")
    return {"protocol": "reference", "nPublic": n_public, "key": secrets.token_hex(KEY_LEN)}


def _key(vk: Mapping[str, Any]) -> bytes:
    try:
        key = bytes.fromhex(str(vk["key"]))
    except (KeyError, ValueError) as e:
        raise ZKError("reference vk needs a hex 'key'") from e
    if len(key) != KEY_LEN:
        raise ZKError(f"reference key must be {KEY_LEN} bytes")
    return key


def _tag(key: bytes, public: Sequence[Any]) -> bytes:
    msg = bytearray(DOMAIN)
    msg.append(len(public))
    for s in public:
        msg += fr_to_bytes(parse_int(s))
    return hmac.new(key, bytes(msg), hashlib.sha3_256).digest()


def attest(public: Sequence[Any], vk: Mapping[str, Any]) -> dict:
    """Issue a proof object for `public`. Callers must have checked the relations."""
    n = int(vk.get("nPublic", len(public)))
    if len(public) != n:
        raise ZKError(f"expected {n} public signals, got {len(public)}")
    return {"protocol": "reference", "tag": _tag(_key(vk), public).hex()}


def verify(proof: Mapping[str, Any], public: Sequence[Any], vk: Mapping[str, Any]) -> bool:
    """Adapter entrypoint used by `zk.verifiers.verify`."""
    key = _key(vk)
    n = int(vk.get("nPublic", len(public)))
    if len(public) != n:
        return False
    try:
        expected = _tag(key, public)
        got = bytes.fromhex(str(proof.get("tag", "")))
    except (ZKError, ValueError):
        return False
    return hmac.compare_digest(expected, got)


__all__ = ["DOMAIN", "keygen", "attest", "verify"]
