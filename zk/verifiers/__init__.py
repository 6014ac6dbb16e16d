# zk/verifiers/__init__.py
"""
ZK verifiers: high-level facade

This package exposes a small, stable interface for verifying the withdrawal
proofs consumed by the vault engine:

- `groth16`   → Groth16 over BN254 (snarkjs JSON format), the production backend
- `reference` → keyed-MAC binding of public signals, for development and tests
                (see `zk.verifiers.reference`; not zero-knowledge, not succinct)

Concrete adapters live in sibling modules and are imported lazily. Each adapter
implements:

    def verify(proof: Mapping, public: Sequence, vk: Mapping) -> bool: ...

Envelope (recommended)
----------------------
{
  "scheme": { "protocol": "groth16" | "reference", "curve": "bn128" },
  "proof":  { ... },     # JSON per scheme
  "public": [ ... ],     # public signals, in circuit order
  "vk":     { ... }      # verifying key JSON per scheme
}

Usage
-----
>>> from zk.verifiers import verify
>>> verify("groth16", proof, public, vk).ok
True
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import Any, Dict, Final, List, Literal, Mapping, Optional, Sequence, Tuple, Union

# ---- Public types ---------------------------------------------------------------------------

ProtocolName = Literal["groth16", "reference"]


@dataclass(slots=True, frozen=True)
class VerificationResult:
    """Result of a verification attempt."""

    ok: bool
    protocol: Optional[ProtocolName] = None
    message: Optional[str] = None

    def __bool__(self) -> bool:  # allows: if result: ...
        return self.ok


class ZKError(RuntimeError):
    """Raised for malformed inputs or missing verifier backends."""


# ---- Constants & adapter registry ------------------------------------------------------------

SUPPORTED_PROTOCOLS: Final[Tuple[ProtocolName, ...]] = ("groth16", "reference")

# Map normalized protocol → adapter module suffix (zk.verifiers.<module>)
_ADAPTER_MODULE: Final[Mapping[ProtocolName, str]] = {
    "groth16": "groth16_bn254",
    "reference": "reference",
}


# ---- Helpers --------------------------------------------------------------------------------


def _normalize_protocol(p: str) -> ProtocolName:
    """Accept common aliases, return canonical `ProtocolName`."""
    if not isinstance(p, str):
        raise ZKError("Protocol name must be a string.")
    key = p.strip().lower().replace("-", "_")
    if key in ("groth16", "g16", "groth16_bn254"):
        return "groth16"
    if key in ("reference", "ref", "mac"):
        return "reference"
    raise ZKError(f"Unsupported protocol '{p}'. Supported: {', '.join(SUPPORTED_PROTOCOLS)}")


def _import_adapter(protocol: ProtocolName):
    """Lazy import the adapter module for a protocol."""
    modname = _ADAPTER_MODULE[protocol]
    try:
        return import_module(f".{modname}", __name__)
    except ModuleNotFoundError as e:
        raise ZKError(
            f"Verifier backend for '{protocol}' is not available ({e.name} is missing)."
        ) from e


def _shape_check(proof: Any, public: Any, vk: Any) -> None:
    if not isinstance(proof, Mapping):
        raise ZKError("`proof` must be a JSON object (mapping).")
    if not isinstance(public, (list, tuple)):
        raise ZKError("`public` must be an array.")
    if not isinstance(vk, Mapping):
        raise ZKError("`vk` (verifying key) must be a JSON object (mapping).")


# ---- Public API -----------------------------------------------------------------------------


def verify(
    protocol: str,
    proof: Mapping[str, Any],
    public: Union[List[Any], Sequence[Any]],
    vk: Mapping[str, Any],
) -> VerificationResult:
    """
    Verify a proof for the given protocol.

    Returns
    -------
    VerificationResult :
        ok=True on success; ok=False with message on failure.

    Raises
    ------
    ZKError
        If the protocol is unsupported, inputs are malformed or the adapter is missing.
    """
    p = _normalize_protocol(protocol)
    _shape_check(proof, public, vk)
    adapter = _import_adapter(p)
    ok = bool(adapter.verify(proof, list(public), vk))
    return VerificationResult(ok=ok, protocol=p, message=None if ok else "verification failed")


def verify_envelope(envelope: Mapping[str, Any]) -> VerificationResult:
    """Verify a proof from an envelope dict ('scheme', 'proof', 'public', 'vk')."""
    if not isinstance(envelope, Mapping):
        raise ZKError("Envelope must be a mapping/dict.")
    scheme = envelope.get("scheme")
    if not isinstance(scheme, Mapping) or not isinstance(scheme.get("protocol"), str):
        raise ZKError("Envelope 'scheme.protocol' must be a string.")
    return verify(scheme["protocol"], envelope.get("proof"), envelope.get("public"), envelope.get("vk"))  # type: ignore[arg-type]


def has_adapter(protocol: str) -> bool:
    """Return True if a verifier adapter for `protocol` can be imported."""
    try:
        _import_adapter(_normalize_protocol(protocol))
        return True
    except ZKError:
        return False


def list_adapters() -> Dict[ProtocolName, bool]:
    """Return a map of supported protocol names → availability (bool)."""
    return {p: has_adapter(p) for p in SUPPORTED_PROTOCOLS}


__all__ = [
    "ProtocolName",
    "VerificationResult",
    "ZKError",
    "SUPPORTED_PROTOCOLS",
    "verify",
    "verify_envelope",
    "has_adapter",
    "list_adapters",
]
