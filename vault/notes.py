"""
vault.notes: commitment scheme and depositor notes.

    (secret, nullifier) = generate()
    commitment          = H3(secret, nullifier, amount)
    nullifier_hash      = H2(secret, nullifier)

A *note* is everything a depositor must keep to withdraw later. Losing it
loses the funds; leaking it lets anyone withdraw them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from core.errors import InvalidInput, SerializationError
from zk.verifiers import ZKError
from zk.verifiers.field import is_canonical, parse_int, random_nonzero
from zk.verifiers.poseidon import hash2, hash3

NOTE_VERSION = 1


def generate() -> Tuple[int, int]:
    """Two independent uniform non-zero field elements from the OS CSPRNG."""
    return random_nonzero(), random_nonzero()


def _require_secret(name: str, v: int) -> int:
    if not isinstance(v, int) or isinstance(v, bool) or not is_canonical(v):
        raise InvalidInput(f"{name} must be a canonical field element")
    if v == 0:
        raise InvalidInput(f"{name} must be non-zero")
    return v


def _require_amount(amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or not is_canonical(amount):
        raise InvalidInput("amount must be a canonical field element")
    if amount <= 0:
        raise InvalidInput("amount must be positive", amount=amount)
    return amount


def commitment(secret: int, nullifier: int, amount: int) -> int:
    return hash3(
        _require_secret("secret", secret),
        _require_secret("nullifier", nullifier),
        _require_amount(amount),
    )


def nullifier_hash(secret: int, nullifier: int) -> int:
    return hash2(_require_secret("secret", secret), _require_secret("nullifier", nullifier))


@dataclass(frozen=True)
class Note:
    secret: int
    nullifier: int
    amount: int
    depositor: Optional[int] = None

    def __post_init__(self) -> None:
        _require_secret("secret", self.secret)
        _require_secret("nullifier", self.nullifier)
        _require_amount(self.amount)

    def __repr__(self) -> str:
        # keep secrets out of tracebacks and logs
        return f"Note(commitment={hex(self.commitment)}, amount={self.amount})"

    @classmethod
    def new(cls, amount: int, depositor: Optional[int] = None) -> "Note":
        secret, nullifier = generate()
        return cls(secret=secret, nullifier=nullifier, amount=amount, depositor=depositor)

    @property
    def commitment(self) -> int:
        return commitment(self.secret, self.nullifier, self.amount)

    @property
    def nullifier_hash(self) -> int:
        return nullifier_hash(self.secret, self.nullifier)

    # -- serialization --

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": NOTE_VERSION,
            "secret": str(self.secret),
            "nullifier": str(self.nullifier),
            "amount": str(self.amount),
            "commitment": str(self.commitment),
        }
        if self.depositor is not None:
            out["depositor"] = hex(self.depositor)
        return out

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "Note":
        try:
            version = int(obj.get("version", NOTE_VERSION))
            secret = parse_int(obj["secret"])
            nullifier = parse_int(obj["nullifier"])
            amount = parse_int(obj["amount"])
            depositor = parse_int(obj["depositor"]) if obj.get("depositor") is not None else None
        except (KeyError, ValueError, TypeError, ZKError) as e:
            raise SerializationError("malformed note", reason=str(e)) from e
        if version != NOTE_VERSION:
            raise SerializationError("unsupported note version", version=version)

        note = cls(secret=secret, nullifier=nullifier, amount=amount, depositor=depositor)
        if "commitment" in obj:
            try:
                expected = parse_int(obj["commitment"])
            except (ValueError, TypeError, ZKError) as e:
                raise SerializationError("malformed note commitment") from e
            if expected != note.commitment:
                raise InvalidInput("note commitment does not match its secrets")
        return note

    def save(self, path: Union[str, Path]) -> Path:
        p = Path(path)
        p.write_text(json.dumps(self.to_json(), indent=2) + "\n", encoding="utf-8")
        return p

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Note":
        p = Path(path)
        try:
            obj = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SerializationError("note file is not JSON", path=str(p)) from e
        if not isinstance(obj, dict):
            raise SerializationError("note file must hold a JSON object", path=str(p))
        return cls.from_json(obj)


__all__ = ["NOTE_VERSION", "generate", "commitment", "nullifier_hash", "Note"]
