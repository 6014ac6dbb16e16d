"""
shielded-vault: core.errors
----------------------------

A small, consistent error system for the vault engine and its helpers.

Design goals
------------
- One root `VaultError` with machine-friendly `code` and optional `data`.
- Concrete subclasses for every rejection the engine can produce
  (input, capacity, duplicate commitment, spent nullifier, stale root,
  invalid proof, funds, authorization, state).
- Helpers to enrich errors with contextual fields without mutating them.
- Safe JSON representation (`to_dict`) suitable for logs and API bridges.
- Clear separation of *retryable* vs *permanent* failures.

Every rejection raised by the state machine is raised *before* any state is
committed, so callers can rely on "error ⇒ no change".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

# ---------------------------------------------------------------------------
# Error codes & classes
# ---------------------------------------------------------------------------


class Severity(IntEnum):
    """Optional severity hint for operators/metrics."""

    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class VaultErrorCode(str, Enum):
    # Generic
    INTERNAL = "VAULT/INTERNAL"
    CONFIG = "VAULT/CONFIG"
    SERIALIZATION = "VAULT/SERIALIZATION"
    STATE_INVARIANT = "VAULT/STATE_INVARIANT"

    # Synchronous input rejection
    INVALID_INPUT = "VAULT/INVALID_INPUT"

    # Accumulator
    CAPACITY_EXCEEDED = "VAULT/CAPACITY_EXCEEDED"
    DUPLICATE_COMMITMENT = "VAULT/DUPLICATE_COMMITMENT"
    UNKNOWN_ROOT = "VAULT/UNKNOWN_ROOT"

    # Withdrawal
    NULLIFIER_SPENT = "VAULT/NULLIFIER_ALREADY_SPENT"
    PROOF_INVALID = "VAULT/PROOF_INVALID"
    INSUFFICIENT_FUNDS = "VAULT/INSUFFICIENT_FUNDS"
    SETTLEMENT = "VAULT/SETTLEMENT"

    # Administration
    UNAUTHORIZED = "VAULT/UNAUTHORIZED"
    INVALID_STATE = "VAULT/INVALID_STATE"
    TIMELOCK = "VAULT/TIMELOCK"


@dataclass(eq=False)
class VaultError(Exception):
    """
    Root error for vault components.

    Attributes
    ----------
    code: str
        Machine-stable error code (see VaultErrorCode).
    message: str
        Human hint suitable for logs; never carries secrets.
    data: dict
        Optional machine data (roots, indices, amounts). JSON-serializable.
    severity: Severity
        Optional severity hint (default ERROR).
    retryable: bool
        Whether the operation may succeed on retry with refreshed inputs.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.ERROR
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{self.code}: {self.message}")

    # ---------------- Public API ----------------

    def with_context(self, **ctx: Any) -> "VaultError":
        """Return a *new* error with extra context merged (does not mutate)."""
        err = self._clone()
        err.data = {**self.data, **_jsonmap(ctx)}
        return err

    def with_cause(self, exc: BaseException) -> "VaultError":
        """Attach/replace the causal exception (returns a new instance)."""
        err = self._clone()
        err.cause = exc
        return err

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs/API bridges."""
        out = {
            "code": _code_str(self.code),
            "message": self.message,
            "data": _coerce_json(self.data),
            "severity": int(self.severity),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def _clone(self) -> "VaultError":
        # Subclasses have bespoke __init__ signatures; copy state directly.
        err = self.__class__.__new__(self.__class__)
        err.__dict__.update(self.__dict__)
        err.data = dict(self.data)
        Exception.__init__(err, *self.args)
        return err

    def __str__(self) -> str:  # pragma: no cover - human formatting
        parts = [f"{_code_str(self.code)}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


# Concrete subclasses (thin wrappers for ergonomics)
class InternalError(VaultError):
    def __init__(self, message: str = "internal error", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.INTERNAL,
            message=message,
            data=_jsonmap(data),
            severity=Severity.CRITICAL,
        )


class ConfigError(VaultError):
    def __init__(self, message: str = "invalid configuration", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.CONFIG,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


class SerializationError(VaultError):
    def __init__(self, message: str = "serialization failed", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.SERIALIZATION, message=message, data=_jsonmap(data)
        )


class StateInvariant(VaultError):
    def __init__(self, message: str = "state invariant broken", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.STATE_INVARIANT,
            message=message,
            data=_jsonmap(data),
            severity=Severity.CRITICAL,
            retryable=False,
        )


class InvalidInput(VaultError):
    """Zero commitment/secret, out-of-range amount/fee/recipient, malformed proof shape."""

    def __init__(self, message: str = "invalid input", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.INVALID_INPUT,
            message=message,
            data=_jsonmap(data),
            severity=Severity.WARNING,
            retryable=False,
        )


class CapacityExceeded(VaultError):
    """The tree is full. Permanent for this instance."""

    def __init__(self, capacity: int, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.CAPACITY_EXCEEDED,
            message="merkle tree is full",
            data=_jsonmap({"capacity": capacity, **data}),
            retryable=False,
        )


class DuplicateCommitment(VaultError):
    def __init__(self, commitment: int, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.DUPLICATE_COMMITMENT,
            message="commitment already inserted",
            data=_jsonmap({"commitment": hex(commitment), **data}),
            severity=Severity.WARNING,
            retryable=False,
        )


class NullifierAlreadySpent(VaultError):
    def __init__(self, nullifier_hash: int, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.NULLIFIER_SPENT,
            message="nullifier already spent",
            data=_jsonmap({"nullifier_hash": hex(nullifier_hash), **data}),
            severity=Severity.WARNING,
            retryable=False,
        )


class UnknownRoot(VaultError):
    """Root is not in the history window. Refresh the root/path and retry."""

    def __init__(self, root: int, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.UNKNOWN_ROOT,
            message="root is not in the recent root history",
            data=_jsonmap({"root": hex(root), **data}),
            severity=Severity.WARNING,
            retryable=True,
        )


class ProofInvalid(VaultError):
    """Proof rejected by the verifier. Regenerate a correct proof and retry."""

    def __init__(self, message: str = "proof verification failed", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.PROOF_INVALID,
            message=message,
            data=_jsonmap(data),
            severity=Severity.WARNING,
            retryable=True,
        )


class InsufficientFunds(VaultError):
    def __init__(self, needed: int, available: int, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.INSUFFICIENT_FUNDS,
            message="insufficient vault balance",
            data=_jsonmap({"needed": needed, "available": available, **data}),
            retryable=False,
        )


class SettlementFailed(VaultError):
    def __init__(self, message: str = "value transfer failed", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.SETTLEMENT,
            message=message,
            data=_jsonmap(data),
            retryable=True,
        )


class Unauthorized(VaultError):
    def __init__(self, caller: int, action: str, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.UNAUTHORIZED,
            message=f"caller is not allowed to {action}",
            data=_jsonmap({"caller": hex(caller), "action": action, **data}),
            retryable=False,
        )


class InvalidState(VaultError):
    """Operation not allowed in the current lifecycle state (paused, emergency…)."""

    def __init__(self, state: str, action: str, **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.INVALID_STATE,
            message=f"cannot {action} while {state}",
            data=_jsonmap({"state": state, "action": action, **data}),
            retryable=False,
        )


class TimelockNotReady(VaultError):
    def __init__(self, message: str = "timelock not ready", **data: Any) -> None:
        super().__init__(
            code=VaultErrorCode.TIMELOCK,
            message=message,
            data=_jsonmap(data),
            retryable=True,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=VaultError)


def wrap(exc: BaseException, *, as_: Type[T] = InternalError, **ctx: Any) -> T:  # type: ignore[assignment]
    """
    Wrap any exception into a VaultError subclass, attaching context.
    If `exc` is already a VaultError, returns a context-enriched copy.
    """
    if isinstance(exc, VaultError):
        return exc.with_context(**ctx)  # type: ignore[return-value]
    err = as_(f"wrapped {type(exc).__name__}: {exc}", **ctx)  # type: ignore[call-arg]
    return err.with_cause(exc)  # type: ignore[return-value]


def _code_str(code: Any) -> str:
    return code.value if isinstance(code, Enum) else str(code)


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    if isinstance(v, Enum):
        return v.value
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "Severity",
    "VaultErrorCode",
    "VaultError",
    "InternalError",
    "ConfigError",
    "SerializationError",
    "StateInvariant",
    "InvalidInput",
    "CapacityExceeded",
    "DuplicateCommitment",
    "NullifierAlreadySpent",
    "UnknownRoot",
    "ProofInvalid",
    "InsufficientFunds",
    "SettlementFailed",
    "Unauthorized",
    "InvalidState",
    "TimelockNotReady",
    "wrap",
]
