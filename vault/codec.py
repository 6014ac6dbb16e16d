"""
vault.codec: canonical CBOR snapshots of a vault's state.

Layout (CBOR map, canonical key order):

    {"v": 1, "depth": d, "rootHistory": k, "state": VaultState.to_dict()}

Restoring checks that the snapshot's tree shape matches the configuration it
is loaded under; a mismatch would silently produce different roots.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import cbor2

from core.config import VaultConfig
from core.errors import ConfigError, SerializationError

from .boundary import ProofVerifier
from .events import EventLog
from .machine import Clock, VaultStateMachine
from .settlement import Settlement
from .state import VaultState

SNAPSHOT_VERSION = 1


def encode_state(state_dict: Dict[str, Any], cfg: VaultConfig) -> bytes:
    doc = {
        "v": SNAPSHOT_VERSION,
        "depth": cfg.depth,
        "rootHistory": cfg.root_history_size,
        "state": state_dict,
    }
    return cbor2.dumps(doc, canonical=True)


def decode_state(data: bytes, cfg: VaultConfig) -> VaultState:
    try:
        doc = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError, TypeError) as e:
        raise SerializationError("snapshot is not valid CBOR") from e
    if not isinstance(doc, dict):
        raise SerializationError("snapshot must be a CBOR map")
    if doc.get("v") != SNAPSHOT_VERSION:
        raise SerializationError("unsupported snapshot version", version=doc.get("v"))
    if (doc.get("depth"), doc.get("rootHistory")) != (cfg.depth, cfg.root_history_size):
        raise ConfigError(
            "snapshot tree shape does not match configuration",
            snapshot_depth=doc.get("depth"),
            snapshot_history=doc.get("rootHistory"),
            depth=cfg.depth,
            history=cfg.root_history_size,
        )
    state = doc.get("state")
    if not isinstance(state, dict):
        raise SerializationError("snapshot has no state map")
    return VaultState.from_dict(state)


def snapshot(machine: VaultStateMachine) -> bytes:
    return encode_state(machine.state_dict(), machine.config)


def restore(
    data: bytes,
    config: VaultConfig,
    verifier: ProofVerifier,
    settlement: Settlement,
    *,
    events: Optional[EventLog] = None,
    clock: Optional[Clock] = None,
    name: str = "vault",
) -> VaultStateMachine:
    state = decode_state(data, config)
    kwargs: Dict[str, Any] = {"state": state, "events": events, "name": name}
    if clock is not None:
        kwargs["clock"] = clock
    return VaultStateMachine(config, verifier, settlement, **kwargs)


__all__ = ["SNAPSHOT_VERSION", "encode_state", "decode_state", "snapshot", "restore"]
