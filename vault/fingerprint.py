"""
vault.fingerprint: static identity of an engine build, and registry notices.

A registry identifies legitimate vault instances by a content fingerprint.
The fingerprint covers only static properties: engine version, tree shape,
deposit bounds, the fee divisor, the public-signal contract, the Poseidon
parameter sets and the verifying key. Runtime state (roots, balances) is not
included, so two instances built the same way share it.

The dependency is one-way: the vault pushes an `Announcement` to a
`RegistryNotifier` and reads nothing back.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import cbor2

from core.config import VaultConfig
from core.version import __version__
from zk.verifiers.poseidon import get_params, params_fingerprint

from .boundary import FEE_CAP_DIVISOR, SIGNAL_NAMES

ENGINE_NAME = "shielded-vault"
HASH_PARAM_SETS = ("bn254_t3", "bn254_t4")


def vk_digest(vk: Optional[Mapping[str, Any]]) -> Optional[str]:
    if vk is None:
        return None
    return hashlib.sha3_256(cbor2.dumps(_plain(vk), canonical=True)).hexdigest()


def _plain(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return {str(k): _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj


def fingerprint_material(cfg: VaultConfig, vk: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return {
        "engine": ENGINE_NAME,
        "version": __version__,
        "depth": cfg.depth,
        "rootHistory": cfg.root_history_size,
        "minDeposit": cfg.min_deposit,
        "maxDeposit": cfg.max_deposit,
        "feeCapDivisor": FEE_CAP_DIVISOR,
        "publicSignals": list(SIGNAL_NAMES),
        "protocol": cfg.proof_protocol,
        "poseidon": {name: params_fingerprint(get_params(name)) for name in HASH_PARAM_SETS},
        "vk": vk_digest(vk),
    }


def engine_fingerprint(cfg: VaultConfig, vk: Optional[Mapping[str, Any]] = None) -> str:
    material = fingerprint_material(cfg, vk)
    return hashlib.sha3_256(cbor2.dumps(material, canonical=True)).hexdigest()


@dataclass(frozen=True)
class Announcement:
    instance_id: str
    fingerprint: str
    depth: int
    announced_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instanceId": self.instance_id,
            "fingerprint": self.fingerprint,
            "depth": self.depth,
            "announcedAt": self.announced_at,
        }


@runtime_checkable
class RegistryNotifier(Protocol):
    def announce(self, announcement: Announcement) -> None:
        ...


class RecordingNotifier:
    """Keeps announcements in memory."""

    def __init__(self) -> None:
        self.announcements: List[Announcement] = []

    def announce(self, announcement: Announcement) -> None:
        self.announcements.append(announcement)


def make_announcement(
    instance_id: str,
    cfg: VaultConfig,
    vk: Optional[Mapping[str, Any]] = None,
    *,
    now: Optional[float] = None,
) -> Announcement:
    return Announcement(
        instance_id=instance_id,
        fingerprint=engine_fingerprint(cfg, vk),
        depth=cfg.depth,
        announced_at=time.time() if now is None else now,
    )


__all__ = [
    "ENGINE_NAME",
    "HASH_PARAM_SETS",
    "vk_digest",
    "fingerprint_material",
    "engine_fingerprint",
    "Announcement",
    "RegistryNotifier",
    "RecordingNotifier",
    "make_announcement",
]
