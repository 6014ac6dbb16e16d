"""
vault.bootstrap: bring a vault up from a `VaultConfig`.

Order matters: the hash parameters must be loaded (and checked against any
pinned fingerprints) before a tree is built, because the zero table and every
root depend on them.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional

from core.config import VaultConfig
from core.errors import ConfigError
from core.logging import get_logger
from zk.verifiers.poseidon import get_params, load_params_dir, params_fingerprint

from .boundary import BackendVerifier, ProofVerifier
from .fingerprint import HASH_PARAM_SETS
from .machine import Clock, VaultStateMachine
from .settlement import Settlement

log = get_logger("vault.bootstrap")


def load_hash_params(cfg: VaultConfig) -> Dict[str, str]:
    """Load Poseidon parameter files and enforce pinned fingerprints. Returns name → fingerprint."""
    if cfg.poseidon_params_dir is not None:
        if not Path(cfg.poseidon_params_dir).is_dir():
            raise ConfigError("poseidon_params_dir is not a directory", path=str(cfg.poseidon_params_dir))
        try:
            load_params_dir(cfg.poseidon_params_dir)
        except (OSError, ValueError, KeyError) as e:
            raise ConfigError(
                "cannot load poseidon parameters", path=str(cfg.poseidon_params_dir), reason=str(e)
            ) from e
    else:
        log.debug("using built-in circomlib poseidon parameters")

    names = sorted(set(HASH_PARAM_SETS) | set(cfg.poseidon_fingerprints))
    fingerprints: Dict[str, str] = {}
    for name in names:
        try:
            fingerprints[name] = params_fingerprint(get_params(name))
        except KeyError as e:
            raise ConfigError("poseidon parameter set not registered", name=name) from e

    for name, pinned in cfg.poseidon_fingerprints.items():
        expected = pinned.lower().removeprefix("0x")
        if fingerprints[name] != expected:
            raise ConfigError(
                "poseidon parameters do not match pinned fingerprint",
                name=name,
                expected=expected,
                actual=fingerprints[name],
            )
    return fingerprints


def build_verifier(cfg: VaultConfig) -> BackendVerifier:
    if cfg.vk_path is None:
        raise ConfigError("vk_path is required to verify withdrawals")
    return BackendVerifier.from_file(cfg.proof_protocol, cfg.vk_path)


def write_vk(vk: dict, path: Path) -> Path:
    path.write_text(json.dumps(vk, indent=2) + "\n", encoding="utf-8")
    return path


def open_vault(
    cfg: VaultConfig,
    settlement: Settlement,
    *,
    owner: int,
    verifier: Optional[ProofVerifier] = None,
    clock: Optional[Clock] = None,
    name: str = "vault",
) -> VaultStateMachine:
    cfg.validate()
    fps = load_hash_params(cfg)
    if verifier is None:
        verifier = build_verifier(cfg)
    machine = (
        VaultStateMachine(cfg, verifier, settlement, owner=owner, clock=clock, name=name)
        if clock is not None
        else VaultStateMachine(cfg, verifier, settlement, owner=owner, name=name)
    )
    log.info(
        "vault opened",
        extra={"vault": name, "depth": cfg.depth, "protocol": cfg.proof_protocol, "poseidon": fps},
    )
    return machine


__all__ = ["load_hash_params", "build_verifier", "write_vk", "open_vault"]
