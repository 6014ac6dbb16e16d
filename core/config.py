"""
shielded-vault core configuration loader.

Goals
-----
- Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (VAULT_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)
- A single typed dataclass with validation; invalid values raise ConfigError.

This module configures only *engine* concerns:
  - accumulator geometry (depth, root history window)
  - deposit/withdraw bounds
  - emergency-pause timelock (delay, grace window)
  - proof backend (protocol name, verifying key location)
  - Poseidon parameter location and expected fingerprints
  - logging
"""

from __future__ import annotations

import json
import os
import re
import sys
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.errors import ConfigError

# ------------------------------
# Defaults & helpers
# ------------------------------

DEFAULT_DEPTH = 20
DEFAULT_ROOT_HISTORY = 30
MAX_DEPTH = 32

# Value bounds in base units (1e18 base units per whole unit).
DEFAULT_MIN_DEPOSIT = 10**15
DEFAULT_MAX_DEPOSIT = 100 * 10**18

DEFAULT_EMERGENCY_DELAY = 24 * 3600.0
DEFAULT_EMERGENCY_GRACE = 7 * 24 * 3600.0

SUPPORTED_PROTOCOLS = ("groth16", "reference")

ENV_PREFIX = "VAULT_"


def _expand(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$", re.IGNORECASE)


def _parse_duration(value: Any) -> float:
    """
    Parse a tiny duration language into seconds.
      30 / "30" -> 30s
      "250ms" -> 0.25s
      "2s", "5m", "3h", "1d"
    """
    if isinstance(value, (int, float)):
        return float(value)
    v = str(value).strip().lower()
    if v.endswith("ms"):
        return float(v[:-2]) / 1000.0
    m = _DURATION_RE.match(v)
    if not m:
        raise ConfigError("invalid duration", value=value)
    mult = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}[m.group(2).lower()]
    return float(m.group(1)) * mult


def _parse_int(name: str, v: Any) -> int:
    if isinstance(v, bool):
        raise ConfigError(f"{name} must be int", value=v)
    if isinstance(v, int):
        return v
    try:
        return int(str(v).strip().replace("_", ""), 0)
    except ValueError as e:
        raise ConfigError(f"{name} must be int", value=v).with_cause(e)


def _env(name: str) -> Optional[str]:
    v = os.environ.get(ENV_PREFIX + name)
    return v if v not in (None, "") else None


# ------------------------------
# Typed configuration model
# ------------------------------


@dataclass
class VaultConfig:
    depth: int = DEFAULT_DEPTH
    root_history_size: int = DEFAULT_ROOT_HISTORY
    min_deposit: int = DEFAULT_MIN_DEPOSIT
    max_deposit: int = DEFAULT_MAX_DEPOSIT
    emergency_delay: float = DEFAULT_EMERGENCY_DELAY
    emergency_grace: float = DEFAULT_EMERGENCY_GRACE
    proof_protocol: str = "groth16"
    vk_path: Optional[Path] = None
    poseidon_params_dir: Optional[Path] = None
    # name -> expected sha3-256 hex of the parameter set (see zk.verifiers.poseidon.params_fingerprint)
    poseidon_fingerprints: Dict[str, str] = field(default_factory=dict)
    log_level: str = "INFO"
    log_format: str = ""  # "json" | "text" | "" (auto)
    log_file: Optional[Path] = None

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def validate(self) -> None:
        if not (1 <= self.depth <= MAX_DEPTH):
            raise ConfigError("depth out of range", depth=self.depth, max=MAX_DEPTH)
        if self.root_history_size < 1:
            raise ConfigError("root_history_size must be >= 1", value=self.root_history_size)
        if self.min_deposit <= 0:
            raise ConfigError("min_deposit must be positive", value=self.min_deposit)
        if self.max_deposit < self.min_deposit:
            raise ConfigError(
                "max_deposit must be >= min_deposit",
                min_deposit=self.min_deposit,
                max_deposit=self.max_deposit,
            )
        if self.emergency_delay < 0 or self.emergency_grace <= 0:
            raise ConfigError(
                "emergency delay must be >= 0 and grace > 0",
                delay=self.emergency_delay,
                grace=self.emergency_grace,
            )
        if self.proof_protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigError(
                "unsupported proof protocol",
                protocol=self.proof_protocol,
                supported=list(SUPPORTED_PROTOCOLS),
            )
        for name, fp in self.poseidon_fingerprints.items():
            h = fp.lower().removeprefix("0x")
            if not re.fullmatch(r"[0-9a-f]{64}", h):
                raise ConfigError("poseidon fingerprint must be 32-byte hex", name=name, value=fp)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {k: (str(v) if isinstance(v, Path) else v) for k, v in d.items()}


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError("config file not found", path=str(path))
    suffix = path.suffix.lower()
    with path.open("rb") as f:
        if suffix in {".toml", ".tml"}:
            raw = tomllib.load(f)
        elif suffix == ".json":
            raw = json.load(f)
        else:
            raise ConfigError("unsupported config format, use .toml or .json", suffix=suffix)
    # Accept either a flat document or a [vault] table.
    if isinstance(raw.get("vault"), dict):
        return dict(raw["vault"])
    return dict(raw)


def _from_env() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, env_name in (
        ("depth", "DEPTH"),
        ("root_history_size", "ROOT_HISTORY"),
        ("min_deposit", "MIN_DEPOSIT"),
        ("max_deposit", "MAX_DEPOSIT"),
        ("emergency_delay", "EMERGENCY_DELAY"),
        ("emergency_grace", "EMERGENCY_GRACE"),
        ("proof_protocol", "PROOF_PROTOCOL"),
        ("vk_path", "VK_PATH"),
        ("poseidon_params_dir", "POSEIDON_DIR"),
        ("log_level", "LOG_LEVEL"),
        ("log_format", "LOG_FORMAT"),
        ("log_file", "LOG_FILE"),
    ):
        v = _env(env_name)
        if v is not None:
            out[key] = v
    return out


_PATH_KEYS = ("vk_path", "poseidon_params_dir", "log_file")


def _coerce(raw: Dict[str, Any]) -> VaultConfig:
    known = {f.name for f in fields(VaultConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError("unknown config keys", keys=unknown)

    cfg = VaultConfig()
    for key, value in raw.items():
        if value is None:
            # Only optional paths may be cleared; other keys keep their defaults.
            if key in _PATH_KEYS:
                setattr(cfg, key, None)
            continue
        if key in ("depth", "root_history_size", "min_deposit", "max_deposit"):
            setattr(cfg, key, _parse_int(key, value))
        elif key in ("emergency_delay", "emergency_grace"):
            setattr(cfg, key, _parse_duration(value))
        elif key in _PATH_KEYS:
            setattr(cfg, key, _expand(value))
        elif key == "poseidon_fingerprints":
            if not isinstance(value, dict):
                raise ConfigError("poseidon_fingerprints must be a table", value=value)
            cfg.poseidon_fingerprints = {str(k): str(v) for k, v in value.items()}
        else:
            setattr(cfg, key, str(value).strip())
    return cfg


# ------------------------------
# Main loader
# ------------------------------


def load(config_file: Optional[str | Path] = None, **overrides: Any) -> VaultConfig:
    """
    Load the engine configuration.

    Precedence: overrides > env > file > defaults.

    Parameters
    ----------
    config_file : str | Path | None
        Optional path to a TOML or JSON file. Keys may live at top level or
        under a `[vault]` table:
          depth, root_history_size, min_deposit, max_deposit,
          emergency_delay, emergency_grace, proof_protocol, vk_path,
          poseidon_params_dir, poseidon_fingerprints, log_level, log_format, log_file
    overrides : Any
        Keyword overrides, e.g. load(depth=4, root_history_size=3)
    """
    merged: Dict[str, Any] = {}
    if config_file:
        merged.update(_load_file(_expand(config_file)))
    merged.update(_from_env())
    merged.update(overrides)

    cfg = _coerce(merged)
    cfg.validate()
    return cfg


# ------------------------------
# CLI helper
# ------------------------------


def main(argv: List[str] | None = None) -> int:
    """
    CLI usage:

        python -m core.config                      # load defaults/env; print JSON
        python -m core.config path/to/vault.toml   # load file; print JSON
    """
    argv = list(argv if argv is not None else sys.argv[1:])
    path = argv[0] if argv else None
    try:
        cfg = load(path)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2
    print(json.dumps(cfg.to_dict(), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
