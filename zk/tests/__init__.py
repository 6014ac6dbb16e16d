"""
zk.tests helpers

Lightweight utilities shared by zk/* and vault/* tests.

Exports:
- env_flag(name, default=False) -> bool
- configure_test_logging() -> None
- TrapdoorSetup: a Groth16 "setup" whose toxic waste is kept, so tests can
  produce valid proofs for arbitrary public inputs without a circuit/prover.

Environment toggles:
- ZK_TEST_LOG=1  → enable INFO logging for zk.* / vault.*
"""

from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from zk.verifiers.groth16_bn254 import Proof, VerifyingKey, proof_to_json, vk_to_json
from zk.verifiers.pairing_bn254 import curve_order, g1_generator, g1_mul, g2_generator, g2_mul

# --- Env & logging -------------------------------------------------------------


def env_flag(name: str, default: bool = False) -> bool:
    """Read an environment flag: "1", "true", "yes", "on" → True."""
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on"}


def configure_test_logging(level: int = logging.INFO) -> None:
    """Configure basic logging for zk.* / vault.* loggers when ZK_TEST_LOG is set."""
    if env_flag("ZK_TEST_LOG", False):
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logging.getLogger("zk").setLevel(level)
        logging.getLogger("vault").setLevel(level)


# --- Simulated Groth16 ----------------------------------------------------------


@dataclass
class TrapdoorSetup:
    """
    Groth16 verifying key built from known scalars.

    With alpha, beta, gamma, delta and the IC discrete logs known, a proof for
    any public vector x is A = a·G1, B = b·G2, C = c·G1 where
        c = (a·b − alpha·beta − gamma·(k0 + Σ x_i·k_i)) / delta   (mod r)
    which satisfies the verification equation exactly. Tampering with any x_i
    whose k_i ≠ 0 breaks it.
    """

    n_public: int
    seed: Optional[int] = None
    _rng: random.Random = field(init=False, repr=False)
    alpha: int = field(init=False)
    beta: int = field(init=False)
    gamma: int = field(init=False)
    delta: int = field(init=False)
    ic: List[int] = field(init=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)
        self.alpha, self.beta, self.gamma, self.delta = (self._scalar() for _ in range(4))
        self.ic = [self._scalar() for _ in range(self.n_public + 1)]

    def _scalar(self) -> int:
        return self._rng.randrange(1, curve_order())

    def verifying_key(self) -> VerifyingKey:
        G1, G2 = g1_generator(), g2_generator()
        return VerifyingKey(
            alpha1=g1_mul(G1, self.alpha),
            beta2=g2_mul(G2, self.beta),
            gamma2=g2_mul(G2, self.gamma),
            delta2=g2_mul(G2, self.delta),
            IC=[g1_mul(G1, k) for k in self.ic],
        )

    def vk_json(self) -> dict:
        return vk_to_json(self.verifying_key())

    def prove(self, public: Sequence[int]) -> dict:
        if len(public) != self.n_public:
            raise ValueError(f"expected {self.n_public} public inputs, got {len(public)}")
        r = curve_order()
        s = (self.ic[0] + sum(x * k for x, k in zip(public, self.ic[1:]))) % r
        a, b = self._scalar(), self._scalar()
        c = (a * b - self.alpha * self.beta - self.gamma * s) * pow(self.delta, -1, r) % r
        G1, G2 = g1_generator(), g2_generator()
        return proof_to_json(Proof(A=g1_mul(G1, a), B=g2_mul(G2, b), C=g1_mul(G1, c)))


configure_test_logging()

__all__ = [
    "env_flag",
    "configure_test_logging",
    "TrapdoorSetup",
]
