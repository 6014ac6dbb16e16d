"""
vault.tests helpers

A small, fast vault (shallow tree, short root history, manual clock) wired to
the `reference` proof backend, plus helpers to run a full deposit → proof
flow without a circuit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from core.config import VaultConfig
from vault.boundary import BackendVerifier, PublicSignals
from vault.machine import VaultStateMachine
from vault.notes import Note
from vault.paths import PathBuilder
from vault.prover import ReferenceProver, prepare_withdrawal
from vault.settlement import LedgerSettlement
from zk.tests import configure_test_logging

configure_test_logging()

OWNER = 0xA11CE
RECIPIENT = 0x00000000000000000000000000000000DEADBEEF
ETHER = 10**18


class ManualClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def small_config(**overrides) -> VaultConfig:
    cfg = VaultConfig(
        depth=overrides.pop("depth", 4),
        root_history_size=overrides.pop("root_history_size", 3),
        min_deposit=overrides.pop("min_deposit", 10**15),
        max_deposit=overrides.pop("max_deposit", 100 * ETHER),
        emergency_delay=overrides.pop("emergency_delay", 3600.0),
        emergency_grace=overrides.pop("emergency_grace", 7200.0),
        proof_protocol="reference",
    )
    if overrides:
        raise TypeError(f"unknown config overrides: {sorted(overrides)}")
    return cfg


@dataclass
class Harness:
    machine: VaultStateMachine
    prover: ReferenceProver
    ledger: LedgerSettlement
    clock: ManualClock
    notes: List[Note] = field(default_factory=list)

    def deposit(self, amount: int = ETHER) -> Note:
        note = Note.new(amount)
        self.machine.deposit(note.commitment, amount, depositor=0xD0)
        self.notes.append(note)
        return note

    def prove(
        self,
        note: Note,
        *,
        recipient: int = RECIPIENT,
        fee: int = 0,
        upto: Optional[int] = None,
    ) -> Tuple[dict, PublicSignals]:
        builder = PathBuilder.from_events(self.machine.events.deposits(), self.machine.config.depth)
        path = builder.path_for_commitment(note.commitment, upto)
        signals, witness = prepare_withdrawal(note, path, recipient, fee)
        return self.prover.prove(signals, witness), signals


def make_harness(**cfg_overrides) -> Harness:
    cfg = small_config(**cfg_overrides)
    prover = ReferenceProver(depth=cfg.depth)
    ledger = LedgerSettlement()
    clock = ManualClock()
    machine = VaultStateMachine(
        cfg,
        BackendVerifier("reference", prover.vk),
        ledger,
        owner=OWNER,
        clock=clock,
        name="test-vault",
    )
    return Harness(machine=machine, prover=prover, ledger=ledger, clock=clock)


__all__ = [
    "OWNER",
    "RECIPIENT",
    "ETHER",
    "ManualClock",
    "small_config",
    "Harness",
    "make_harness",
]
