import cbor2
import pytest

from core.errors import ConfigError, NullifierAlreadySpent, SerializationError
from vault import codec
from vault.boundary import BackendVerifier
from vault.settlement import LedgerSettlement
from vault.tests import ETHER, make_harness, small_config


def test_snapshot_restores_everything() -> None:
    h = make_harness()
    notes = [h.deposit() for _ in range(3)]
    proof, signals = h.prove(notes[1])
    h.machine.withdraw(proof, signals)
    h.machine.request_emergency_pause(0xA11CE)

    data = codec.snapshot(h.machine)
    assert codec.snapshot(h.machine) == data

    ledger = LedgerSettlement()
    restored = codec.restore(
        data,
        h.machine.config,
        BackendVerifier("reference", h.prover.vk),
        ledger,
        clock=h.clock,
    )
    assert restored.statistics() == h.machine.statistics()
    assert restored.state.emergency_eta == h.machine.state.emergency_eta
    assert restored.get_last_root() == h.machine.get_last_root()
    assert restored.is_committed(notes[2].commitment)
    with pytest.raises(NullifierAlreadySpent):
        restored.withdraw(proof, signals)

    restored.deposit(0x5151, ETHER)
    assert restored.statistics().next_index == 4
    assert h.machine.statistics().next_index == 3


def test_shape_mismatch_is_config_error() -> None:
    h = make_harness()
    data = codec.snapshot(h.machine)
    with pytest.raises(ConfigError):
        codec.decode_state(data, small_config(depth=5))
    with pytest.raises(ConfigError):
        codec.decode_state(data, small_config(root_history_size=4))


def test_corrupt_snapshots() -> None:
    cfg = small_config()
    with pytest.raises(SerializationError):
        codec.decode_state(b"\xff\x00garbage", cfg)
    with pytest.raises(SerializationError):
        codec.decode_state(cbor2.dumps([1, 2, 3]), cfg)
    with pytest.raises(SerializationError):
        codec.decode_state(cbor2.dumps({"v": 99}), cfg)
    with pytest.raises(SerializationError):
        codec.decode_state(cbor2.dumps({"v": 1, "depth": 4, "rootHistory": 3, "state": {"owner": 1}}), cfg)
