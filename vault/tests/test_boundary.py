from dataclasses import replace

import pytest

from core.errors import ConfigError, InvalidInput, ProofInvalid
from vault.boundary import (
    ADDRESS_LIMIT,
    SIGNAL_NAMES,
    BackendVerifier,
    Groth16Proof,
    PrivateWitness,
    PublicSignals,
    check_relations,
    circuit_inputs,
    compute_path_root,
    fee_cap,
)
from vault.notes import Note
from vault.paths import PathBuilder
from vault.prover import prepare_withdrawal
from zk.tests import TrapdoorSetup
from zk.verifiers import reference
from zk.verifiers.field import R

DEPTH = 4
RECIPIENT = 0xDEADBEEF


@pytest.fixture
def valid():
    notes = [Note.new(10**18) for _ in range(3)]
    builder = PathBuilder([n.commitment for n in notes], DEPTH)
    path = builder.path(1)
    return prepare_withdrawal(notes[1], path, RECIPIENT, fee=10**16)


def _relation(excinfo) -> int:
    return excinfo.value.data["relation"]


def test_fee_cap_truncates() -> None:
    assert fee_cap(99) == 0
    assert fee_cap(100) == 1
    assert fee_cap(199) == 1
    assert fee_cap(10**18) == 10**16


def test_signal_order_is_fixed() -> None:
    s = PublicSignals.from_sequence(["1", "0x2", 3, 4, 5])
    assert s == PublicSignals(nullifier_hash=1, root=2, recipient=3, protocol_fee=4, amount=5)
    assert s.to_list() == [1, 2, 3, 4, 5]
    assert SIGNAL_NAMES == ("nullifierHash", "root", "recipient", "protocolFee", "amount")


@pytest.mark.parametrize(
    "fields",
    [
        {"protocol_fee": -5},
        {"amount": R},
        {"root": -1},
        {"recipient": True},
        {"nullifier_hash": "7"},
    ],
)
def test_directly_built_signals_must_be_canonical(fields) -> None:
    base = dict(nullifier_hash=1, root=2, recipient=3, protocol_fee=0, amount=100)
    with pytest.raises(InvalidInput):
        PublicSignals(**{**base, **fields})
    with pytest.raises(InvalidInput):
        replace(PublicSignals(**base), **fields)


@pytest.mark.parametrize("bad", [[1, 2, 3, 4], [1, 2, 3, 4, 5, 6], [1, 2, 3, 4, R], "12345", [1, 2, 3, 4, "x"]])
def test_malformed_signals_are_invalid_input(bad) -> None:
    with pytest.raises(InvalidInput):
        PublicSignals.from_sequence(bad)


def test_valid_witness_satisfies_relations(valid) -> None:
    signals, witness = valid
    check_relations(signals, witness, depth=DEPTH)


def test_relation_2_nullifier_hash(valid) -> None:
    signals, witness = valid
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(signals, nullifier_hash=signals.nullifier_hash ^ 1), witness)
    assert _relation(ei) == 2


def test_relations_1_and_3_bind_amount_and_root(valid) -> None:
    signals, witness = valid
    # a different amount changes the commitment, so the path no longer reaches root
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(signals, amount=signals.amount + 1), witness)
    assert _relation(ei) == 3
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(signals, root=signals.root ^ 1), witness)
    assert _relation(ei) == 3

    flipped = list(witness.path_indices)
    flipped[0] ^= 1
    with pytest.raises(ProofInvalid) as ei:
        check_relations(signals, replace(witness, path_indices=tuple(flipped)))
    assert _relation(ei) == 3

    with pytest.raises(ProofInvalid) as ei:
        check_relations(signals, replace(witness, path_indices=(2,) + witness.path_indices[1:]))
    assert _relation(ei) == 3

    with pytest.raises(ProofInvalid) as ei:
        check_relations(signals, witness, depth=DEPTH + 1)
    assert _relation(ei) == 3


def test_relation_4_amount_positive(valid) -> None:
    signals, witness = valid
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(signals, amount=0, protocol_fee=0), witness)
    assert _relation(ei) == 4


def test_relation_5_fee_cap(valid) -> None:
    signals, witness = valid
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(signals, protocol_fee=fee_cap(signals.amount) + 1), witness)
    assert _relation(ei) == 5


def test_relation_6_recipient_width(valid) -> None:
    signals, witness = valid
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(signals, recipient=ADDRESS_LIMIT), witness)
    assert _relation(ei) == 6


def test_relation_7_nonzero_secrets(valid) -> None:
    signals, witness = valid
    for w in (replace(witness, secret=0), replace(witness, nullifier=0)):
        with pytest.raises(ProofInvalid) as ei:
            check_relations(signals, w)
        assert _relation(ei) == 7


def test_compute_path_root_shapes() -> None:
    with pytest.raises(InvalidInput):
        compute_path_root(1, [2, 3], [0])
    with pytest.raises(InvalidInput):
        compute_path_root(1, [2], [5])


def test_circuit_inputs_layout(valid) -> None:
    signals, witness = valid
    doc = circuit_inputs(signals, witness)
    assert list(doc)[:5] == list(SIGNAL_NAMES)
    assert len(doc["pathElements"]) == len(doc["pathIndices"]) == DEPTH
    assert all(isinstance(v, str) for v in doc["pathElements"])


def test_witness_repr_hides_secrets(valid) -> None:
    _, witness = valid
    assert str(witness.secret) not in repr(witness)


def test_calldata_swaps_g2_coordinates() -> None:
    proof = Groth16Proof(a=(1, 2), b=((3, 4), (5, 6)), c=(7, 8))
    a, b, c = proof.to_calldata()
    assert a == [1, 2] and c == [7, 8]
    assert b == [[4, 3], [6, 5]]
    assert Groth16Proof.from_calldata(a, b, c) == proof

    js = proof.to_snarkjs()
    assert js["pi_b"][0] == ["3", "4"]
    assert Groth16Proof.from_snarkjs(js) == proof


def test_malformed_proofs() -> None:
    with pytest.raises(InvalidInput):
        Groth16Proof.from_calldata([1], [[1, 2], [3, 4]], [5, 6])
    with pytest.raises(InvalidInput):
        Groth16Proof.from_snarkjs({"pi_a": [1, 2]})


def test_backend_verifier_checks_public_count() -> None:
    with pytest.raises(ConfigError):
        BackendVerifier("reference", reference.keygen(4))
    vk = reference.keygen(5)
    v = BackendVerifier("reference", vk)
    public = [1, 2, 3, 4, 5]
    assert v.verify(reference.attest(public, vk), public)
    assert not v.verify(reference.attest(public, vk), [1, 2, 3, 4, 6])


def test_groth16_verifier_rejects_corrupt_vk_at_construction() -> None:
    vk = TrapdoorSetup(5, seed=3).vk_json()
    BackendVerifier("groth16", vk)

    off_curve = dict(vk, IC=[vk["IC"][0], ["1", "3", "1"], *vk["IC"][2:]])
    with pytest.raises(ConfigError):
        BackendVerifier("groth16", off_curve)
    missing = {k: v for k, v in vk.items() if k != "vk_delta_2"}
    with pytest.raises(ConfigError):
        BackendVerifier("groth16", missing)
    with pytest.raises(ConfigError):
        BackendVerifier("groth16", dict(vk, vk_alpha_1=7))


def test_witness_type_is_frozen() -> None:
    w = PrivateWitness(secret=1, nullifier=2, path_elements=(0,), path_indices=(0,))
    with pytest.raises(AttributeError):
        w.secret = 5  # type: ignore[misc]
