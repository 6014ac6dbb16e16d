from pathlib import Path

import pytest

from core.errors import InvalidInput, SerializationError
from vault import notes
from vault.notes import Note
from zk.verifiers.field import R
from zk.verifiers.poseidon import hash2, hash3


def test_generate_gives_distinct_nonzero_elements() -> None:
    seen = set()
    for _ in range(16):
        s, n = notes.generate()
        assert 0 < s < R and 0 < n < R
        seen.update((s, n))
    assert len(seen) == 32


def test_derivations_use_the_right_arity() -> None:
    assert notes.commitment(3, 5, 7) == hash3(3, 5, 7)
    assert notes.nullifier_hash(3, 5) == hash2(3, 5)
    note = Note(secret=3, nullifier=5, amount=7)
    assert note.commitment == hash3(3, 5, 7)
    assert note.nullifier_hash == hash2(3, 5)


def test_commitment_binds_amount() -> None:
    assert notes.commitment(3, 5, 7) != notes.commitment(3, 5, 8)


@pytest.mark.parametrize("secret,nullifier", [(0, 5), (3, 0), (R, 5), (3, -1)])
def test_zero_or_non_canonical_secrets_rejected(secret: int, nullifier: int) -> None:
    with pytest.raises(InvalidInput):
        notes.commitment(secret, nullifier, 7)
    with pytest.raises(InvalidInput):
        Note(secret=secret, nullifier=nullifier, amount=7)


def test_amount_must_be_positive() -> None:
    with pytest.raises(InvalidInput):
        Note(secret=3, nullifier=5, amount=0)


def test_json_roundtrip_and_commitment_check() -> None:
    note = Note.new(10**18, depositor=0xD0)
    doc = note.to_json()
    assert doc["commitment"] == str(note.commitment)
    assert Note.from_json(doc) == note

    doc["commitment"] = str(note.commitment + 1)
    with pytest.raises(InvalidInput):
        Note.from_json(doc)


def test_malformed_notes() -> None:
    with pytest.raises(SerializationError):
        Note.from_json({"secret": "1", "nullifier": "2"})
    with pytest.raises(SerializationError):
        Note.from_json({"secret": "xyz", "nullifier": "2", "amount": "3"})
    with pytest.raises(SerializationError):
        Note.from_json({"version": 9, "secret": "1", "nullifier": "2", "amount": "3"})


def test_save_and_load(tmp_path: Path) -> None:
    note = Note.new(5 * 10**17)
    path = note.save(tmp_path / "note.json")
    assert Note.load(path) == note

    (tmp_path / "bad.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(SerializationError):
        Note.load(tmp_path / "bad.json")


def test_repr_hides_secrets() -> None:
    note = Note.new(10**18)
    text = repr(note)
    assert str(note.secret) not in text
    assert str(note.nullifier) not in text
