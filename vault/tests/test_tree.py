import pytest

from core.errors import CapacityExceeded, InvalidInput, StateInvariant
from vault.paths import PathBuilder
from vault.tree import IncrementalMerkleTree, TreeState, compute_zeros
from zk.verifiers.field import R
from zk.verifiers.poseidon import hash2

LEAVES = [11, 22, 33, 44, 55, 66, 77]


def test_zero_chain() -> None:
    zeros = compute_zeros(8)
    assert zeros[0] == 0
    assert zeros[1] == 14744269619966411208579211824598458697587494354926760081771325075741142829156
    for i in range(1, 9):
        assert zeros[i] == hash2(zeros[i - 1], zeros[i - 1])

    tree = IncrementalMerkleTree(8, 4)
    assert [tree.get_zero(i) for i in range(9)] == list(zeros)
    with pytest.raises(InvalidInput):
        tree.get_zero(9)


def test_empty_tree_root_is_top_zero() -> None:
    tree = IncrementalMerkleTree(5, 3)
    assert tree.last_root() == tree.zeros[5]
    assert tree.is_known_root(tree.zeros[5])
    assert not tree.is_known_root(0)


def test_insert_returns_indices_and_matches_full_rebuild() -> None:
    tree = IncrementalMerkleTree(4, 30)
    for i, leaf in enumerate(LEAVES):
        assert tree.insert(leaf) == i
        assert tree.last_root() == PathBuilder(LEAVES[: i + 1], 4).root()
    assert tree.next_index == len(LEAVES)


def test_capacity_boundary() -> None:
    tree = IncrementalMerkleTree(3, 4)
    for leaf in range(1, 9):
        tree.insert(leaf)
    assert tree.is_full()
    before = tree.state.copy()
    with pytest.raises(CapacityExceeded):
        tree.insert(9)
    assert tree.state == before


def test_root_history_evicts_oldest() -> None:
    tree = IncrementalMerkleTree(4, 3)
    roots = []
    for leaf in LEAVES[:5]:
        tree.insert(leaf)
        roots.append(tree.last_root())

    for r in roots[-3:]:
        assert tree.is_known_root(r)
    for r in roots[:2]:
        assert not tree.is_known_root(r)
    # the empty-tree root lived in slot 0 and has been overwritten too
    assert not tree.is_known_root(tree.zeros[4])


def test_plan_is_pure_and_single_use() -> None:
    tree = IncrementalMerkleTree(4, 3)
    tree.insert(1)
    before = tree.state.copy()
    plan = tree.plan_insert(2)
    assert tree.plan_insert(2) == plan
    assert tree.state == before

    tree.apply(plan)
    assert tree.last_root() == plan.root
    with pytest.raises(StateInvariant):
        tree.apply(plan)


def test_rejects_non_canonical_leaf() -> None:
    tree = IncrementalMerkleTree(4, 3)
    for bad in (R, -1, True, "5"):
        with pytest.raises(InvalidInput):
            tree.insert(bad)  # type: ignore[arg-type]
    assert tree.next_index == 0


def test_state_roundtrip_and_shape_checks() -> None:
    tree = IncrementalMerkleTree(4, 3)
    for leaf in LEAVES[:3]:
        tree.insert(leaf)
    restored = TreeState.from_dict(tree.state.to_dict())
    assert restored == tree.state

    again = IncrementalMerkleTree(4, 3, state=restored)
    assert again.last_root() == tree.last_root()
    with pytest.raises(StateInvariant):
        IncrementalMerkleTree(5, 3, state=restored)

    broken = tree.state.to_dict()
    broken["roots"] = broken["roots"][:-1]
    with pytest.raises(StateInvariant):
        TreeState.from_dict(broken)


def test_restore_in_place_keeps_tree_binding() -> None:
    tree = IncrementalMerkleTree(4, 3)
    tree.insert(1)
    saved = tree.state.copy()
    tree.insert(2)
    tree.state.restore(saved)
    assert tree.next_index == 1
    assert tree.insert(2) == 1
