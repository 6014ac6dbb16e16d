# -*- coding: utf-8 -*-
"""
Property tests for the accumulator, the undo journal and the fee relation.

1) Incremental tree vs. a naive full rebuild
   - after any insertion sequence the frontier root equals the root of the
     complete tree with unused leaves set to zero
   - exactly the last K roots are known

2) Journal laws
   - begin → writes → revert ⇒ state equals baseline
   - nested: inner revert keeps outer writes

3) Fee cap
   - fee == amount // 100 satisfies the fee relation, one more violates it
"""
from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

import pytest
from hypothesis import settings

from core.errors import ProofInvalid
from tests.property import amounts, field_elements, given, leaves, st
from vault.boundary import check_relations, fee_cap
from vault.journal import Journal
from vault.notes import Note
from vault.paths import PathBuilder
from vault.prover import prepare_withdrawal
from vault.state import VaultState
from vault.tree import IncrementalMerkleTree
from zk.verifiers.poseidon import hash2

DEPTH = 3


def _naive_root(ls: Sequence[int], depth: int) -> int:
    level: List[int] = list(ls) + [0] * ((1 << depth) - len(ls))
    for _ in range(depth):
        level = [hash2(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


@given(leaves(max_size=1 << DEPTH))
def test_incremental_root_matches_full_rebuild(ls: List[int]) -> None:
    tree = IncrementalMerkleTree(DEPTH, 4)
    for leaf in ls:
        tree.insert(leaf)
    assert tree.last_root() == _naive_root(ls, DEPTH)
    assert tree.next_index == len(ls)


@given(leaves(min_size=1, max_size=1 << DEPTH), st.integers(min_value=1, max_value=5))
def test_exactly_last_k_roots_are_known(ls: List[int], k: int) -> None:
    tree = IncrementalMerkleTree(DEPTH, k)
    roots = [tree.last_root()]
    for leaf in ls:
        tree.insert(leaf)
        roots.append(tree.last_root())
    recent = set(roots[-k:])
    for r in roots:
        assert tree.is_known_root(r) == (r in recent)


@given(leaves(max_size=6), leaves(min_size=1, max_size=2), field_elements(1))
def test_revert_restores_baseline(base: List[int], extra: List[int], nh: int) -> None:
    tree = IncrementalMerkleTree(DEPTH, 3)
    state = VaultState(tree=tree.state, owner=1)
    j = Journal(state)
    with j.transaction():
        for leaf in base:
            j.insert(tree, tree.plan_insert(leaf))
        j.add("pool_balance", len(base))
    baseline = state.to_dict()

    j.begin()
    j.mark_spent(nh)
    for leaf in extra:
        j.insert(tree, tree.plan_insert(leaf))
    j.add("pool_balance", 7)
    j.revert()
    assert state.to_dict() == baseline


@given(st.integers(min_value=0, max_value=10), st.integers(min_value=0, max_value=10))
def test_inner_revert_keeps_outer_writes(outer: int, inner: int) -> None:
    state = VaultState(tree=IncrementalMerkleTree(DEPTH, 3).state, owner=1)
    j = Journal(state)
    j.begin()
    j.add("deposit_count", outer)
    j.begin()
    j.add("deposit_count", inner)
    j.revert()
    j.commit()
    assert state.deposit_count == outer


@settings(max_examples=25)
@given(amount=amounts(min_value=1, max_value=10**21))
def test_fee_cap_boundary(amount: int) -> None:
    # amount is bound to the commitment, so pick a note for this exact amount
    note = Note.new(amount)
    path = PathBuilder([note.commitment], DEPTH).path(0)
    s, w = prepare_withdrawal(note, path, 0xBEEF, fee_cap(amount))
    check_relations(s, w, depth=DEPTH)
    with pytest.raises(ProofInvalid) as ei:
        check_relations(replace(s, protocol_fee=fee_cap(amount) + 1), w)
    assert ei.value.data["relation"] == 5


@given(amounts(min_value=1, max_value=10**24))
def test_fee_cap_is_floor_of_one_percent(amount: int) -> None:
    cap = fee_cap(amount)
    assert cap * 100 <= amount < (cap + 1) * 100
