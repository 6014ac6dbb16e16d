"""
vault.journal: undo log over a `VaultState`, with nested checkpoints.

Every write made through the journal records how to undo itself in the top
frame. `commit()` folds the frame into its parent (or drops it at the outer
level); `revert()` replays the undo entries newest first.

    j = Journal(state)
    with j.transaction():
        j.mark_spent(nh)
        ...                     # any exception here restores `state` exactly

Notes
-----
- The journal does not validate business rules; callers check first.
- Outside a transaction every write is refused, so nothing can mutate the
  state without a rollback path.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, List

from core.errors import StateInvariant

from .state import VaultState
from .tree import IncrementalMerkleTree, InsertPlan

Undo = Callable[[], None]


class Journal:
    def __init__(self, state: VaultState) -> None:
        self.state = state
        self._frames: List[List[Undo]] = []

    # -- checkpoints --

    @property
    def depth(self) -> int:
        return len(self._frames)

    def begin(self) -> None:
        self._frames.append([])

    def commit(self) -> None:
        if not self._frames:
            raise StateInvariant("commit without begin")
        top = self._frames.pop()
        if self._frames:
            self._frames[-1].extend(top)

    def revert(self) -> None:
        if not self._frames:
            raise StateInvariant("revert without begin")
        top = self._frames.pop()
        for undo in reversed(top):
            undo()

    @contextmanager
    def transaction(self) -> Iterator["Journal"]:
        self.begin()
        try:
            yield self
        except BaseException:
            self.revert()
            raise
        self.commit()

    def _record(self, undo: Undo) -> None:
        if not self._frames:
            raise StateInvariant("state write outside a transaction")
        self._frames[-1].append(undo)

    # -- writes --

    def set(self, attr: str, value: Any) -> None:
        old = getattr(self.state, attr)
        self._record(lambda: setattr(self.state, attr, old))
        setattr(self.state, attr, value)

    def add(self, attr: str, delta: int) -> None:
        self.set(attr, getattr(self.state, attr) + delta)

    def mark_spent(self, nullifier_hash: int) -> None:
        spent = self.state.spent
        if nullifier_hash in spent:
            raise StateInvariant("nullifier already in spent set")
        self._record(lambda: spent.discard(nullifier_hash))
        spent.add(nullifier_hash)

    def mark_seen(self, commitment: int) -> None:
        seen = self.state.commitments
        if commitment in seen:
            raise StateInvariant("commitment already in seen set")
        self._record(lambda: seen.discard(commitment))
        seen.add(commitment)

    def insert(self, tree: IncrementalMerkleTree, plan: InsertPlan) -> int:
        if tree.state is not self.state.tree:
            raise StateInvariant("tree is not bound to this state")
        before = self.state.tree.copy()
        self._record(lambda: self.state.tree.restore(before))
        return tree.apply(plan)


__all__ = ["Journal"]
