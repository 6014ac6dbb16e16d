"""
vault.tree: incremental Merkle tree with a bounded root history.

Fixed-depth append-only binary tree over Poseidon(2). Only the *frontier*
is kept: one `filled_subtrees` word per level plus a ring of the last K roots.
Leaves themselves are not stored; membership paths are rebuilt off-line from
the deposit log (see `vault.paths`).

Insertion is split in two steps:

    plan = tree.plan_insert(leaf)   # pure, may raise; touches nothing
    tree.apply(plan)                # plain assignments, cannot fail halfway

so callers running inside a transaction can compute everything first and
commit the frontier, the ring slot and `next_index` together.

Hashing rule (shared with the withdrawal circuit): at each level, an even node
index means the current hash is the *left* child.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.errors import CapacityExceeded, InvalidInput, StateInvariant
from zk.verifiers.field import is_canonical
from zk.verifiers.poseidon import hash2

Hasher = Callable[[int, int], int]


def compute_zeros(depth: int, hasher: Hasher = hash2) -> Tuple[int, ...]:
    """zero[0] = 0, zero[i] = H(zero[i-1], zero[i-1]) for i in 1..depth."""
    zeros = [0]
    for _ in range(depth):
        zeros.append(hasher(zeros[-1], zeros[-1]))
    return tuple(zeros)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class TreeState:
    """Mutable frontier. Owned by exactly one tree/vault."""

    depth: int
    history_size: int
    next_index: int = 0
    filled_subtrees: List[int] = field(default_factory=list)
    roots: List[int] = field(default_factory=list)
    current_root_index: int = 0

    @classmethod
    def empty(cls, depth: int, history_size: int, zeros: Sequence[int]) -> "TreeState":
        roots = [0] * history_size
        roots[0] = zeros[depth]
        return cls(
            depth=depth,
            history_size=history_size,
            filled_subtrees=list(zeros[:depth]),
            roots=roots,
        )

    def copy(self) -> "TreeState":
        return TreeState(
            depth=self.depth,
            history_size=self.history_size,
            next_index=self.next_index,
            filled_subtrees=list(self.filled_subtrees),
            roots=list(self.roots),
            current_root_index=self.current_root_index,
        )

    def restore(self, other: "TreeState") -> None:
        """Overwrite this state in place with `other` (used by rollbacks)."""
        self.depth = other.depth
        self.history_size = other.history_size
        self.next_index = other.next_index
        self.filled_subtrees = list(other.filled_subtrees)
        self.roots = list(other.roots)
        self.current_root_index = other.current_root_index

    def to_dict(self) -> Dict[str, object]:
        return {
            "depth": self.depth,
            "historySize": self.history_size,
            "nextIndex": self.next_index,
            "filledSubtrees": list(self.filled_subtrees),
            "roots": list(self.roots),
            "currentRootIndex": self.current_root_index,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, object]) -> "TreeState":
        st = cls(
            depth=int(d["depth"]),  # type: ignore[arg-type]
            history_size=int(d["historySize"]),  # type: ignore[arg-type]
            next_index=int(d["nextIndex"]),  # type: ignore[arg-type]
            filled_subtrees=[int(x) for x in d["filledSubtrees"]],  # type: ignore[union-attr]
            roots=[int(x) for x in d["roots"]],  # type: ignore[union-attr]
            current_root_index=int(d["currentRootIndex"]),  # type: ignore[arg-type]
        )
        st.check()
        return st

    def check(self) -> None:
        if len(self.filled_subtrees) != self.depth:
            raise StateInvariant("filled_subtrees length != depth", depth=self.depth)
        if len(self.roots) != self.history_size:
            raise StateInvariant("root ring length != history size", size=self.history_size)
        if not 0 <= self.current_root_index < self.history_size:
            raise StateInvariant("root cursor out of range", cursor=self.current_root_index)
        if not 0 <= self.next_index <= (1 << self.depth):
            raise StateInvariant("next_index out of range", next_index=self.next_index)


@dataclass(frozen=True)
class InsertPlan:
    """Everything an insert will write, computed without touching the state."""

    index: int
    leaf: int
    subtree_updates: Tuple[Tuple[int, int], ...]
    root: int
    root_slot: int


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


class IncrementalMerkleTree:
    def __init__(
        self,
        depth: int,
        history_size: int,
        *,
        state: Optional[TreeState] = None,
        hasher: Hasher = hash2,
    ) -> None:
        if depth < 1:
            raise InvalidInput("tree depth must be >= 1", depth=depth)
        if history_size < 1:
            raise InvalidInput("root history size must be >= 1", history_size=history_size)
        self.depth = depth
        self.history_size = history_size
        self.hasher = hasher
        self.zeros = compute_zeros(depth, hasher)
        if state is None:
            state = TreeState.empty(depth, history_size, self.zeros)
        elif (state.depth, state.history_size) != (depth, history_size):
            raise StateInvariant(
                "tree state shape mismatch",
                depth=state.depth,
                history_size=state.history_size,
            )
        self.state = state

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def next_index(self) -> int:
        return self.state.next_index

    def is_full(self) -> bool:
        return self.state.next_index >= self.capacity

    # -- insertion --

    def plan_insert(self, leaf: int) -> InsertPlan:
        if not isinstance(leaf, int) or isinstance(leaf, bool) or not is_canonical(leaf):
            raise InvalidInput("leaf must be a canonical field element")
        st = self.state
        if st.next_index >= self.capacity:
            raise CapacityExceeded(self.capacity, next_index=st.next_index)

        index = st.next_index
        current = leaf
        updates: List[Tuple[int, int]] = []
        for level in range(self.depth):
            if index & 1 == 0:
                updates.append((level, current))
                current = self.hasher(current, self.zeros[level])
            else:
                current = self.hasher(st.filled_subtrees[level], current)
            index >>= 1

        return InsertPlan(
            index=st.next_index,
            leaf=leaf,
            subtree_updates=tuple(updates),
            root=current,
            root_slot=(st.current_root_index + 1) % self.history_size,
        )

    def apply(self, plan: InsertPlan) -> int:
        st = self.state
        if plan.index != st.next_index:
            raise StateInvariant(
                "stale insert plan", planned=plan.index, next_index=st.next_index
            )
        for level, value in plan.subtree_updates:
            st.filled_subtrees[level] = value
        st.roots[plan.root_slot] = plan.root
        st.current_root_index = plan.root_slot
        st.next_index = plan.index + 1
        return plan.index

    def insert(self, leaf: int) -> int:
        return self.apply(self.plan_insert(leaf))

    # -- queries --

    def last_root(self) -> int:
        return self.state.roots[self.state.current_root_index]

    def is_known_root(self, root: int) -> bool:
        if not root:
            return False
        st = self.state
        i = st.current_root_index
        for _ in range(self.history_size):
            if st.roots[i] == root:
                return True
            i = (i - 1) % self.history_size
        return False

    def get_zero(self, level: int) -> int:
        if not 0 <= level <= self.depth:
            raise InvalidInput("level out of range", level=level, depth=self.depth)
        return self.zeros[level]


__all__ = ["Hasher", "compute_zeros", "TreeState", "InsertPlan", "IncrementalMerkleTree"]
