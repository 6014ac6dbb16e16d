"""
vault.paths: off-line membership path reconstruction.

The vault keeps only the tree frontier, so a withdrawer has to rebuild the
sibling hashes for their leaf from the public deposit log. `PathBuilder`
does that level by level: leaves sorted by index, missing right siblings
padded with `zero[level]`.

Typical client flow:

    builder = PathBuilder.from_events(log.deposits(), depth=20)
    path = builder.path_for_commitment(note.commitment)
    path.require_root(vault_root)      # local check before proving
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from core.errors import InvalidInput, UnknownRoot
from core.logging import get_logger
from zk.verifiers.poseidon import hash2

from .boundary import compute_path_root
from .events import DepositEvent
from .tree import Hasher, compute_zeros

log = get_logger("vault.paths")


def path_indices(index: int, depth: int) -> Tuple[int, ...]:
    """Binary decomposition of a leaf index, least significant level first."""
    return tuple((index >> level) & 1 for level in range(depth))


@dataclass(frozen=True)
class MerklePath:
    leaf_index: int
    leaf: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    root: int

    def compute_root(self, hasher: Hasher = hash2) -> int:
        return compute_path_root(self.leaf, self.path_elements, self.path_indices, hasher)

    def verify(self, hasher: Hasher = hash2) -> bool:
        return self.compute_root(hasher) == self.root

    def require_root(self, expected: int) -> None:
        """Raise UnknownRoot when the locally rebuilt root differs from `expected`."""
        if self.root != expected:
            raise UnknownRoot(
                expected,
                computed=hex(self.root),
                leaf_index=self.leaf_index,
                hint="deposit log is incomplete or from another vault",
            )

    def to_json(self) -> dict:
        return {
            "leafIndex": self.leaf_index,
            "leaf": str(self.leaf),
            "root": str(self.root),
            "pathElements": [str(x) for x in self.path_elements],
            "pathIndices": list(self.path_indices),
        }


class PathBuilder:
    """Rebuilds tree levels from an ordered list of leaves."""

    def __init__(self, leaves: Sequence[int], depth: int, *, hasher: Hasher = hash2) -> None:
        if len(leaves) > (1 << depth):
            raise InvalidInput("more leaves than tree capacity", leaves=len(leaves), depth=depth)
        self.depth = depth
        self.hasher = hasher
        self.zeros = compute_zeros(depth, hasher)
        self.leaves: List[int] = list(leaves)
        self._index: Dict[int, int] = {}
        for i, leaf in enumerate(self.leaves):
            self._index.setdefault(leaf, i)

    @classmethod
    def from_events(
        cls, events: Iterable[DepositEvent], depth: int, *, hasher: Hasher = hash2
    ) -> "PathBuilder":
        ordered = sorted(events, key=lambda e: e.leaf_index)
        for expected, ev in enumerate(ordered):
            if ev.leaf_index != expected:
                raise InvalidInput(
                    "deposit log has a gap or duplicate",
                    expected_index=expected,
                    got_index=ev.leaf_index,
                )
        return cls([ev.commitment for ev in ordered], depth, hasher=hasher)

    def _levels(self, upto: int) -> List[List[int]]:
        levels = [self.leaves[:upto]]
        for level in range(self.depth):
            cur = levels[-1]
            nxt = []
            for i in range(0, len(cur), 2):
                right = cur[i + 1] if i + 1 < len(cur) else self.zeros[level]
                nxt.append(self.hasher(cur[i], right))
            levels.append(nxt)
        return levels

    def root(self, upto: Optional[int] = None) -> int:
        """Root of the tree holding the first `upto` leaves (default: all)."""
        n = len(self.leaves) if upto is None else upto
        if n == 0:
            return self.zeros[self.depth]
        return self._levels(n)[self.depth][0]

    def path(self, leaf_index: int, upto: Optional[int] = None) -> MerklePath:
        n = len(self.leaves) if upto is None else upto
        if not 0 <= n <= len(self.leaves):
            raise InvalidInput("upto out of range", upto=n, leaves=len(self.leaves))
        if not 0 <= leaf_index < n:
            raise InvalidInput("leaf index not in tree", leaf_index=leaf_index, leaves=n)

        levels = self._levels(n)
        elements = []
        idx = leaf_index
        for level in range(self.depth):
            sibling = idx ^ 1
            row = levels[level]
            elements.append(row[sibling] if sibling < len(row) else self.zeros[level])
            idx >>= 1
        path = MerklePath(
            leaf_index=leaf_index,
            leaf=self.leaves[leaf_index],
            path_elements=tuple(elements),
            path_indices=path_indices(leaf_index, self.depth),
            root=levels[self.depth][0],
        )
        log.debug(
            "rebuilt merkle path",
            extra={"leaf_index": leaf_index, "leaves": n, "root": path.root},
        )
        return path

    def path_for_commitment(self, commitment: int, upto: Optional[int] = None) -> MerklePath:
        if commitment not in self._index:
            raise InvalidInput("commitment not found in deposit log", commitment=hex(commitment))
        return self.path(self._index[commitment], upto)


__all__ = ["path_indices", "MerklePath", "PathBuilder"]
