"""
Sparse Merkle Tree over Poseidon-hashed Member Commitments
Fixed-depth tree used as the set-membership witness for reaction proofs
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from primitives.poseidon import poseidon_hash2

logger = logging.getLogger(__name__)

TREE_DEPTH = 20


@dataclass(frozen=True)
class MerkleProof:
    """Inclusion path from a leaf to the root"""
    root: int
    leaf_index: int
    path_elements: List[int]
    path_indices: List[int]  # 0 = current node is the left child


@dataclass
class SparseMerkleTree:
    """Sparse Merkle tree that only materializes the occupied prefix of each level"""
    depth: int = TREE_DEPTH
    hasher: Callable[[int, int], int] = poseidon_hash2
    zero_values: List[int] = field(default_factory=list)

    def __post_init__(self):
        if self.depth < 1:
            raise ValueError(f"Tree depth must be positive, got {self.depth}")
        self.zero_values = self._compute_zero_values()

    def _compute_zero_values(self) -> List[int]:
        """Root of an empty subtree at each height, Z[0] = empty leaf"""
        zeros = [0]
        for _ in range(self.depth):
            zeros.append(self.hasher(zeros[-1], zeros[-1]))
        return zeros

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def _check_size(self, leaves: Sequence[int]):
        if len(leaves) > self.capacity:
            raise ValueError(
                f"{len(leaves)} leaves exceed tree capacity {self.capacity}")

    def _next_level(self, level_nodes: List[int], level: int) -> List[int]:
        zero = self.zero_values[level]
        parents = []
        for i in range(0, len(level_nodes), 2):
            left = level_nodes[i]
            right = level_nodes[i + 1] if i + 1 < len(level_nodes) else zero
            parents.append(self.hasher(left, right))
        return parents

    def compute_root(self, leaves: Sequence[int]) -> int:
        """Root over the leaves in order; deterministic for a given list"""
        self._check_size(leaves)
        if not leaves:
            return self.zero_values[self.depth]

        current = list(leaves)
        for level in range(self.depth):
            if len(current) == 1 and level > 0:
                # Fold the lone subtree root against empty siblings
                node = current[0]
                for upper in range(level, self.depth):
                    node = self.hasher(node, self.zero_values[upper])
                return node
            current = self._next_level(current, level)

        return current[0]

    def build_proof(self, leaves: Sequence[int], leaf_index: int) -> MerkleProof:
        """Merkle path for leaves[leaf_index], mirroring compute_root"""
        self._check_size(leaves)
        if not 0 <= leaf_index < len(leaves):
            raise ValueError(
                f"Leaf index {leaf_index} out of range for {len(leaves)} leaves")

        path_elements: List[int] = []
        path_indices: List[int] = []
        current = list(leaves)
        index = leaf_index

        for level in range(self.depth):
            if len(current) == 1 and level > 0:
                # Lone node is always the left child of an empty subtree
                for upper in range(level, self.depth):
                    path_elements.append(self.zero_values[upper])
                    path_indices.append(0)
                break

            sibling_index = index ^ 1
            if sibling_index < len(current):
                path_elements.append(current[sibling_index])
            else:
                path_elements.append(self.zero_values[level])
            path_indices.append(index & 1)

            current = self._next_level(current, level)
            index >>= 1

        root = self.compute_root(leaves)
        return MerkleProof(
            root=root,
            leaf_index=leaf_index,
            path_elements=path_elements,
            path_indices=path_indices,
        )

    def verify_proof(self, leaf: int, path_elements: Sequence[int],
                     path_indices: Sequence[int], root: int) -> bool:
        """Recompute the root from a leaf and its path"""
        if len(path_elements) != self.depth or len(path_indices) != self.depth:
            return False

        current = leaf
        for sibling, position in zip(path_elements, path_indices):
            if position == 0:
                current = self.hasher(current, sibling)
            elif position == 1:
                current = self.hasher(sibling, current)
            else:
                return False
        return current == root
