"""Binary SHA-256 Merkle tree over hex leaf hashes.

Leaves keep their insertion order (leaf index = day - 1), they are NOT
sorted. When a level has an odd number of nodes, the last node is paired
with itself. Build and verify must agree on that rule, otherwise proofs
for non-power-of-two leaf counts stop round-tripping, and changing it
invalidates every proof already published.
"""

from __future__ import annotations

from typing import List, Sequence

from .hashing import hash_pair


def build_levels(leaves: Sequence[str]) -> List[List[str]]:
    """Return all tree levels bottom-up; levels[0] are the leaves, levels[-1] is [root]."""
    if not leaves:
        raise ValueError("Cannot build a Merkle tree from zero leaves")

    levels: List[List[str]] = [list(leaves)]
    current = levels[0]
    while len(current) > 1:
        nxt: List[str] = []
        for i in range(0, len(current), 2):
            left = current[i]
            right = current[i + 1] if i + 1 < len(current) else left
            nxt.append(hash_pair(left, right))
        levels.append(nxt)
        current = nxt
    return levels


def merkle_root(levels: Sequence[Sequence[str]]) -> str:
    return levels[-1][0]


def merkle_proof(levels: Sequence[Sequence[str]], index: int) -> List[str]:
    """Sibling hashes from leaf ``index`` up to (not including) the root."""
    if index < 0 or index >= len(levels[0]):
        raise IndexError(f"Leaf index {index} out of range (0..{len(levels[0]) - 1})")

    proof: List[str] = []
    idx = index
    for level in levels[:-1]:
        sibling = idx - 1 if idx % 2 == 1 else idx + 1
        # A lone last node is its own sibling.
        proof.append(level[sibling] if sibling < len(level) else level[idx])
        idx //= 2
    return proof


def recompute_root(leaf: str, proof: Sequence[str], index: int) -> str:
    """
    Replay a proof. Even index: current node is the left operand and the
    sibling the right one; odd index: the reverse.
    """
    node = leaf
    idx = index
    for sibling in proof:
        if idx % 2 == 1:
            node = hash_pair(sibling, node)
        else:
            node = hash_pair(node, sibling)
        idx //= 2
    return node


def verify_proof(leaf: str, proof: Sequence[str], root: str, index: int) -> bool:
    if index < 0:
        return False
    return recompute_root(leaf, proof, index) == root
