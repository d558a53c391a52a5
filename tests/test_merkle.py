"""Tests for the Merkle tree and proofs."""

import pytest

from santa_gifts.hashing import hash_pair, sha256_hex
from santa_gifts.merkle import build_levels, merkle_proof, merkle_root, recompute_root, verify_proof


def _leaves(n: int) -> list[str]:
    return [sha256_hex(f"leaf-{i}") for i in range(n)]


class TestBuild:
    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_levels([])

    def test_single_leaf_is_root(self) -> None:
        leaves = _leaves(1)
        levels = build_levels(leaves)
        assert merkle_root(levels) == leaves[0]
        assert merkle_proof(levels, 0) == []

    def test_leaf_order_is_preserved(self) -> None:
        leaves = _leaves(2)
        assert merkle_root(build_levels(leaves)) == hash_pair(leaves[0], leaves[1])
        assert merkle_root(build_levels(leaves[::-1])) == hash_pair(leaves[1], leaves[0])

    def test_odd_node_pairs_with_itself(self) -> None:
        l0, l1, l2 = _leaves(3)
        levels = build_levels([l0, l1, l2])
        assert levels[1] == [hash_pair(l0, l1), hash_pair(l2, l2)]
        assert merkle_root(levels) == hash_pair(hash_pair(l0, l1), hash_pair(l2, l2))

    def test_24_leaves_has_six_levels(self) -> None:
        levels = build_levels(_leaves(24))
        assert [len(level) for level in levels] == [24, 12, 6, 3, 2, 1]


class TestProofs:
    def test_right_node_uses_sibling_as_left_operand(self) -> None:
        l0, l1, l2 = _leaves(3)
        levels = build_levels([l0, l1, l2])
        proof = merkle_proof(levels, 1)
        assert proof == [l0, hash_pair(l2, l2)]
        assert recompute_root(l1, proof, 1) == merkle_root(levels)

    def test_lone_last_node_proof_contains_itself(self) -> None:
        l0, l1, l2 = _leaves(3)
        levels = build_levels([l0, l1, l2])
        proof = merkle_proof(levels, 2)
        assert proof[0] == l2
        assert verify_proof(l2, proof, merkle_root(levels), 2)

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 7, 8, 13, 24])
    def test_every_leaf_round_trips(self, n: int) -> None:
        leaves = _leaves(n)
        levels = build_levels(leaves)
        root = merkle_root(levels)
        for i, leaf in enumerate(leaves):
            assert verify_proof(leaf, merkle_proof(levels, i), root, i)

    def test_wrong_index_fails(self) -> None:
        leaves = _leaves(4)
        levels = build_levels(leaves)
        proof = merkle_proof(levels, 1)
        assert not verify_proof(leaves[1], proof, merkle_root(levels), 0)
        assert not verify_proof(leaves[1], proof, merkle_root(levels), -1)

    def test_out_of_range_index(self) -> None:
        with pytest.raises(IndexError):
            merkle_proof(build_levels(_leaves(3)), 3)
