"""Sorted-pair Merkle tree over credential leaves.

Leaves are kept sorted and de-duplicated, so the root depends only on the set
of leaves. Every level is padded with ``ZERO_HASH`` up to a power of two
(never below two leaves) and parents are ``hash_pair(left, right)``, which
orders the children numerically before hashing.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .constants import EMPTY_ROOT, HASH_SIZE, MIN_TREE_WIDTH, ZERO_HASH
from .crypto import from_hex, hash_pair, to_hex
from .errors import DuplicateCredentialError, InvalidInputError, InvalidProofError, LeafNotFoundError

LEFT = 0
RIGHT = 1


def tree_width(leaf_count: int) -> int:
    if leaf_count <= 0:
        return 0
    width = MIN_TREE_WIDTH
    while width < leaf_count:
        width *= 2
    return width


def tree_depth(leaf_count: int) -> int:
    """Number of proof steps for a tree holding ``leaf_count`` leaves."""

    width = tree_width(leaf_count)
    return width.bit_length() - 1 if width else 0


@dataclass(frozen=True)
class ProofStep:
    """Sibling hash plus the side it sits on relative to the running hash."""

    sibling: bytes
    position: int

    def to_dict(self) -> Dict[str, object]:
        return {"hash": to_hex(self.sibling), "position": self.position}

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "ProofStep":
        try:
            sibling = from_hex(data["hash"])  # type: ignore[arg-type]
            position = data["position"]
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidProofError(f"Malformed proof step: {exc}") from exc
        if isinstance(position, bool) or position not in (LEFT, RIGHT):
            raise InvalidProofError("Proof position must be 0 (left) or 1 (right)")
        return ProofStep(sibling=sibling, position=int(position))


@dataclass(frozen=True)
class MerkleProof:
    """Ordered sibling path from a leaf up to the root."""

    steps: Tuple[ProofStep, ...]

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[ProofStep]:
        return iter(self.steps)

    def compute_root(self, leaf: bytes) -> bytes:
        current = leaf
        for step in self.steps:
            current = hash_pair(current, step.sibling)
        return current

    def to_list(self) -> List[Dict[str, object]]:
        return [step.to_dict() for step in self.steps]

    @staticmethod
    def from_list(data: object) -> "MerkleProof":
        if not isinstance(data, (list, tuple)):
            raise InvalidProofError("Proof must be a list of steps")
        steps = []
        for item in data:
            if not isinstance(item, dict):
                raise InvalidProofError("Proof step must be an object")
            steps.append(ProofStep.from_dict(item))
        return MerkleProof(steps=tuple(steps))


def _check_leaf(leaf: bytes) -> bytes:
    if not isinstance(leaf, (bytes, bytearray)) or len(leaf) != HASH_SIZE:
        raise InvalidInputError(f"Leaf must be {HASH_SIZE} bytes")
    if leaf == ZERO_HASH:
        raise InvalidInputError("The zero hash is reserved for padding")
    return bytes(leaf)


def _build_levels(leaves: Sequence[bytes]) -> Tuple[Tuple[bytes, ...], ...]:
    width = tree_width(len(leaves))
    if not width:
        return ()
    level = list(leaves) + [ZERO_HASH] * (width - len(leaves))
    levels = [tuple(level)]
    while len(level) > 1:
        level = [hash_pair(level[i], level[i + 1]) for i in range(0, len(level), 2)]
        levels.append(tuple(level))
    return tuple(levels)


class MerkleTree:
    """Immutable tree snapshot. Mutating operations return a new tree."""

    def __init__(self, leaves: Tuple[bytes, ...], levels: Tuple[Tuple[bytes, ...], ...]) -> None:
        self._leaves = leaves
        self._levels = levels

    @classmethod
    def build(cls, leaves: Iterable[bytes]) -> "MerkleTree":
        ordered = tuple(sorted({_check_leaf(leaf) for leaf in leaves}))
        return cls(ordered, _build_levels(ordered))

    @classmethod
    def empty(cls) -> "MerkleTree":
        return cls((), ())

    @property
    def leaves(self) -> Tuple[bytes, ...]:
        return self._leaves

    @property
    def levels(self) -> Tuple[Tuple[bytes, ...], ...]:
        return self._levels

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    @property
    def depth(self) -> int:
        return tree_depth(len(self._leaves))

    @property
    def root(self) -> bytes:
        if not self._levels:
            return EMPTY_ROOT
        return self._levels[-1][0]

    def __len__(self) -> int:
        return len(self._leaves)

    def __contains__(self, leaf: object) -> bool:
        if not isinstance(leaf, (bytes, bytearray)):
            return False
        try:
            self.index_of(bytes(leaf))
        except LeafNotFoundError:
            return False
        return True

    def index_of(self, leaf: bytes) -> int:
        position = bisect.bisect_left(self._leaves, leaf)
        if position < len(self._leaves) and self._leaves[position] == leaf:
            return position
        raise LeafNotFoundError("Leaf is not a member of the tree")

    def insert(self, leaf: bytes) -> "MerkleTree":
        leaf = _check_leaf(leaf)
        if leaf in self:
            raise DuplicateCredentialError("Leaf is already a member of the tree")
        return MerkleTree.build(self._leaves + (leaf,))

    def extend(self, leaves: Iterable[bytes]) -> "MerkleTree":
        additions = [_check_leaf(leaf) for leaf in leaves]
        if len(set(additions)) != len(additions) or any(leaf in self for leaf in additions):
            raise DuplicateCredentialError("Batch contains a leaf that is already present")
        return MerkleTree.build(self._leaves + tuple(additions))

    def proof(self, leaf: bytes) -> MerkleProof:
        index = self.index_of(leaf)
        steps = []
        for level in self._levels[:-1]:
            if index % 2 == 0:
                steps.append(ProofStep(sibling=level[index + 1], position=RIGHT))
            else:
                steps.append(ProofStep(sibling=level[index - 1], position=LEFT))
            index //= 2
        return MerkleProof(steps=tuple(steps))


__all__ = [
    "LEFT",
    "MerkleProof",
    "MerkleTree",
    "ProofStep",
    "RIGHT",
    "tree_depth",
    "tree_width",
]
