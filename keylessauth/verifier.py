"""Inclusion proof verification.

``verify`` runs on untrusted input during authentication, so every malformed
argument is answered with ``False`` rather than an exception.
"""

from __future__ import annotations

import secrets
from typing import Optional, Union

from .constants import HASH_SIZE
from .crypto import from_hex
from .errors import InvalidProofError
from .merkle import LEFT, RIGHT, MerkleProof, ProofStep

HashLike = Union[bytes, str]
ProofLike = Union[MerkleProof, list]


def _coerce_hash(value: object) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        if len(value) != HASH_SIZE:
            raise InvalidProofError("Hash has the wrong width")
        return bytes(value)
    if isinstance(value, str):
        try:
            return from_hex(value)
        except ValueError as exc:
            raise InvalidProofError(str(exc)) from exc
    raise InvalidProofError("Hash must be bytes or hex text")


def coerce_proof(proof: object) -> MerkleProof:
    if not isinstance(proof, MerkleProof):
        return MerkleProof.from_list(proof)
    if not isinstance(proof.steps, (tuple, list)):
        raise InvalidProofError("Proof steps must be a sequence")
    steps = []
    for step in proof.steps:
        position = getattr(step, "position", None)
        if isinstance(position, bool) or position not in (LEFT, RIGHT):
            raise InvalidProofError("Proof position must be 0 (left) or 1 (right)")
        steps.append(ProofStep(sibling=_coerce_hash(getattr(step, "sibling", None)), position=int(position)))
    return MerkleProof(steps=tuple(steps))


def verify(
    leaf: HashLike,
    proof: ProofLike,
    claimed_root: HashLike,
    *,
    depth: Optional[int] = None,
) -> bool:
    """Return True when ``proof`` links ``leaf`` to ``claimed_root``."""

    try:
        leaf_value = _coerce_hash(leaf)
        root_value = _coerce_hash(claimed_root)
        path = coerce_proof(proof)
    except InvalidProofError:
        return False

    if not path.steps:
        return False
    if depth is not None and len(path) != depth:
        return False

    return secrets.compare_digest(path.compute_root(leaf_value), root_value)


__all__ = ["coerce_proof", "verify"]
