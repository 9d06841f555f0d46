"""Shared constants for the credential Merkle registry."""

from __future__ import annotations

# Order of the BN254 scalar field. Leaves and nodes are reduced into it so
# they can be fed to an inclusion circuit unchanged.
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)
EMPTY_ROOT = ZERO_HASH

CREDENTIAL_SALT = bytes.fromhex("1c9d3c4f")

LEAF_TAG = b"\x00"
NODE_TAG = b"\x01"

MIN_TREE_WIDTH = 2
