"""Keyless authentication backed by an anchored credential Merkle tree."""

from .anchor import AnchoredRoot, InMemoryRootAnchor, JsonRootAnchor, RootAnchor, TransactionResult
from .auth import authenticate, issue_proof, register_credential
from .crypto import CredentialHasher, hash_credential, hash_pair, normalize_credential
from .errors import (
    AnchorError,
    DuplicateCredentialError,
    InvalidInputError,
    InvalidProofError,
    LeafNotFoundError,
    RegistrationNotFinalizedError,
    RegistryError,
)
from .merkle import MerkleProof, MerkleTree, ProofStep
from .registry import CredentialRegistry, RegistrationResult, RegistryState
from .store import LeafStore, MemoryLeafStore
from .verifier import verify

__all__ = [
    "authenticate",
    "issue_proof",
    "register_credential",
    "AnchoredRoot",
    "InMemoryRootAnchor",
    "JsonRootAnchor",
    "RootAnchor",
    "TransactionResult",
    "CredentialHasher",
    "hash_credential",
    "hash_pair",
    "normalize_credential",
    "AnchorError",
    "DuplicateCredentialError",
    "InvalidInputError",
    "InvalidProofError",
    "LeafNotFoundError",
    "RegistrationNotFinalizedError",
    "RegistryError",
    "MerkleProof",
    "MerkleTree",
    "ProofStep",
    "CredentialRegistry",
    "RegistrationResult",
    "RegistryState",
    "LeafStore",
    "MemoryLeafStore",
    "verify",
]
