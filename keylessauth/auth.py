"""High level registration and authentication helpers."""

from __future__ import annotations

from typing import Dict, Iterable, List, Union

from .crypto import to_hex
from .merkle import MerkleProof
from .registry import CredentialRegistry


def register_credential(registry: CredentialRegistry, credential: str) -> Dict[str, object]:
    result = registry.register(credential)
    return {
        "leaf": to_hex(result.leaf),
        "root": to_hex(result.root),
        "sequence": result.sequence,
    }


def register_credentials(registry: CredentialRegistry, credentials: Iterable[str]) -> Dict[str, object]:
    result = registry.register_many(credentials)
    return {
        "leaves": [to_hex(leaf) for leaf in result.leaves],
        "root": to_hex(result.root),
        "sequence": result.sequence,
    }


def issue_proof(registry: CredentialRegistry, credential: str) -> Dict[str, object]:
    """Produce a proof bundle a client can keep and present later."""

    leaf = registry.hasher.hash(credential)
    snapshot = registry.snapshot()
    proof = snapshot.proof(leaf)
    return {
        "leaf": to_hex(leaf),
        "root": to_hex(snapshot.root),
        "proof": proof.to_list(),
    }


def authenticate(
    registry: CredentialRegistry,
    credential: str,
    proof: Union[MerkleProof, List[Dict[str, object]], None] = None,
) -> Dict[str, object]:
    anchored = registry.current_root()
    success = registry.authenticate(credential, proof)
    return {
        "root": to_hex(anchored.root),
        "sequence": anchored.sequence,
        "success": success,
    }


def describe_root(registry: CredentialRegistry) -> Dict[str, object]:
    payload = registry.current_root().to_dict()
    payload["state"] = registry.state.value
    return payload


def root_history(registry: CredentialRegistry) -> List[Dict[str, object]]:
    return [entry.to_dict() for entry in registry.history()]


__all__ = [
    "authenticate",
    "describe_root",
    "issue_proof",
    "register_credential",
    "register_credentials",
    "root_history",
]
