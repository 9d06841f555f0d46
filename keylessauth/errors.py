"""Exceptions raised by the credential registry."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for all registry failures."""


class InvalidInputError(RegistryError, ValueError):
    """The credential could not be encoded or is empty."""


class DuplicateCredentialError(RegistryError):
    """The credential is already a member of the tree."""


class LeafNotFoundError(RegistryError, LookupError):
    """A proof was requested for a leaf the tree does not hold."""


class InvalidProofError(RegistryError, ValueError):
    """A serialized proof could not be parsed."""


class AnchorError(RegistryError):
    """The root anchor could not accept a write."""


class RegistrationNotFinalizedError(RegistryError):
    """The new root was not anchored; the registration did not happen."""


__all__ = [
    "AnchorError",
    "DuplicateCredentialError",
    "InvalidInputError",
    "InvalidProofError",
    "LeafNotFoundError",
    "RegistrationNotFinalizedError",
    "RegistryError",
]
