"""Registry service: registration, proof issuance and authentication.

The write path runs under a single lock and follows publish-then-commit: the
candidate tree is only swapped in and persisted once the anchor has accepted
its root. While a write is in flight the candidate is kept as the pending
tree; readers use whichever snapshot matches the anchored root. A write that
timed out but lands later is adopted by the next registration.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple, Union

from .anchor import AnchoredRoot, InMemoryRootAnchor, JsonRootAnchor, RootAnchor, TransactionResult
from .config import RegistrySettings
from .constants import ZERO_HASH
from .crypto import CredentialHasher, short_hex
from .errors import AnchorError, LeafNotFoundError, RegistrationNotFinalizedError
from .merkle import RIGHT, MerkleProof, MerkleTree, ProofStep, tree_depth
from .store import LeafStore, MemoryLeafStore
from .verifier import verify

logger = logging.getLogger(__name__)


class RegistryState(enum.Enum):
    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class RegistrationResult:
    leaf: bytes
    root: bytes
    sequence: int


@dataclass(frozen=True)
class BatchRegistrationResult:
    leaves: List[bytes]
    root: bytes
    sequence: int


class CredentialRegistry:
    """Owns the credential set and keeps the anchored root in step with it."""

    def __init__(
        self,
        anchor: RootAnchor,
        *,
        store: Optional[MemoryLeafStore] = None,
        hasher: Optional[CredentialHasher] = None,
        publish_attempts: int = 3,
        publish_backoff: float = 0.5,
        publish_backoff_max: float = 8.0,
        publish_timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if publish_attempts < 1:
            raise ValueError("publish_attempts must be at least 1")
        self.anchor = anchor
        self.store = store if store is not None else MemoryLeafStore()
        self.hasher = hasher or CredentialHasher()
        self.publish_attempts = publish_attempts
        self.publish_backoff = publish_backoff
        self.publish_backoff_max = publish_backoff_max
        self.publish_timeout = publish_timeout
        self._sleep = sleep
        self._write_lock = threading.Lock()
        self._tree = MerkleTree.build(self.store.load())
        self._pending: Optional[MerkleTree] = None
        self._outstanding: Optional[Future] = None
        self._check_consistency()

    @classmethod
    def from_settings(cls, settings: RegistrySettings) -> "CredentialRegistry":
        anchor: RootAnchor
        if settings.anchor_path:
            anchor = JsonRootAnchor(settings.anchor_path)
        else:
            anchor = InMemoryRootAnchor()
        store = LeafStore(settings.store_path) if settings.store_path else MemoryLeafStore()
        hasher = CredentialHasher(normalize=settings.normalize_credentials, salt=settings.salt_bytes)
        return cls(
            anchor,
            store=store,
            hasher=hasher,
            publish_attempts=settings.publish_attempts,
            publish_backoff=settings.publish_backoff,
            publish_backoff_max=settings.publish_backoff_max,
            publish_timeout=settings.publish_timeout,
        )

    def _check_consistency(self) -> None:
        anchored = self.anchor.get_current_root()
        if anchored.root != self._tree.root:
            logger.warning(
                "Local tree root %s (%d leaves) differs from anchored root %s (%d leaves)",
                short_hex(self._tree.root),
                self._tree.leaf_count,
                short_hex(anchored.root),
                anchored.leaf_count,
            )

    @property
    def tree(self) -> MerkleTree:
        return self._tree

    @property
    def state(self) -> RegistryState:
        return RegistryState.POPULATED if self._tree.leaf_count else RegistryState.EMPTY

    def current_root(self) -> AnchoredRoot:
        return self.anchor.get_current_root()

    def history(self) -> List[AnchoredRoot]:
        return self.anchor.history()

    def register(self, credential: Union[str, bytes]) -> RegistrationResult:
        leaf = self.hasher.hash(credential)
        with self._write_lock:
            landed = self._reconcile()
            if landed is not None and leaf in landed[1]:
                # An earlier write for this credential reached the anchor late.
                return RegistrationResult(leaf=leaf, root=landed[0].root, sequence=landed[0].sequence)
            candidate = self._tree.insert(leaf)
            anchored = self._publish(candidate)
            self._commit(candidate)
        logger.info("Registered leaf %s; root is now %s", short_hex(leaf), short_hex(anchored.root))
        return RegistrationResult(leaf=leaf, root=anchored.root, sequence=anchored.sequence)

    def register_many(self, credentials: Iterable[Union[str, bytes]]) -> BatchRegistrationResult:
        """Register several credentials and anchor a single root for all of them."""

        leaves = [self.hasher.hash(credential) for credential in credentials]
        with self._write_lock:
            landed = self._reconcile()
            if landed is not None and leaves and all(leaf in landed[1] for leaf in leaves):
                return BatchRegistrationResult(leaves=leaves, root=landed[0].root, sequence=landed[0].sequence)
            candidate = self._tree.extend(leaves)
            anchored = self._publish(candidate)
            self._commit(candidate)
        logger.info("Registered %d leaves; root is now %s", len(leaves), short_hex(anchored.root))
        return BatchRegistrationResult(leaves=leaves, root=anchored.root, sequence=anchored.sequence)

    def _commit(self, candidate: MerkleTree) -> None:
        self._tree = candidate
        self._pending = None
        try:
            self.store.save(candidate.leaves)
        except OSError as exc:
            # The anchor already holds this root; the next save writes the full set.
            logger.error("Could not persist %d leaves: %s", candidate.leaf_count, exc)

    def _reconcile(self) -> Optional[Tuple[AnchoredRoot, FrozenSet[bytes]]]:
        """Adopt a pending tree whose timed-out write has since been anchored."""

        pending = self._pending
        if pending is None:
            return None
        try:
            self._settle_outstanding()
        except AnchorError as exc:
            raise RegistrationNotFinalizedError(str(exc)) from exc
        landed = self._already_anchored(pending)
        if landed is None:
            if self._outstanding is None:
                self._pending = None
            return None
        added = frozenset(pending.leaves) - frozenset(self._tree.leaves)
        logger.info("Late anchor write for root %s landed; adopting it", short_hex(pending.root))
        self._commit(pending)
        return landed, added

    def _settle_outstanding(self) -> None:
        """Wait for an earlier timed-out write so two writes never overlap."""

        future = self._outstanding
        if future is None:
            return
        try:
            future.result(timeout=self.publish_timeout)
        except FutureTimeout as exc:
            raise AnchorError("An earlier anchor write is still outstanding") from exc
        except AnchorError as exc:
            logger.warning("Earlier anchor write failed: %s", exc)
        finally:
            if future.done():
                self._outstanding = None

    def _submit(self, candidate: MerkleTree) -> TransactionResult:
        if self.publish_timeout is None:
            return self.anchor.set_root(candidate.root, leaf_count=candidate.leaf_count)
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.anchor.set_root, candidate.root, leaf_count=candidate.leaf_count)
            try:
                return future.result(timeout=self.publish_timeout)
            except FutureTimeout as exc:
                self._outstanding = future
                raise AnchorError(f"Anchor write timed out after {self.publish_timeout}s") from exc
        finally:
            executor.shutdown(wait=False)

    def _already_anchored(self, candidate: MerkleTree) -> Optional[AnchoredRoot]:
        try:
            current = self.anchor.get_current_root()
        except AnchorError:
            return None
        if current.root == candidate.root and current.leaf_count == candidate.leaf_count:
            return current
        return None

    def _publish(self, candidate: MerkleTree) -> AnchoredRoot:
        self._pending = candidate
        last_problem = "no attempt made"
        for attempt in range(1, self.publish_attempts + 1):
            if attempt > 1:
                delay = min(self.publish_backoff * 2 ** (attempt - 2), self.publish_backoff_max)
                if delay > 0:
                    self._sleep(delay)
            try:
                self._settle_outstanding()
                landed = self._already_anchored(candidate)
                if landed is not None:
                    return landed
                result = self._submit(candidate)
                anchored = self.anchor.get_current_root() if result.accepted else None
            except AnchorError as exc:
                last_problem = str(exc)
                logger.warning("Anchor write attempt %d/%d failed: %s", attempt, self.publish_attempts, exc)
                continue
            if anchored is not None:
                if anchored.root != candidate.root:
                    last_problem = "anchor reports a different root after write"
                    logger.warning("Anchor write attempt %d/%d: %s", attempt, self.publish_attempts, last_problem)
                    continue
                return anchored
            last_problem = result.detail or "rejected"
            logger.warning(
                "Anchor rejected root %s on attempt %d/%d: %s",
                short_hex(candidate.root),
                attempt,
                self.publish_attempts,
                last_problem,
            )
        if self._outstanding is None:
            self._pending = None
        raise RegistrationNotFinalizedError(
            f"Root {short_hex(candidate.root)} was not anchored after "
            f"{self.publish_attempts} attempts: {last_problem}"
        )

    def snapshot(self, anchored: Optional[AnchoredRoot] = None) -> MerkleTree:
        """Tree matching the anchored root: the committed one or the one being published."""

        anchored = anchored or self.anchor.get_current_root()
        committed = self._tree
        pending = self._pending
        if committed.root != anchored.root and pending is not None and pending.root == anchored.root:
            return pending
        return committed

    def prove(self, credential: Union[str, bytes]) -> MerkleProof:
        leaf = self.hasher.hash(credential)
        return self.snapshot().proof(leaf)

    def authenticate(
        self,
        credential: Union[str, bytes],
        proof: Union[MerkleProof, list, None] = None,
    ) -> bool:
        """Check membership of ``credential`` against the anchored root.

        Without ``proof`` the registry produces one from its own snapshot. An
        unknown credential is checked against a decoy path of the same depth,
        so the caller sees the same outcome and cost as for a wrong proof.
        """

        leaf = self.hasher.hash(credential)
        anchored = self.anchor.get_current_root()
        depth = tree_depth(anchored.leaf_count)

        if proof is None:
            snapshot = self.snapshot(anchored)
            try:
                proof = snapshot.proof(leaf)
            except LeafNotFoundError:
                proof = _decoy_proof(depth)

        accepted = verify(leaf, proof, anchored.root, depth=depth)
        logger.debug("Authentication against sequence %d: %s", anchored.sequence, "accepted" if accepted else "rejected")
        return accepted


def _decoy_proof(depth: int) -> MerkleProof:
    return MerkleProof(steps=tuple(ProofStep(sibling=ZERO_HASH, position=RIGHT) for _ in range(depth)))


__all__ = [
    "BatchRegistrationResult",
    "CredentialRegistry",
    "RegistrationResult",
    "RegistryState",
]
