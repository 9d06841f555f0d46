"""Root anchors: the append-only record of the currently accepted root."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from .constants import EMPTY_ROOT, HASH_SIZE
from .crypto import from_hex, short_hex, to_hex
from .errors import AnchorError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnchoredRoot:
    """One published root together with the size of the tree it summarises."""

    root: bytes
    leaf_count: int
    sequence: int
    anchored_at: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "root": to_hex(self.root),
            "leaf_count": self.leaf_count,
            "sequence": self.sequence,
            "anchored_at": self.anchored_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "AnchoredRoot":
        return AnchoredRoot(
            root=from_hex(data["root"]),  # type: ignore[arg-type]
            leaf_count=int(data["leaf_count"]),  # type: ignore[arg-type]
            sequence=int(data["sequence"]),  # type: ignore[arg-type]
            anchored_at=float(data.get("anchored_at", 0.0)),  # type: ignore[arg-type]
        )


GENESIS = AnchoredRoot(root=EMPTY_ROOT, leaf_count=0, sequence=0)


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a ``set_root`` call."""

    accepted: bool
    sequence: Optional[int] = None
    reference: str = ""
    detail: str = ""


class RootAnchor(ABC):
    """External store holding the root that authentication checks against."""

    @abstractmethod
    def get_current_root(self) -> AnchoredRoot:
        raise NotImplementedError

    @abstractmethod
    def set_root(self, new_root: bytes, *, leaf_count: int) -> TransactionResult:
        raise NotImplementedError

    @abstractmethod
    def history(self) -> List[AnchoredRoot]:
        raise NotImplementedError


def _validate_write(new_root: bytes, leaf_count: int) -> None:
    if not isinstance(new_root, (bytes, bytearray)) or len(new_root) != HASH_SIZE:
        raise AnchorError(f"Root must be {HASH_SIZE} bytes")
    if leaf_count < 0:
        raise AnchorError("Leaf count must not be negative")


class InMemoryRootAnchor(RootAnchor):
    """Process-local anchor, used in tests and for throwaway registries."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[AnchoredRoot] = [GENESIS]

    def get_current_root(self) -> AnchoredRoot:
        with self._lock:
            return self._entries[-1]

    def set_root(self, new_root: bytes, *, leaf_count: int) -> TransactionResult:
        _validate_write(new_root, leaf_count)
        with self._lock:
            entry = AnchoredRoot(
                root=bytes(new_root),
                leaf_count=leaf_count,
                sequence=self._entries[-1].sequence + 1,
                anchored_at=time.time(),
            )
            self._entries.append(entry)
        logger.debug("Anchored root %s at sequence %d", short_hex(entry.root), entry.sequence)
        return TransactionResult(accepted=True, sequence=entry.sequence, reference=f"memory:{entry.sequence}")

    def history(self) -> List[AnchoredRoot]:
        with self._lock:
            return list(self._entries)


class JsonRootAnchor(RootAnchor):
    """Anchor persisted as an append-only list of roots in a JSON file."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._ensure_file()

    def _ensure_file(self) -> None:
        if not os.path.exists(self.path):
            self._save({"roots": [GENESIS.to_dict()]})

    def _load(self) -> Dict[str, list]:
        with open(self.path, "r", encoding="utf-8") as handle:
            return json.load(handle)

    def _save(self, payload: Dict[str, list]) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)

    def _entries(self) -> List[AnchoredRoot]:
        try:
            raw_roots = self._load().get("roots") or [GENESIS.to_dict()]
            return [AnchoredRoot.from_dict(raw) for raw in raw_roots]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise AnchorError(f"Anchor file {self.path} is unreadable: {exc}") from exc

    def get_current_root(self) -> AnchoredRoot:
        with self._lock:
            return self._entries()[-1]

    def set_root(self, new_root: bytes, *, leaf_count: int) -> TransactionResult:
        _validate_write(new_root, leaf_count)
        with self._lock:
            entries = self._entries()
            entry = AnchoredRoot(
                root=bytes(new_root),
                leaf_count=leaf_count,
                sequence=entries[-1].sequence + 1,
                anchored_at=time.time(),
            )
            entries.append(entry)
            try:
                self._save({"roots": [item.to_dict() for item in entries]})
            except OSError as exc:
                raise AnchorError(f"Could not write anchor file {self.path}: {exc}") from exc
        logger.info("Anchored root %s at sequence %d", short_hex(entry.root), entry.sequence)
        return TransactionResult(
            accepted=True,
            sequence=entry.sequence,
            reference=f"{os.path.basename(self.path)}:{entry.sequence}",
        )

    def history(self) -> List[AnchoredRoot]:
        with self._lock:
            return self._entries()


__all__ = [
    "AnchoredRoot",
    "GENESIS",
    "InMemoryRootAnchor",
    "JsonRootAnchor",
    "RootAnchor",
    "TransactionResult",
]
