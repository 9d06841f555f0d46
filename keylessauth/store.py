"""Persistence for the registered leaf set.

Only leaf hashes are written; plaintext credentials never reach disk.
"""

from __future__ import annotations

import json
import os
from typing import Dict, Iterable, List, Tuple

from .crypto import from_hex, to_hex
from .errors import InvalidInputError


class MemoryLeafStore:
    """Keep leaves in memory only."""

    def __init__(self, leaves: Iterable[bytes] = ()) -> None:
        self._leaves: Tuple[bytes, ...] = tuple(leaves)

    def load(self) -> List[bytes]:
        return list(self._leaves)

    def save(self, leaves: Iterable[bytes]) -> None:
        self._leaves = tuple(leaves)


class LeafStore(MemoryLeafStore):
    """JSON-backed leaf set: ``{"leaves": ["0x..", ...]}``."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._ensure_file()
        self._leaves = tuple(self._read())

    def _ensure_file(self) -> None:
        if not os.path.exists(self.path):
            with open(self.path, "w", encoding="utf-8") as handle:
                json.dump({"leaves": []}, handle, indent=2)

    def _load(self) -> Dict[str, list]:
        with open(self.path, "r", encoding="utf-8") as handle:
            return json.load(handle)

    def _read(self) -> List[bytes]:
        leaves = []
        for raw_leaf in self._load().get("leaves", []):
            try:
                leaves.append(from_hex(raw_leaf))
            except ValueError as exc:
                raise InvalidInputError(f"Stored leaf {raw_leaf!r} is not a valid hash") from exc
        return leaves

    def load(self) -> List[bytes]:
        self._leaves = tuple(self._read())
        return list(self._leaves)

    def save(self, leaves: Iterable[bytes]) -> None:
        snapshot = tuple(leaves)
        payload = {"leaves": [to_hex(leaf) for leaf in snapshot]}
        temporary = f"{self.path}.tmp"
        with open(temporary, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        os.replace(temporary, self.path)
        self._leaves = snapshot


__all__ = ["LeafStore", "MemoryLeafStore"]
