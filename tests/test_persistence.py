import json
import os
import tempfile
import unittest

from keylessauth.anchor import GENESIS, InMemoryRootAnchor, JsonRootAnchor
from keylessauth.constants import EMPTY_ROOT
from keylessauth.crypto import hash_credential
from keylessauth.errors import AnchorError, InvalidInputError
from keylessauth.store import LeafStore, MemoryLeafStore


class TestRootAnchors(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _anchors(self):
        return [InMemoryRootAnchor(), JsonRootAnchor(os.path.join(self.tmp.name, "anchor.json"))]

    def test_genesis_root(self) -> None:
        for anchor in self._anchors():
            current = anchor.get_current_root()
            self.assertEqual(current.root, EMPTY_ROOT)
            self.assertEqual(current.sequence, 0)
            self.assertEqual(current.leaf_count, 0)

    def test_set_root_appends_history(self) -> None:
        first = hash_credential("a@x.com")
        second = hash_credential("b@x.com")
        for anchor in self._anchors():
            result = anchor.set_root(first, leaf_count=1)
            self.assertTrue(result.accepted)
            self.assertEqual(result.sequence, 1)
            anchor.set_root(second, leaf_count=2)
            history = anchor.history()
            self.assertEqual([entry.sequence for entry in history], [0, 1, 2])
            self.assertEqual(history[0], GENESIS)
            self.assertEqual(history[1].root, first)
            self.assertEqual(anchor.get_current_root().root, second)

    def test_invalid_writes_rejected(self) -> None:
        for anchor in self._anchors():
            with self.assertRaises(AnchorError):
                anchor.set_root(b"short", leaf_count=1)
            with self.assertRaises(AnchorError):
                anchor.set_root(hash_credential("a@x.com"), leaf_count=-1)

    def test_json_anchor_survives_reopen(self) -> None:
        path = os.path.join(self.tmp.name, "anchor.json")
        root = hash_credential("a@x.com")
        JsonRootAnchor(path).set_root(root, leaf_count=1)
        reopened = JsonRootAnchor(path)
        self.assertEqual(reopened.get_current_root().root, root)
        self.assertEqual(len(reopened.history()), 2)

    def test_corrupt_anchor_file(self) -> None:
        path = os.path.join(self.tmp.name, "anchor.json")
        with open(path, "w", encoding="utf-8") as handle:
            handle.write("{not json")
        with self.assertRaises(AnchorError):
            JsonRootAnchor(path).get_current_root()


class TestLeafStores(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = os.path.join(self.tmp.name, "registry.json")

    def test_memory_store(self) -> None:
        leaf = hash_credential("a@x.com")
        store = MemoryLeafStore()
        self.assertEqual(store.load(), [])
        store.save([leaf])
        self.assertEqual(store.load(), [leaf])

    def test_json_store_round_trip(self) -> None:
        leaves = [hash_credential("a@x.com"), hash_credential("b@x.com")]
        LeafStore(self.path).save(leaves)
        self.assertEqual(LeafStore(self.path).load(), leaves)

    def test_json_store_holds_no_plaintext(self) -> None:
        LeafStore(self.path).save([hash_credential("secret.person@x.com")])
        with open(self.path, "r", encoding="utf-8") as handle:
            content = handle.read()
        self.assertNotIn("secret.person", content)
        self.assertEqual(len(json.loads(content)["leaves"]), 1)

    def test_json_store_rejects_bad_values(self) -> None:
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump({"leaves": ["0x1234"]}, handle)
        with self.assertRaises(InvalidInputError):
            LeafStore(self.path)


if __name__ == "__main__":
    unittest.main()
