import unittest

from keylessauth.constants import FIELD_MODULUS, HASH_SIZE
from keylessauth.crypto import (
    CredentialHasher,
    from_hex,
    hash_credential,
    hash_pair,
    normalize_credential,
    to_hex,
)
from keylessauth.errors import InvalidInputError


class TestCredentialHasher(unittest.TestCase):
    def test_hash_is_deterministic(self) -> None:
        self.assertEqual(hash_credential("a@x.com"), hash_credential("a@x.com"))
        self.assertEqual(CredentialHasher().hash("a@x.com"), CredentialHasher().hash(b"a@x.com"))

    def test_distinct_credentials_give_distinct_leaves(self) -> None:
        leaves = {hash_credential(f"user{index}@x.com") for index in range(200)}
        self.assertEqual(len(leaves), 200)

    def test_leaf_is_a_field_element(self) -> None:
        leaf = hash_credential("a@x.com")
        self.assertEqual(len(leaf), HASH_SIZE)
        self.assertLess(int.from_bytes(leaf, "big"), FIELD_MODULUS)

    def test_normalization_folds_case_and_whitespace(self) -> None:
        self.assertEqual(normalize_credential("  Alice@Example.COM\n"), "alice@example.com")
        self.assertEqual(hash_credential(" Alice@Example.com "), hash_credential("alice@example.com"))

    def test_normalization_can_be_disabled(self) -> None:
        raw = CredentialHasher(normalize=False)
        self.assertNotEqual(raw.hash("Alice@example.com"), raw.hash("alice@example.com"))
        self.assertEqual(raw.hash("alice@example.com"), hash_credential("alice@example.com"))

    def test_salt_changes_the_leaf(self) -> None:
        other = CredentialHasher(salt=b"\x00\x01")
        self.assertNotEqual(other.hash("a@x.com"), hash_credential("a@x.com"))

    def test_invalid_input_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            hash_credential(b"\xff\xfe\xfd")
        with self.assertRaises(InvalidInputError):
            hash_credential("   ")
        with self.assertRaises(InvalidInputError):
            hash_credential("\ud800")
        with self.assertRaises(InvalidInputError):
            hash_credential(42)  # type: ignore[arg-type]


class TestPairHashing(unittest.TestCase):
    def test_pair_hash_is_order_independent(self) -> None:
        a = hash_credential("a@x.com")
        b = hash_credential("b@x.com")
        self.assertEqual(hash_pair(a, b), hash_pair(b, a))
        self.assertNotEqual(hash_pair(a, b), hash_pair(a, a))

    def test_hex_helpers(self) -> None:
        leaf = hash_credential("a@x.com")
        self.assertTrue(to_hex(leaf).startswith("0x"))
        self.assertEqual(from_hex(to_hex(leaf)), leaf)
        self.assertEqual(from_hex(leaf.hex()), leaf)
        with self.assertRaises(ValueError):
            from_hex("0x1234")
        with self.assertRaises(ValueError):
            from_hex("zz" * 32)


if __name__ == "__main__":
    unittest.main()
