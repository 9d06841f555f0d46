"""Command line interface for the keyless credential registry."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from keylessauth.auth import (
    authenticate,
    describe_root,
    issue_proof,
    register_credential,
    register_credentials,
    root_history,
)
from keylessauth.config import configure_logging, load_settings
from keylessauth.errors import RegistryError
from keylessauth.registry import CredentialRegistry
from keylessauth.verifier import verify

DEFAULT_STORE = Path("registry.json")
DEFAULT_ANCHOR = Path("anchor.json")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--store",
        default=str(DEFAULT_STORE),
        help="Location of the JSON leaf store (default: registry.json)",
    )
    parser.add_argument(
        "--anchor",
        default=str(DEFAULT_ANCHOR),
        help="Location of the JSON root anchor (default: anchor.json)",
    )
    parser.add_argument(
        "--no-normalize",
        dest="normalize",
        action="store_false",
        help="Hash credentials exactly as given, without case or whitespace folding",
    )
    parser.set_defaults(normalize=None)
    parser.add_argument("--log-level", help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    register_parser = subparsers.add_parser("register", help="Register a credential")
    register_parser.add_argument("credential", help="Credential, e.g. an email address")

    batch_parser = subparsers.add_parser(
        "register-batch",
        help="Register every credential in a file (one per line) under a single root",
    )
    batch_parser.add_argument("path", help="Text file with one credential per line")

    proof_parser = subparsers.add_parser("proof", help="Issue an inclusion proof")
    proof_parser.add_argument("credential")
    proof_parser.add_argument("--output", help="Optional file path to store the proof bundle")

    login_parser = subparsers.add_parser("login", help="Authenticate a credential")
    login_parser.add_argument("credential")
    login_parser.add_argument(
        "--proof",
        help="Proof bundle produced by the proof command. If omitted the registry builds one.",
    )

    subparsers.add_parser("root", help="Show the currently anchored root")
    subparsers.add_parser("history", help="List every anchored root")

    verify_parser = subparsers.add_parser(
        "verify",
        help="Check a proof bundle offline against a root",
    )
    verify_parser.add_argument("bundle", help="Path to the proof bundle JSON")
    verify_parser.add_argument("--root", help="Root to verify against (default: the bundle root)")
    verify_parser.add_argument("--depth", type=int, help="Expected proof length")

    return parser.parse_args(argv)


def load_registry(namespace: argparse.Namespace) -> CredentialRegistry:
    settings = load_settings(
        store_path=namespace.store,
        anchor_path=namespace.anchor,
        normalize_credentials=namespace.normalize,
        log_level=namespace.log_level,
    )
    configure_logging(settings.log_level)
    return CredentialRegistry.from_settings(settings)


def _read_bundle(path: str) -> dict:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, list):
        return {"proof": payload}
    return payload


def run(namespace: argparse.Namespace) -> int:
    if namespace.command == "verify":
        bundle = _read_bundle(namespace.bundle)
        root = namespace.root or bundle.get("root")
        valid = verify(bundle.get("leaf"), bundle.get("proof"), root, depth=namespace.depth)
        print(json.dumps({"valid": valid}, indent=2))
        return 0 if valid else 1

    registry = load_registry(namespace)

    if namespace.command == "register":
        print(json.dumps(register_credential(registry, namespace.credential), indent=2))
        return 0

    if namespace.command == "register-batch":
        lines = Path(namespace.path).read_text(encoding="utf-8").splitlines()
        credentials = [line for line in lines if line.strip()]
        print(json.dumps(register_credentials(registry, credentials), indent=2))
        return 0

    if namespace.command == "proof":
        payload = issue_proof(registry, namespace.credential)
        if namespace.output:
            Path(namespace.output).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(json.dumps(payload, indent=2))
        return 0

    if namespace.command == "login":
        proof = _read_bundle(namespace.proof).get("proof") if namespace.proof else None
        result = authenticate(registry, namespace.credential, proof)
        print(json.dumps(result, indent=2))
        return 0 if result["success"] else 1

    if namespace.command == "root":
        print(json.dumps(describe_root(registry), indent=2))
        return 0

    if namespace.command == "history":
        print(json.dumps(root_history(registry), indent=2))
        return 0

    raise RuntimeError("Unreachable")


def main(argv: list[str] | None = None) -> int:
    namespace = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        return run(namespace)
    except RegistryError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as exc:
        print(f"Could not read input: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
