#!/usr/bin/env python3
"""
pqguard Command Line Interface

Usage:
    pqguard keygen --output <file> [--public <file>]
    pqguard classical-keygen --output <file>
    pqguard digest --action <file> [--authorizer <id>]
    pqguard sign --key <file> --action <file> [--output <file>]
    pqguard verify --public <file> --action <file> --signature <file>
    pqguard merkle-build --public-keys <file>... [--output <file>]
    pqguard merkle-proof --tree <file> --index <n>
"""

import argparse
import json
import sys


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def _emit(data, output):
    if output:
        save_json(data, output)
        print(f"Saved to: {output}", file=sys.stderr)
    else:
        print(json.dumps(data, indent=2))


def cmd_keygen(args):
    """Generate a Lamport one-time key pair."""
    from pqguard import generate_keypair

    private_key, public_key = generate_keypair()
    save_json(private_key.to_dict(), args.output)
    print(f"Private key saved to: {args.output}", file=sys.stderr)

    if args.public:
        save_json(public_key.to_dict(), args.public)
        print(f"Public key saved to: {args.public}", file=sys.stderr)

    print(f"leaf_hash: {public_key.leaf_hash().hex()}")
    return 0


def cmd_classical_keygen(args):
    """Generate an Ed25519 key pair for owners, guardians and standing keys."""
    from pqguard import ClassicalKeyPair

    pair = ClassicalKeyPair.generate()
    save_json(pair.to_dict(), args.output)
    print(f"identity: {pair.identity}")
    return 0


def cmd_digest(args):
    """Compute the digest of an action."""
    from pqguard import Action

    action = Action.from_dict(load_json(args.action))
    if args.authorizer:
        digest = action.bound_digest(args.authorizer)
    else:
        digest = action.digest()
    print(digest.hex())
    return 0


def cmd_sign(args):
    """Sign an action digest with a one-time private key."""
    from pqguard import Action, KeyReuseError, LamportPrivateKey

    private_key = LamportPrivateKey.from_dict(load_json(args.key))
    action = Action.from_dict(load_json(args.action))

    try:
        signature = private_key.sign(action.digest())
    except KeyReuseError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    # Persist the used marker so the key is never used for another digest
    save_json(private_key.to_dict(), args.key)
    _emit(signature.to_list(), args.output)
    return 0


def cmd_verify(args):
    """Verify a Lamport signature over an action."""
    from pqguard import Action, LamportPublicKey, LamportSignature, verify

    public_key = LamportPublicKey.from_dict(load_json(args.public))
    action = Action.from_dict(load_json(args.action))
    signature = LamportSignature.from_list(load_json(args.signature))

    if verify(action.digest(), signature, public_key):
        print("✓ VALID")
        return 0
    print("✗ INVALID")
    return 1


def cmd_merkle_build(args):
    """Aggregate one-time public keys under a Merkle root."""
    from pqguard import LamportPublicKey, merkle_root

    leaves = [
        LamportPublicKey.from_dict(load_json(path)).leaf_hash()
        for path in args.public_keys
    ]
    tree = {
        "root": merkle_root(leaves).hex(),
        "leaves": [leaf.hex() for leaf in leaves],
    }
    _emit(tree, args.output)
    return 0


def cmd_merkle_proof(args):
    """Produce the inclusion proof for one leaf of a built tree."""
    from pqguard import merkle_proof

    tree = load_json(args.tree)
    leaves = [bytes.fromhex(leaf) for leaf in tree["leaves"]]
    proof = merkle_proof(leaves, args.index)
    _emit({
        "leaf_hash": leaves[args.index].hex(),
        "proof": [p.hex() for p in proof],
        "root": tree["root"],
    }, args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pqguard",
        description="Transition-period authorization: Lamport, Merkle, hybrid and guardian keys",
    )
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("keygen", help="Generate a Lamport one-time key pair")
    p.add_argument("--output", required=True, help="Private key output file")
    p.add_argument("--public", help="Public key output file")
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser("classical-keygen", help="Generate an Ed25519 key pair")
    p.add_argument("--output", required=True)
    p.set_defaults(func=cmd_classical_keygen)

    p = sub.add_parser("digest", help="Compute an action digest")
    p.add_argument("--action", required=True)
    p.add_argument("--authorizer", help="Bind the digest to a hybrid authorizer identity")
    p.set_defaults(func=cmd_digest)

    p = sub.add_parser("sign", help="Sign an action with a one-time key")
    p.add_argument("--key", required=True)
    p.add_argument("--action", required=True)
    p.add_argument("--output")
    p.set_defaults(func=cmd_sign)

    p = sub.add_parser("verify", help="Verify a Lamport signature")
    p.add_argument("--public", required=True)
    p.add_argument("--action", required=True)
    p.add_argument("--signature", required=True)
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("merkle-build", help="Build a Merkle registry root")
    p.add_argument("--public-keys", nargs="+", required=True)
    p.add_argument("--output")
    p.set_defaults(func=cmd_merkle_build)

    p = sub.add_parser("merkle-proof", help="Produce an inclusion proof")
    p.add_argument("--tree", required=True)
    p.add_argument("--index", type=int, required=True)
    p.add_argument("--output")
    p.set_defaults(func=cmd_merkle_proof)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
