# --- File: main.py ---
import argparse
import json
import logging
import sys
from typing import List, Optional

import config
from envelope import (
    ContextFlags,
    Decision,
    EnvelopeSealer,
    Policy,
    PolicyDistributor,
    SignedPolicyBundle,
    VerificationPipeline,
)
from envelope.errors import EnvelopeError
from envelope.key_manager import KeyManager
from pqc_primitives import AesGcmAead, Dilithium3Signer, default_kem

logger = logging.getLogger(__name__)


def context_flags_from_config() -> ContextFlags:
    attest = bytes.fromhex(config.DEVICE_ATTEST_HASH_HEX) if config.DEVICE_ATTEST_HASH_HEX else None
    return ContextFlags(
        required_algs=config.REQUIRED_ALGS.encode('utf-8'),
        hybrid=config.HYBRID_MODE,
        device_attest_hash=attest,
    )


def cmd_keygen(args: argparse.Namespace) -> int:
    key_manager = KeyManager(args.keys, hybrid=config.HYBRID_MODE)
    key_manager.ensure_parties(args.party)
    for party_id in args.party:
        print(f"{party_id}: keys ready")
    return 0


def cmd_sign_policies(args: argparse.Namespace) -> int:
    key_manager = KeyManager(args.keys, hybrid=config.HYBRID_MODE)
    with open(args.policies, 'r') as f:
        policies = [Policy.from_plain(entry) for entry in json.load(f)]

    bundle = SignedPolicyBundle.create(
        policies=policies,
        version=args.version,
        ttl_secs=config.POLICY_BUNDLE_TTL_S,
        signer_kid=args.signer,
        scheme=Dilithium3Signer(),
        signing_key=key_manager.get_signing_private_key(args.signer),
    )
    with open(args.bundle, 'w') as f:
        f.write(bundle.to_json())
    print(f"Wrote policy bundle v{bundle.version} ({len(policies)} policies) to {args.bundle}")
    return 0


def cmd_seal(args: argparse.Namespace) -> int:
    key_manager = KeyManager(args.keys, hybrid=config.HYBRID_MODE)
    sealer = EnvelopeSealer(
        kem=default_kem(config.HYBRID_MODE),
        signature_scheme=Dilithium3Signer(),
        aead=AesGcmAead(),
        flags=context_flags_from_config(),
    )
    with open(args.infile, 'rb') as f:
        payload = f.read()

    frame = sealer.seal_bytes(
        payload,
        tenant_id=args.tenant.encode('utf-8'),
        policy_id=args.policy.encode('utf-8'),
        path=args.path.encode('utf-8'),
        recipient_kem_public_key=key_manager.get_kem_public_key(args.recipient),
        sender_signing_key=key_manager.get_signing_private_key(args.sender),
    )
    with open(args.outfile, 'wb') as f:
        f.write(frame)
    print(f"Sealed {len(payload)} bytes into {args.outfile} ({len(frame)} bytes)")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    key_manager = KeyManager(args.keys, hybrid=config.HYBRID_MODE)
    signer = Dilithium3Signer()

    distributor = PolicyDistributor(signer, key_manager.get_signing_public_key(args.authority))
    with open(args.bundle, 'r') as f:
        distributor.update_bundle(SignedPolicyBundle.from_json(f.read()))
    distributor.activate_next()

    pipeline = VerificationPipeline(
        policy_store=distributor,
        kem=default_kem(config.HYBRID_MODE),
        signature_scheme=signer,
        aead=AesGcmAead(),
        kem_private_key=key_manager.get_kem_private_key(args.recipient),
        signer_public_key=key_manager.get_signing_public_key(args.sender),
        max_envelope_bytes=config.MAX_ENVELOPE_BYTES,
    )
    with open(args.infile, 'rb') as f:
        frame = f.read()

    opened = pipeline.unpack(frame, context_flags_from_config())
    if opened is None:
        print(Decision.REJECT.name)
        return 1
    if args.outfile:
        with open(args.outfile, 'wb') as f:
            f.write(opened.plaintext)
    print(Decision.ACCEPT.name)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seal and verify hybrid post-quantum envelopes.")
    parser.add_argument("--keys", default=config.ENVELOPE_KEYS_FILE, help="Party key file (JSON)")
    parser.add_argument("--bundle", default=config.POLICY_BUNDLE_FILE, help="Signed policy bundle file (JSON)")
    sub = parser.add_subparsers(dest="command", required=True)

    keygen = sub.add_parser("keygen", help="Generate keys for parties that have none")
    keygen.add_argument("--party", action="append", required=True)
    keygen.set_defaults(func=cmd_keygen)

    sign = sub.add_parser("sign-policies", help="Sign a JSON list of policies into a bundle")
    sign.add_argument("--signer", required=True, help="Party acting as policy authority")
    sign.add_argument("--policies", required=True, help="JSON file with a list of policies")
    sign.add_argument("--version", type=int, default=1)
    sign.set_defaults(func=cmd_sign_policies)

    seal = sub.add_parser("seal", help="Encrypt and sign a payload file")
    seal.add_argument("--sender", required=True)
    seal.add_argument("--recipient", required=True)
    seal.add_argument("--tenant", required=True)
    seal.add_argument("--policy", required=True)
    seal.add_argument("--path", required=True)
    seal.add_argument("--in", dest="infile", required=True)
    seal.add_argument("--out", dest="outfile", required=True)
    seal.set_defaults(func=cmd_seal)

    verify = sub.add_parser("verify", help="Verify and decrypt an envelope file")
    verify.add_argument("--sender", required=True)
    verify.add_argument("--recipient", required=True)
    verify.add_argument("--authority", required=True, help="Party that signed the policy bundle")
    verify.add_argument("--in", dest="infile", required=True)
    verify.add_argument("--out", dest="outfile")
    verify.set_defaults(func=cmd_verify)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (EnvelopeError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
