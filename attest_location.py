#!/usr/bin/env python3
"""
Location Attestation CLI

Signs "I was here, now, saying this" with the configured P-521 private key,
and verifies such attestations against a public key.

Usage:
    # Sign using the configured location provider and the current time
    python3 attest_location.py sign --message "checkpoint-1"

    # Sign an explicit position/time
    python3 attest_location.py sign --lat 35.681 --lon 139.767 \\
        --timestamp 2024-01-01T00:00:00.000Z --message "checkpoint-1" > att.json

    # Verify (exit 0 = valid, 1 = invalid)
    python3 attest_location.py verify att.json --pubkey config/pubkey.pem

    # Show the exact bytes that get signed
    python3 attest_location.py canonical --lat 35.681 --lon 139.767 \\
        --timestamp 2024-01-01T00:00:00.000Z --message "checkpoint-1"

Options:
    --key PATH          Private key PEM (default: ATTEST_PRIVATE_KEY_* or config/privkey.pem)
    --pubkey PATH       Public key PEM (default: ATTEST_PUBLIC_KEY_* or config/pubkey.pem)
    --verbose           Show debug logging
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

# Load environment variables FIRST (before settings are read)
load_dotenv()

from geoattest.core.config import get_settings
from geoattest.core.location import (
    LocationUnavailable,
    capture_current_position,
    current_timestamp,
)
from geoattest.core.signing.canonical import Payload, canonicalize
from geoattest.core.signing.keys import (
    KeyImportError,
    load_private_key,
    load_public_key,
    load_signing_key_from_settings,
    load_verifying_key_from_settings,
)
from geoattest.core.signing.verify import SignedAttestation, create_attestation, verify_attestation

logger = logging.getLogger("attest_location")

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_CONFIG = 2


def _build_payload(args: argparse.Namespace) -> Payload:
    if (args.lat is None) != (args.lon is None):
        raise ValueError("--lat and --lon must be given together")

    if args.lat is None:
        settings = get_settings()
        position = asyncio.run(capture_current_position(
            timeout=settings.location_timeout_seconds,
            maximum_age=settings.location_maximum_age_seconds,
        ))
        latitude, longitude = position.latitude, position.longitude
    else:
        latitude, longitude = args.lat, args.lon

    return Payload(
        latitude=latitude,
        longitude=longitude,
        timestamp=args.timestamp or current_timestamp(),
        message=args.message,
    )


def cmd_sign(args: argparse.Namespace) -> int:
    try:
        key = load_private_key(args.key) if args.key else load_signing_key_from_settings()
    except (OSError, KeyImportError) as e:
        print(f"❌ Cannot load private key: {e}", file=sys.stderr)
        return EXIT_CONFIG
    if key is None:
        print("❌ No private key configured (use --key or ATTEST_PRIVATE_KEY_PATH)", file=sys.stderr)
        return EXIT_CONFIG

    try:
        payload = _build_payload(args)
    except LocationUnavailable as e:
        print(f"❌ Location unavailable: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except (ValueError, ValidationError) as e:
        print(f"❌ Invalid payload: {e}", file=sys.stderr)
        return EXIT_CONFIG

    attestation = create_attestation(payload, key)
    logger.debug(f"Signed payload: {canonicalize(payload)!r}")
    print(attestation.model_dump_json(indent=2 if args.pretty else None))
    return EXIT_OK


def cmd_verify(args: argparse.Namespace) -> int:
    try:
        key = load_public_key(args.pubkey) if args.pubkey else load_verifying_key_from_settings()
    except (OSError, KeyImportError) as e:
        print(f"❌ Cannot load public key: {e}", file=sys.stderr)
        return EXIT_CONFIG
    if key is None:
        print("❌ No public key configured (use --pubkey or ATTEST_PUBLIC_KEY_PATH)", file=sys.stderr)
        return EXIT_CONFIG

    if args.file == "-":
        raw = sys.stdin.read()
    else:
        try:
            with open(args.file, encoding="utf-8") as f:
                raw = f.read()
        except OSError as e:
            print(f"❌ Cannot read attestation: {e}", file=sys.stderr)
            return EXIT_CONFIG

    try:
        attestation = SignedAttestation.model_validate_json(raw)
    except ValidationError as e:
        logger.debug(f"Unparseable attestation: {e}")
        print("❌ INVALID")
        return EXIT_INVALID

    if verify_attestation(attestation, key):
        print(f"✅ VALID ({key.fingerprint})")
        return EXIT_OK
    print("❌ INVALID")
    return EXIT_INVALID


def cmd_canonical(args: argparse.Namespace) -> int:
    try:
        payload = Payload(
            latitude=args.lat,
            longitude=args.lon,
            timestamp=args.timestamp,
            message=args.message,
        )
    except ValidationError as e:
        print(f"❌ Invalid payload: {e}", file=sys.stderr)
        return EXIT_CONFIG
    sys.stdout.buffer.write(canonicalize(payload) + b"\n")
    sys.stdout.flush()
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sign and verify location attestations")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sign = sub.add_parser("sign", help="Sign the current (or given) position")
    sign.add_argument("--message", required=True)
    sign.add_argument("--lat", type=float)
    sign.add_argument("--lon", type=float)
    sign.add_argument("--timestamp", help="ISO-8601 UTC, e.g. 2024-01-01T00:00:00.000Z (default: now)")
    sign.add_argument("--key", help="Private key PEM file")
    sign.add_argument("--pretty", action="store_true", help="Indent JSON output")
    sign.set_defaults(func=cmd_sign)

    verify = sub.add_parser("verify", help="Verify an attestation JSON file ('-' for stdin)")
    verify.add_argument("file", nargs="?", default="-")
    verify.add_argument("--pubkey", help="Public key PEM file")
    verify.set_defaults(func=cmd_verify)

    canonical = sub.add_parser("canonical", help="Print the canonical bytes of a payload")
    canonical.add_argument("--lat", type=float, required=True)
    canonical.add_argument("--lon", type=float, required=True)
    canonical.add_argument("--timestamp", required=True)
    canonical.add_argument("--message", required=True)
    canonical.set_defaults(func=cmd_canonical)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level.upper(),
        format='%(levelname)s: %(message)s',
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
