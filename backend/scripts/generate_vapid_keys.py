#!/usr/bin/env python3
"""Generate VAPID keys for Web Push notifications."""

import argparse
import base64
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid


def generate(output_dir: Path) -> tuple[str, str]:
    """Create a key pair, write PEM files to ``output_dir`` and return (private, public) for .env."""
    vapid = Vapid()
    vapid.generate_keys()

    output_dir.mkdir(parents=True, exist_ok=True)
    vapid.save_key(str(output_dir / "vapid_private.pem"))
    vapid.save_public_key(str(output_dir / "vapid_public.pem"))

    # pywebpush accepts the raw urlsafe-b64 private scalar as well as a PEM path
    private_number = vapid.private_key.private_numbers().private_value
    private_key = base64.urlsafe_b64encode(private_number.to_bytes(32, "big")).decode("utf-8").rstrip("=")

    # Browsers expect the uncompressed point as applicationServerKey
    public_key_bytes = vapid.public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    public_key = base64.urlsafe_b64encode(public_key_bytes).decode("utf-8").rstrip("=")
    return private_key, public_key


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--output-dir", default=".", help="Where to write the PEM files")
    parser.add_argument("--email", default="mailto:admin@example.com", help="VAPID contact claim")
    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    private_key, public_key = generate(output_dir)

    print("=" * 70)
    print("VAPID KEYS GENERATED - Add to backend/.env")
    print("=" * 70)
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_CLAIMS_EMAIL={args.email}")
    print("=" * 70)
    print("\nKeys also saved to:")
    print(f"  - {output_dir / 'vapid_private.pem'}")
    print(f"  - {output_dir / 'vapid_public.pem'}")


if __name__ == "__main__":
    main()
