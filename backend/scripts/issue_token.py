#!/usr/bin/env python3
"""Mint an access token for a user id (local testing of the notification socket)."""

import argparse
from datetime import timedelta

from chirp.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Subject to put in the token")
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime")
    args = parser.parse_args()

    token = create_access_token(args.user_id, expires_delta=timedelta(minutes=args.minutes))
    print(token)
    print()
    print(f"ws://localhost:8000/api/v1/ws/notifications?token={token}")


if __name__ == "__main__":
    main()
