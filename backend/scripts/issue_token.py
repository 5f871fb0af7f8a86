#!/usr/bin/env python3
"""Issue a signed access token for local development.

In production the login service issues tokens with the shared AUTH_SECRET.
This script stands in for it when exercising the API or the event stream by
hand against a server with auth enabled.

Usage:
    uv run python scripts/issue_token.py --user-id <user-id>
    uv run python scripts/issue_token.py --user-id <user-id> --ttl 600
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from labtrack.config import settings
from labtrack.security.tokens import issue_access_token

logger = logging.getLogger("issue_token")


def issue(user_id: str, ttl_seconds: int | None = None, secret: str | None = None) -> str:
    secret = settings.auth_secret if secret is None else secret
    if not secret:
        raise SystemExit("AUTH_SECRET is not set; the server is in dev mode and accepts X-User-Id instead")
    ttl = ttl_seconds if ttl_seconds is not None else settings.access_token_ttl_seconds
    logger.info("Issuing token for %s (ttl %ds)", user_id, ttl)
    return issue_access_token(user_id=user_id, secret=secret, ttl_seconds=ttl)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Issue a development access token")
    parser.add_argument("--user-id", required=True, help="User id the token is bound to")
    parser.add_argument("--ttl", type=int, default=None, help="Lifetime in seconds")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    print(issue(args.user_id, args.ttl))


if __name__ == "__main__":
    main()
