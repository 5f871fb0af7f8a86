"""Tests for signed access tokens."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

from labtrack.security.tokens import issue_access_token, verify_access_token


def test_round_trip():
    token = issue_access_token(user_id="user-1", secret="s", ttl_seconds=60, now=1_000)
    assert verify_access_token(token=token, secret="s", now=1_030) == "user-1"


def test_expired_token_rejected():
    token = issue_access_token(user_id="user-1", secret="s", ttl_seconds=60, now=1_000)
    assert verify_access_token(token=token, secret="s", now=1_061) is None


def test_wrong_secret_rejected():
    token = issue_access_token(user_id="user-1", secret="s", now=1_000)
    assert verify_access_token(token=token, secret="other", now=1_000) is None


def test_tampered_payload_rejected():
    token = issue_access_token(user_id="user-1", secret="s", now=1_000)
    forged = issue_access_token(user_id="user-2", secret="s", now=1_000)
    spliced = forged.split(".")[0] + "." + token.split(".")[1]
    assert verify_access_token(token=spliced, secret="s", now=1_000) is None


def test_garbage_rejected():
    assert verify_access_token(token="not-a-token", secret="s") is None
    assert verify_access_token(token="!!!.???", secret="s") is None


def test_user_id_may_contain_colons():
    token = issue_access_token(user_id="auth0:abc", secret="s", now=1_000)
    assert verify_access_token(token=token, secret="s", now=1_000) == "auth0:abc"
