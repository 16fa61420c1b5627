"""Unit tests for auth/passwords.py -- bcrypt hashing and the 72-byte limit."""

import pytest

from auth.passwords import MAX_PASSWORD_BYTES


def test_hash_is_salted(hasher):
    first = hasher.hash("s3cret-pass")
    second = hasher.hash("s3cret-pass")
    assert first != second
    assert first.startswith("$2")


def test_verify_accepts_correct_and_rejects_wrong(hasher):
    hashed = hasher.hash("s3cret-pass")
    assert hasher.verify(hashed, "s3cret-pass")
    assert not hasher.verify(hashed, "s3cret-pasS")


def test_verify_with_malformed_hash_is_false(hasher):
    assert hasher.verify("not-a-bcrypt-hash", "anything") is False


def test_password_at_limit_is_accepted(hasher):
    exactly = "a" * MAX_PASSWORD_BYTES
    assert hasher.verify(hasher.hash(exactly), exactly)


def test_password_over_limit_is_refused(hasher):
    too_long = "é" * (MAX_PASSWORD_BYTES // 2 + 1)  # 2 bytes per char in UTF-8
    with pytest.raises(ValueError):
        hasher.hash(too_long)
    assert hasher.verify(hasher.hash("short-one"), too_long) is False


def test_verify_dummy_never_raises(hasher):
    assert hasher.verify_dummy("whatever") is None
    assert hasher.verify_dummy("x" * 200) is None
