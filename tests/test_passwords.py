"""Unit tests for auth/passwords.py -- bcrypt hashing.

Covers:
- hash() salts every call; verify() accepts each digest
- verify() rejects the wrong password and never raises on a corrupt digest
- passwords are truncated to bcrypt's 72-byte limit consistently
- burn() runs without a stored user
"""

from auth.passwords import PasswordHasher

hasher = PasswordHasher(rounds=4)


def test_hash_is_salted_and_verifies():
    first = hasher.hash("pw1")
    second = hasher.hash("pw1")
    assert first != second
    assert first.startswith("$2")
    assert hasher.verify("pw1", first)
    assert hasher.verify("pw1", second)


def test_verify_rejects_wrong_password():
    digest = hasher.hash("pw1")
    assert not hasher.verify("pw2", digest)
    assert not hasher.verify("", digest)


def test_verify_returns_false_for_corrupt_digest():
    assert hasher.verify("pw1", "not-a-bcrypt-hash") is False
    assert hasher.verify("pw1", "") is False


def test_rounds_are_encoded_in_digest():
    assert PasswordHasher(rounds=5).hash("pw1").split("$")[2] == "05"


def test_long_password_truncated_consistently():
    """Anything past byte 72 is ignored on both hash and verify."""
    base = "a" * 72
    digest = hasher.hash(base + "tail-one")
    assert hasher.verify(base + "tail-two", digest)
    assert hasher.verify(base, digest)


def test_non_ascii_password_roundtrip():
    digest = hasher.hash("pässwörd-බස්")
    assert hasher.verify("pässwörd-බස්", digest)
    assert not hasher.verify("passwort", digest)


def test_burn_does_not_raise():
    fresh = PasswordHasher(rounds=4)
    fresh.burn("anything")
    fresh.burn("anything else")
