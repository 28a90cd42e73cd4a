"""Tests for app/services/passwords.py

Run with:  pytest tests/test_passwords.py -v
"""

from app.services.passwords import hash_password, verify_password


def test_hash_is_bcrypt_and_salted():
    first = hash_password("correct horse", rounds=4)
    second = hash_password("correct horse", rounds=4)

    assert first.startswith("$2b$04$")
    assert first != second
    assert verify_password("correct horse", first)
    assert verify_password("correct horse", second)


def test_wrong_password():
    stored = hash_password("correct horse", rounds=4)
    assert not verify_password("correct horsE", stored)
    assert not verify_password("", stored)


def test_missing_or_malformed_hash():
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")
    assert not verify_password("anything", "pbkdf2_sha256$1000$salt$abcd")


def test_long_passwords_are_truncated_consistently():
    long_password = "x" * 100
    stored = hash_password(long_password, rounds=4)
    assert verify_password(long_password, stored)
    assert verify_password("x" * 72, stored)
