"""
Authorization token codec tests.

Guards against:
1. Tampered or foreign-signed tokens being accepted
2. Expired tokens being accepted
3. Verification failures escaping as exceptions
4. Minting without a configured secret
"""
from datetime import timedelta

import pytest
from jose import jwt

from storefront.services.errors import ConfigurationError
from storefront.services.token_codec import ALGORITHM, AuthClaims, TokenCodec

SECRET = "unit-test-secret"


def _claims(**overrides):
    values = {
        "user_id": "42",
        "email": "jane@example.com",
        "name": "Jane",
        "session_token": "a" * 64,
        "role": "customer",
        "is_admin": 0,
    }
    values.update(overrides)
    return AuthClaims(**values)


def test_mint_then_verify_returns_claims():
    codec = TokenCodec(SECRET)
    token = codec.mint(_claims())

    assert token.count(".") == 2
    claims = codec.verify(token)
    assert claims.user_id == "42"
    assert claims.email == "jane@example.com"
    assert claims.session_token == "a" * 64
    assert claims.role == "customer"
    assert claims.is_admin == 0


def test_expiry_is_issued_at_plus_ttl():
    codec = TokenCodec(SECRET, ttl=timedelta(days=7))
    claims = codec.verify(codec.mint(_claims()))

    assert claims.expires_at - claims.issued_at == timedelta(days=7)


def test_tampered_token_is_rejected():
    codec = TokenCodec(SECRET)
    header, payload, signature = codec.mint(_claims()).split(".")
    flipped = "A" if signature[0] != "A" else "B"

    assert codec.verify(f"{header}.{payload}.{flipped}{signature[1:]}") is None


def test_token_signed_with_other_secret_is_rejected():
    token = TokenCodec("someone-else").mint(_claims())
    assert TokenCodec(SECRET).verify(token) is None


def test_expired_token_is_rejected():
    codec = TokenCodec(SECRET, ttl=timedelta(seconds=-30))
    assert codec.verify(codec.mint(_claims())) is None


def test_garbage_is_rejected_without_raising():
    codec = TokenCodec(SECRET)
    assert codec.verify("not-a-token") is None
    assert codec.verify("") is None


def test_token_without_session_claim_is_rejected():
    token = jwt.encode({"sub": "42", "email": "jane@example.com"}, SECRET, algorithm=ALGORITHM)
    assert TokenCodec(SECRET).verify(token) is None


def test_mint_without_secret_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        TokenCodec("").mint(_claims())


def test_verify_without_secret_returns_none():
    token = TokenCodec(SECRET).mint(_claims())
    assert TokenCodec("").verify(token) is None


@pytest.mark.parametrize(
    "role,is_admin,expected",
    [
        ("admin", 0, True),
        ("Admin", 0, True),
        ("customer", 1, True),
        ("staff", 0, False),
        ("customer", 0, False),
    ],
)
def test_admin_access(role, is_admin, expected):
    assert _claims(role=role, is_admin=is_admin).has_admin_access is expected
