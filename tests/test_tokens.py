"""
Tests for the cryptographic primitives.
"""

from datetime import timedelta
from types import SimpleNamespace

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from taskmanager.auth.errors import (
    ExpiredCredentialError,
    MalformedCredentialError,
    SignatureMismatchError,
)
from taskmanager.auth.tokens import (
    JwksKeySource,
    SecretKeySource,
    build_key_sources,
    create_session_token,
    decode_session_token,
    sign_discord_request,
    verify_discord_signature,
    verify_interaction_signature,
    verify_jwt,
)

from conftest import DISCORD_ID, ISSUER, JWT_SECRET, START, make_jwt


class StubJwksClient:
    """Stands in for jwt.PyJWKClient."""

    def __init__(self, public_key):
        self.public_key = public_key
        self.calls = 0

    def get_signing_key_from_jwt(self, token):
        self.calls += 1
        return SimpleNamespace(key=self.public_key)


def _verify(token, **kwargs):
    options = {"now": START, "issuer": ISSUER, "audience": "authenticated"}
    options.update(kwargs)
    return verify_jwt(token, [SecretKeySource(JWT_SECRET)], **options)


# =============================================================================
# JWT
# =============================================================================


class TestVerifyJwt:
    def test_valid_token_returns_claims(self):
        claims = _verify(make_jwt("alice", START))
        assert claims["sub"] == "alice"

    def test_expired_token(self):
        token = make_jwt("alice", START, exp=int((START - timedelta(seconds=1)).timestamp()))
        with pytest.raises(ExpiredCredentialError):
            _verify(token)

    def test_expiry_uses_supplied_time(self):
        token = make_jwt("alice", START)
        with pytest.raises(ExpiredCredentialError):
            _verify(token, now=START + timedelta(hours=2))

    def test_wrong_secret(self):
        token = make_jwt("alice", START, secret="another-secret-that-is-long-enough-too")
        with pytest.raises(SignatureMismatchError):
            _verify(token)

    def test_issuer_must_contain_provider_reference(self):
        token = make_jwt("alice", START, iss="https://evil.example.com/auth/v1")
        with pytest.raises(SignatureMismatchError):
            _verify(token)

    def test_wrong_audience(self):
        token = make_jwt("alice", START, aud="anon")
        with pytest.raises(SignatureMismatchError):
            _verify(token)

    def test_missing_iss_and_aud_are_tolerated(self):
        token = jwt.encode(
            {"sub": "alice", "exp": int((START + timedelta(minutes=5)).timestamp())},
            JWT_SECRET,
            algorithm="HS256",
        )
        assert _verify(token)["sub"] == "alice"

    def test_garbage_is_malformed(self):
        with pytest.raises(MalformedCredentialError):
            _verify("not-a-jwt")

    def test_missing_sub_is_malformed(self):
        token = jwt.encode(
            {"exp": int((START + timedelta(minutes=5)).timestamp())},
            JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(MalformedCredentialError):
            _verify(token)

    def test_no_key_source_for_algorithm(self):
        token = make_jwt("alice", START)
        with pytest.raises(SignatureMismatchError):
            verify_jwt(token, [], now=START)


class TestKeySources:
    @pytest.fixture(scope="class")
    def rsa_key(self):
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)

    def test_rs256_via_key_set(self, rsa_key):
        client = StubJwksClient(rsa_key.public_key())
        token = jwt.encode(
            {"sub": "alice", "aud": "authenticated", "iss": ISSUER,
             "exp": int((START + timedelta(minutes=5)).timestamp())},
            rsa_key,
            algorithm="RS256",
            headers={"kid": "k1"},
        )
        sources = [JwksKeySource(client=client), SecretKeySource(JWT_SECRET)]

        claims = verify_jwt(token, sources, now=START, issuer=ISSUER, audience="authenticated")

        assert claims["sub"] == "alice"
        assert client.calls == 1

    def test_hs256_skips_key_set(self, rsa_key):
        client = StubJwksClient(rsa_key.public_key())
        sources = [JwksKeySource(client=client), SecretKeySource(JWT_SECRET)]

        verify_jwt(make_jwt("alice", START), sources, now=START)

        assert client.calls == 0

    def test_rs256_signed_by_other_key(self, rsa_key):
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        token = jwt.encode(
            {"sub": "alice", "exp": int((START + timedelta(minutes=5)).timestamp())},
            other,
            algorithm="RS256",
        )
        with pytest.raises(SignatureMismatchError):
            verify_jwt(token, [JwksKeySource(client=StubJwksClient(rsa_key.public_key()))], now=START)

    def test_build_from_settings(self, settings):
        sources = build_key_sources(settings, jwks_client=StubJwksClient(None))
        assert [type(s) for s in sources] == [JwksKeySource, SecretKeySource]


# =============================================================================
# Sessions
# =============================================================================


class TestSessionTokens:
    def test_round_trip(self):
        token = create_session_token("alice", JWT_SECRET, now=START)
        assert decode_session_token(token, JWT_SECRET, now=START) == "alice"

    def test_expires_after_max_age(self):
        token = create_session_token("alice", JWT_SECRET, now=START, max_age=timedelta(hours=1))
        with pytest.raises(ExpiredCredentialError):
            decode_session_token(token, JWT_SECRET, now=START + timedelta(hours=1, seconds=1))

    def test_provider_token_is_not_a_session(self):
        # Provider tokens carry `sub`, sessions carry `userId`
        with pytest.raises(MalformedCredentialError):
            decode_session_token(make_jwt("alice", START), JWT_SECRET, now=START)


# =============================================================================
# Discord HMAC
# =============================================================================


class TestDiscordSignature:
    def test_known_vector(self):
        signature = sign_discord_request(DISCORD_ID, 1700000000000, "secret")
        assert len(signature) == 64
        assert signature == signature.lower()
        assert signature == sign_discord_request(DISCORD_ID, "1700000000000", "secret")

    def test_valid_signature(self):
        signature = sign_discord_request(DISCORD_ID, "1700000000000", "secret")
        verify_discord_signature(DISCORD_ID, "1700000000000", signature, "secret")

    def test_wrong_length(self):
        with pytest.raises(MalformedCredentialError):
            verify_discord_signature(DISCORD_ID, "1700000000000", "abc123", "secret")

    def test_not_hex(self):
        with pytest.raises(MalformedCredentialError):
            verify_discord_signature(DISCORD_ID, "1700000000000", "z" * 64, "secret")

    def test_whitespace_is_not_hex(self):
        signature = sign_discord_request(DISCORD_ID, "1700000000000", "secret")
        spaced = signature[:30] + "  " + signature[32:]
        with pytest.raises(MalformedCredentialError):
            verify_discord_signature(DISCORD_ID, "1700000000000", spaced, "secret")

    def test_any_mutation_fails(self):
        signature = sign_discord_request(DISCORD_ID, "1700000000000", "secret")
        flipped = signature[:-1] + ("0" if signature[-1] != "0" else "1")

        with pytest.raises(SignatureMismatchError):
            verify_discord_signature(DISCORD_ID, "1700000000000", flipped, "secret")
        with pytest.raises(SignatureMismatchError):
            verify_discord_signature("123456789012345679", "1700000000000", signature, "secret")
        with pytest.raises(SignatureMismatchError):
            verify_discord_signature(DISCORD_ID, "1700000000001", signature, "secret")
        with pytest.raises(SignatureMismatchError):
            verify_discord_signature(DISCORD_ID, "1700000000000", signature, "other")


# =============================================================================
# Discord Interactions
# =============================================================================


class TestInteractionSignature:
    @pytest.fixture
    def keypair(self):
        private = Ed25519PrivateKey.generate()
        public_hex = private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()
        return private, public_hex

    def test_valid(self, keypair):
        private, public_hex = keypair
        body = b'{"type":1}'
        signature = private.sign(b"1700000000" + body).hex()
        assert verify_interaction_signature(public_hex, signature, "1700000000", body)

    def test_tampered_body(self, keypair):
        private, public_hex = keypair
        signature = private.sign(b"1700000000" + b'{"type":1}').hex()
        assert not verify_interaction_signature(public_hex, signature, "1700000000", b'{"type":2}')

    def test_garbage_key(self):
        assert not verify_interaction_signature("nothex", "00" * 64, "1", b"")
