"""Tests for portal token and API key pair generation."""

import hashlib

from gmbs_portal.keygen.generator import (
    generate_api_credentials,
    generate_token,
    hash_api_secret,
    token_hash,
    verify_api_secret,
)


class TestPortalToken:
    def test_token_is_64_hex(self):
        gen = generate_token()
        assert len(gen.token) == 64
        int(gen.token, 16)

    def test_hash_is_sha256_of_token(self):
        gen = generate_token()
        assert gen.hash == hashlib.sha256(gen.token.encode()).hexdigest()
        assert token_hash(gen.token) == gen.hash

    def test_prefix_is_first_8_chars(self):
        gen = generate_token()
        assert gen.prefix == gen.token[:8]

    def test_tokens_are_unique(self):
        assert len({generate_token().token for _ in range(50)}) == 50


class TestApiCredentials:
    def test_format(self):
        creds = generate_api_credentials()
        assert creds.key_id.startswith("pk_live_")
        assert len(creds.key_id) == len("pk_live_") + 32
        assert creds.secret.startswith("sk_live_")
        assert len(creds.secret) == len("sk_live_") + 64

    def test_verify_roundtrip(self):
        creds = generate_api_credentials()
        hashed = hash_api_secret(creds.secret, rounds=4)
        assert hashed != creds.secret
        assert verify_api_secret(creds.secret, hashed, rounds=4)

    def test_wrong_secret_rejected(self):
        hashed = hash_api_secret("sk_live_right", rounds=4)
        assert not verify_api_secret("sk_live_wrong", hashed, rounds=4)

    def test_unknown_key_checks_dummy_hash(self):
        assert verify_api_secret("anything", None, rounds=4) is False

    def test_malformed_hash_rejected(self):
        assert verify_api_secret("sk_live_x", "not-a-bcrypt-hash", rounds=4) is False
