"""
Credential generation and hashing.

Two families of secrets are handled here:

- Portal tokens: 32 random bytes rendered as 64 hex chars. They are
  high-entropy, so a fast SHA-256 digest is enough for storage, and it keeps
  lookup-by-hash indexable. The first 8 chars are kept as a non-secret
  display prefix.
- Tenant API credentials: a public ``pk_live_`` key id plus an
  ``sk_live_`` secret. Secrets are hashed with bcrypt (cost 12) and verified
  with ``bcrypt.checkpw``, which is constant-time.
"""

import hashlib
import secrets
from dataclasses import dataclass
from functools import lru_cache

import bcrypt

TOKEN_BYTES = 32
TOKEN_PREFIX_LEN = 8
KEY_ID_PREFIX = "pk_live_"
SECRET_PREFIX = "sk_live_"
BCRYPT_ROUNDS = 12


@lru_cache
def _dummy_hash(rounds: int) -> str:
    """Hash checked when the key id is unknown, so a miss costs the same
    bcrypt work as a wrong secret."""
    return bcrypt.hashpw(b"gmbs-portal-dummy-secret", bcrypt.gensalt(rounds=rounds)).decode()


@dataclass(frozen=True)
class GeneratedToken:
    token: str
    hash: str
    prefix: str


@dataclass(frozen=True)
class ApiCredentials:
    key_id: str
    secret: str


def token_hash(token: str) -> str:
    """Compute SHA-256 hash of a portal token for DB indexing (never store raw token)."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token() -> GeneratedToken:
    """Generate a new random portal token with its hash and display prefix."""
    token = secrets.token_hex(TOKEN_BYTES)
    return GeneratedToken(
        token=token,
        hash=token_hash(token),
        prefix=token[:TOKEN_PREFIX_LEN],
    )


def generate_api_credentials() -> ApiCredentials:
    """Generate a public key id and its secret."""
    return ApiCredentials(
        key_id=f"{KEY_ID_PREFIX}{secrets.token_hex(16)}",
        secret=f"{SECRET_PREFIX}{secrets.token_hex(32)}",
    )


def hash_api_secret(secret: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """bcrypt-hash an API secret for storage."""
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_api_secret(
    secret: str, secret_hash: str | None, rounds: int = BCRYPT_ROUNDS,
) -> bool:
    """Verify an API secret against its bcrypt hash.

    With ``secret_hash=None`` a dummy hash of the given cost is checked
    instead and the result is always False.
    """
    target = secret_hash or _dummy_hash(rounds)
    try:
        matched = bcrypt.checkpw(secret.encode("utf-8"), target.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
    return matched and secret_hash is not None
