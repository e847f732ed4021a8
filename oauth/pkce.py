"""PKCE (RFC 7636) helpers. Only the S256 method is supported."""

import base64
import hashlib
import hmac
import secrets

SUPPORTED_METHODS = ("S256",)


def derive_challenge(verifier: str) -> str:
    """Return BASE64URL(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def verify_challenge(stored_challenge: str, verifier: str) -> bool:
    """Check that ``verifier`` hashes to the challenge stored at /authorize."""
    return hmac.compare_digest(derive_challenge(verifier).encode(), stored_challenge.encode())


def generate_code_verifier(nbytes: int = 32) -> str:
    """Generate a random verifier (43+ URL-safe characters for nbytes >= 32)."""
    if nbytes < 32:
        raise ValueError("nbytes must be at least 32")
    return secrets.token_urlsafe(nbytes)
