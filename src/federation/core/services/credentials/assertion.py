"""Self-issued client assertions for providers without static client secrets.

Some providers (Apple) authenticate the application at the token endpoint
with a short-lived ES256 JWT signed by a private key registered with the
provider, instead of a shared secret.
"""

from __future__ import annotations

import re
import time
from threading import Lock
from typing import Any

from authlib.jose import JoseError, jwt
from cachetools import TTLCache
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from loguru import logger

from src.federation.core.errors import ConfigurationError
from src.federation.runtime.config.config_data import APPLE_ASSERTION_LIFETIME_SECONDS

PKCS8_LABEL = "PRIVATE KEY"
SEC1_LABEL = "EC PRIVATE KEY"
PEM_LINE_LENGTH = 64

_FRAMING = re.compile(r"-----(BEGIN|END) (EC )?PRIVATE KEY-----")
_ESCAPED_NEWLINES = re.compile(r"\\[rn]")
_WHITESPACE = re.compile(r"\s+")
_BASE64_BODY = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")

# Reuse a cached assertion until this close to its expiry.
_CACHE_MARGIN_SECONDS = 24 * 3600


def normalize_private_key(raw: str | bytes) -> str:
    """Re-wrap flattened key material into PKCS#8 PEM.

    Key material delivered through environment variables frequently loses
    its line breaks, gets its newlines escaped as literal ``\\n`` or arrives
    without framing at all. Any existing framing and whitespace is removed,
    the base64 body is re-chunked into 64-character lines and wrapped in
    ``PRIVATE KEY`` framing (``EC PRIVATE KEY`` when the input was framed
    that way). Applying it to its own output is a no-op.

    Raises:
        ConfigurationError: if the material is empty or is not base64.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise ConfigurationError("Private key is not ASCII text") from e

    body = _FRAMING.sub("", raw or "")
    body = _ESCAPED_NEWLINES.sub("", body)
    body = _WHITESPACE.sub("", body)

    if not body:
        raise ConfigurationError("Private key is empty")
    if not _BASE64_BODY.match(body):
        raise ConfigurationError("Private key contains non-base64 characters")
    if len(body) % 4:
        raise ConfigurationError("Private key has an invalid base64 length")

    label = SEC1_LABEL if "BEGIN EC PRIVATE KEY" in raw else PKCS8_LABEL
    lines = [body[i : i + PEM_LINE_LENGTH] for i in range(0, len(body), PEM_LINE_LENGTH)]
    return "\n".join([f"-----BEGIN {label}-----", *lines, f"-----END {label}-----"])


class ClientAssertionGenerator:
    """Build signed client assertions.

    Construction validates every identifier and parses the key, so a
    misconfiguration surfaces at startup instead of in the middle of a
    login. ``generate`` is a pure function of the configuration and the
    supplied timestamp.
    """

    algorithm = "ES256"

    def __init__(
        self,
        *,
        team_id: str,
        key_id: str,
        client_id: str,
        private_key: str | bytes,
        audience: str,
        lifetime_seconds: int = APPLE_ASSERTION_LIFETIME_SECONDS,
    ) -> None:
        missing = [
            name
            for name, value in (
                ("team_id", team_id),
                ("key_id", key_id),
                ("client_id", client_id),
                ("private_key", private_key),
                ("audience", audience),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Client assertion is missing: {', '.join(missing)}"
            )

        self.team_id = team_id
        self.key_id = key_id
        self.client_id = client_id
        self.audience = audience
        self.lifetime_seconds = lifetime_seconds
        self._pem = normalize_private_key(private_key)
        self._check_key(self._pem)

        cache_ttl = max(1, lifetime_seconds - _CACHE_MARGIN_SECONDS)
        self._cache: TTLCache[str, str] = TTLCache(maxsize=1, ttl=cache_ttl)
        self._lock = Lock()

    @staticmethod
    def _check_key(pem: str) -> None:
        try:
            key = serialization.load_pem_private_key(pem.encode("ascii"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError("Private key could not be parsed") from e

        if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(
            key.curve, ec.SECP256R1
        ):
            raise ConfigurationError("Private key must be a P-256 elliptic curve key")

    def claims(self, now: int | None = None) -> dict[str, Any]:
        issued_at = int(time.time()) if now is None else int(now)
        return {
            "iss": self.team_id,
            "sub": self.client_id,
            "aud": self.audience,
            "iat": issued_at,
            "exp": issued_at + self.lifetime_seconds,
        }

    def header(self) -> dict[str, str]:
        return {"alg": self.algorithm, "kid": self.key_id}

    def generate(self, now: int | None = None) -> str:
        """Sign a fresh assertion issued at ``now`` (defaults to the current time)."""
        try:
            token = jwt.encode(self.header(), self.claims(now), self._pem)
        except JoseError as e:
            raise ConfigurationError(f"Client assertion signing failed: {e}") from e
        return token.decode("ascii") if isinstance(token, bytes) else token

    def client_secret(self) -> str:
        """Return a cached assertion, signing a new one once it nears expiry."""
        with self._lock:
            token = self._cache.get("assertion")
            if token is None:
                token = self.generate()
                self._cache["assertion"] = token
                logger.bind(kid=self.key_id).debug("Signed new client assertion")
            return token
