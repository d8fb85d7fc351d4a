"""Key and token helpers shared by the test suite."""

import time
from typing import Any
from urllib.parse import parse_qs, urlparse

from authlib.jose import JsonWebKey, jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa


def ec_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def pkcs8_pem(key) -> str:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")


def sec1_pem(key) -> str:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    ).decode("ascii")


def public_pem(key) -> str:
    return (
        key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


def rsa_pkcs8_pem() -> str:
    return pkcs8_pem(rsa.generate_private_key(public_exponent=65537, key_size=2048))


def pem_body(pem: str) -> str:
    """The base64 body of a PEM document on a single line."""
    return "".join(line for line in pem.strip().splitlines() if not line.startswith("-----"))


def public_jwk(key, kid: str) -> dict[str, Any]:
    jwk = JsonWebKey.import_key(public_pem(key), {"kty": "EC"}).as_dict()
    jwk.update({"kid": kid, "use": "sig", "alg": "ES256"})
    return jwk


def signed_id_token(key, kid: str, **claims: Any) -> str:
    now = int(time.time())
    payload = {"iat": now, "exp": now + 600, **claims}
    token = jwt.encode({"alg": "ES256", "kid": kid}, payload, pkcs8_pem(key))
    return token.decode("ascii") if isinstance(token, bytes) else token


def query_of(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}
