"""Sign in with Apple.

Apple differs from the other providers in three ways: the client secret is
a self-signed ES256 assertion, the callback arrives as a ``form_post`` and
the identity lives in a signed ``id_token`` instead of a profile endpoint.
The user's name is only sent once, as a JSON ``user`` field on the very
first consent.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from authlib.jose import JoseError, JsonWebKey, jwt
from cachetools import TTLCache
from loguru import logger
from pydantic import ValidationError

from src.federation.core.errors import MalformedIdentityError
from src.federation.core.models import ExternalIdentity
from src.federation.core.services.credentials import ClientAssertionGenerator
from src.federation.core.services.providers.base import ProviderAdapter
from src.federation.runtime.config.config_data import AppleProviderConfig

ID_TOKEN_LEEWAY_SECONDS = 60


class AppleProviderAdapter(ProviderAdapter):
    name = "apple"

    def __init__(
        self,
        config: AppleProviderConfig,
        *,
        callback_url: str,
        timeout: float,
        assertion: ClientAssertionGenerator | None = None,
    ) -> None:
        super().__init__(callback_url=callback_url, scopes=config.scopes, timeout=timeout)
        self.config = config
        self.assertion = assertion or ClientAssertionGenerator(
            team_id=config.team_id,
            key_id=config.key_id,
            client_id=config.client_id,
            private_key=config.private_key,
            audience=config.issuer,
            lifetime_seconds=config.assertion_lifetime_seconds,
        )
        self._jwks_cache: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=1, ttl=3600)

    def build_authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code id_token",
            "response_mode": "form_post",
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{self.config.authorization_endpoint}?{urlencode(params)}"

    async def exchange_code_for_identity(
        self, code: str, payload: Mapping[str, Any] | None = None
    ) -> ExternalIdentity:
        payload = payload or {}
        tokens = await self._post_form(
            self.config.token_endpoint,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.callback_url,
                "client_id": self.config.client_id,
                "client_secret": self.assertion.client_secret(),
            },
        )
        tokens = self._check_token_response(tokens)

        id_token = tokens.get("id_token") or payload.get("id_token")
        if not id_token:
            raise MalformedIdentityError("apple returned no identity token")

        if self.config.verify_id_token:
            claims = await self.verify_identity_token(id_token)
        else:
            claims = read_unverified_claims(id_token)

        return self.map_claims(claims, parse_user_blob(payload.get("user")))

    async def verify_identity_token(self, id_token: str) -> dict[str, Any]:
        """Check signature, issuer, audience and expiry of an identity token."""
        kid = read_unverified_header(id_token).get("kid")

        keys = self._matching_keys(await self._fetch_jwks(), kid)
        if kid and not keys:
            # Apple rotates keys; refetch once before giving up
            self._jwks_cache.clear()
            keys = self._matching_keys(await self._fetch_jwks(), kid)
        if not keys:
            raise MalformedIdentityError("apple identity token signed with an unknown key")

        claims_options = {
            "iss": {"essential": True, "value": self.config.issuer},
            "aud": {"essential": True, "value": self.config.client_id},
            "sub": {"essential": True},
        }
        try:
            claims = jwt.decode(
                id_token,
                JsonWebKey.import_key_set({"keys": keys}),
                claims_options=claims_options,
            )
            claims.validate(leeway=ID_TOKEN_LEEWAY_SECONDS)
        except (JoseError, ValueError) as e:
            logger.bind(provider=self.name, error_type=type(e).__name__).warning(
                "Identity token failed verification"
            )
            raise MalformedIdentityError("apple identity token failed verification") from e
        return dict(claims)

    async def _fetch_jwks(self) -> dict[str, Any]:
        jwks = self._jwks_cache.get(self.config.jwks_uri)
        if jwks:
            return jwks
        jwks = await self._get_json(self.config.jwks_uri)
        if not isinstance(jwks, dict) or not isinstance(jwks.get("keys"), list):
            raise MalformedIdentityError("apple key set is malformed")
        self._jwks_cache[self.config.jwks_uri] = jwks
        return jwks

    @staticmethod
    def _matching_keys(jwks: dict[str, Any], kid: str | None) -> list[dict[str, Any]]:
        keys = [k for k in jwks.get("keys", []) if isinstance(k, dict)]
        if kid:
            return [k for k in keys if k.get("kid") == kid]
        return keys

    def map_claims(
        self, claims: Mapping[str, Any], user_blob: Mapping[str, Any]
    ) -> ExternalIdentity:
        subject = claims.get("sub")
        if not subject:
            raise MalformedIdentityError("apple identity token has no subject")

        verified = claims.get("email_verified")
        if isinstance(verified, str):
            verified = verified.lower() == "true"

        name = user_blob.get("name") if isinstance(user_blob.get("name"), dict) else {}
        try:
            return ExternalIdentity(
                provider=self.name,
                subject_id=subject,
                email=claims.get("email") or user_blob.get("email"),
                email_verified=verified,
                first_name=name.get("firstName"),
                last_name=name.get("lastName"),
            )
        except ValidationError as e:
            raise MalformedIdentityError("apple identity token has invalid claims") from e


def parse_user_blob(raw: Any) -> dict[str, Any]:
    """Decode the ``user`` field Apple posts on first consent."""
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        blob = json.loads(raw)
    except (TypeError, ValueError):
        logger.bind(provider="apple").warning("Ignoring unreadable user field")
        return {}
    return blob if isinstance(blob, dict) else {}


def _decode_segment(segment: str) -> dict[str, Any]:
    padded = segment + "=" * (-len(segment) % 4)
    try:
        value = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, UnicodeError) as e:
        raise MalformedIdentityError("identity token is not a valid JWT") from e
    if not isinstance(value, dict):
        raise MalformedIdentityError("identity token is not a valid JWT")
    return value


def _segments(token: str) -> list[str]:
    parts = token.split(".") if isinstance(token, str) else []
    if len(parts) != 3 or not all(parts[:2]):
        raise MalformedIdentityError("identity token is not a valid JWT")
    return parts


def read_unverified_header(token: str) -> dict[str, Any]:
    return _decode_segment(_segments(token)[0])


def read_unverified_claims(token: str) -> dict[str, Any]:
    return _decode_segment(_segments(token)[1])
