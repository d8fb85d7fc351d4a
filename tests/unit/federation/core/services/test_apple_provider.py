"""Unit tests for the Sign in with Apple adapter."""

import json

import pytest
from authlib.jose import jwt

from src.federation.core.errors import MalformedIdentityError, ProviderRejectedError
from src.federation.core.services.providers import AppleProviderAdapter
from src.federation.core.services.providers.apple import parse_user_blob
from src.federation.runtime.config.config_data import AppleProviderConfig
from tests.fixtures.core import APPLE_CLIENT_ID, APPLE_KEY_ID, APPLE_TEAM_ID
from tests.utils import ec_private_key, public_jwk, public_pem, query_of, signed_id_token

APPLE_ISSUER = "https://appleid.apple.com"
IDENTITY_KID = "apple-identity-1"


@pytest.fixture
def adapter(apple_config: AppleProviderConfig) -> AppleProviderAdapter:
    return AppleProviderAdapter(
        apple_config, callback_url="http://testserver/auth/apple/callback", timeout=5.0
    )


@pytest.fixture
def apple_jwks(apple_identity_key) -> dict:
    return {"keys": [public_jwk(apple_identity_key, IDENTITY_KID)]}


def identity_token(key, **overrides) -> str:
    claims = {
        "iss": APPLE_ISSUER,
        "aud": APPLE_CLIENT_ID,
        "sub": "001234.abcdef.0123",
        "email": "hidden@privaterelay.appleid.com",
        "email_verified": "true",
    }
    claims.update(overrides)
    return signed_id_token(key, IDENTITY_KID, **claims)


class TestAppleAuthorizationUrl:
    def test_form_post_response_mode(self, adapter: AppleProviderAdapter):
        """Should request a form_post callback with name and email scopes."""
        params = query_of(adapter.build_authorization_url("st"))
        assert params["response_mode"] == "form_post"
        assert params["response_type"] == "code id_token"
        assert params["scope"] == "name email"
        assert params["client_id"] == APPLE_CLIENT_ID
        assert params["state"] == "st"


class TestAppleExchange:
    @pytest.mark.asyncio
    async def test_verified_identity_token(
        self, adapter, apple_identity_key, apple_jwks, apple_signing_key,
        mock_http_client, mock_http_response_factory,
    ):
        """Should verify the identity token and take the name from the first-consent blob."""
        mock_http_client.post.return_value = mock_http_response_factory(
            {"access_token": "a", "id_token": identity_token(apple_identity_key)}
        )
        mock_http_client.get.return_value = mock_http_response_factory(apple_jwks)
        payload = {"user": json.dumps({"name": {"firstName": "Tim", "lastName": "Apple"}})}

        identity = await adapter.exchange_code_for_identity("apple-code", payload)

        assert identity.provider == "apple"
        assert identity.subject_id == "001234.abcdef.0123"
        assert identity.email == "hidden@privaterelay.appleid.com"
        assert identity.email_verified is True
        assert identity.first_name == "Tim"
        assert identity.last_name == "Apple"
        assert identity.avatar_url is None

    @pytest.mark.asyncio
    async def test_client_secret_is_a_signed_assertion(
        self, adapter, apple_identity_key, apple_jwks, apple_signing_key,
        mock_http_client, mock_http_response_factory,
    ):
        """Should authenticate the code exchange with an ES256 client assertion."""
        mock_http_client.post.return_value = mock_http_response_factory(
            {"id_token": identity_token(apple_identity_key)}
        )
        mock_http_client.get.return_value = mock_http_response_factory(apple_jwks)

        await adapter.exchange_code_for_identity("apple-code")

        data = mock_http_client.post.call_args.kwargs["data"]
        assertion = jwt.decode(data["client_secret"], public_pem(apple_signing_key))
        assert assertion.header["kid"] == APPLE_KEY_ID
        assert assertion["iss"] == APPLE_TEAM_ID
        assert assertion["sub"] == APPLE_CLIENT_ID
        assert assertion["aud"] == APPLE_ISSUER
        assert data["code"] == "apple-code"

    @pytest.mark.asyncio
    async def test_repeat_login_has_no_names(
        self, adapter, apple_identity_key, apple_jwks, mock_http_client, mock_http_response_factory
    ):
        """Should leave name fields empty when Apple omits the user blob."""
        mock_http_client.post.return_value = mock_http_response_factory(
            {"id_token": identity_token(apple_identity_key, email=None, email_verified=None)}
        )
        mock_http_client.get.return_value = mock_http_response_factory(apple_jwks)

        identity = await adapter.exchange_code_for_identity("code", {})
        assert identity.first_name is None
        assert identity.last_name is None
        assert identity.email is None

    @pytest.mark.asyncio
    async def test_posted_id_token_fallback(
        self, adapter, apple_identity_key, apple_jwks, mock_http_client, mock_http_response_factory
    ):
        """Should fall back to the id_token posted with the callback."""
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "a"})
        mock_http_client.get.return_value = mock_http_response_factory(apple_jwks)

        identity = await adapter.exchange_code_for_identity(
            "code", {"id_token": identity_token(apple_identity_key, sub="posted-sub")}
        )
        assert identity.subject_id == "posted-sub"

    @pytest.mark.asyncio
    async def test_wrong_audience_is_rejected(
        self, adapter, apple_identity_key, apple_jwks, mock_http_client, mock_http_response_factory
    ):
        mock_http_client.post.return_value = mock_http_response_factory(
            {"id_token": identity_token(apple_identity_key, aud="com.someone.else")}
        )
        mock_http_client.get.return_value = mock_http_response_factory(apple_jwks)

        with pytest.raises(MalformedIdentityError):
            await adapter.exchange_code_for_identity("code")

    @pytest.mark.asyncio
    async def test_token_signed_by_unknown_key(
        self, adapter, apple_jwks, mock_http_client, mock_http_response_factory
    ):
        """Should refuse identity tokens whose signature does not verify."""
        forged = identity_token(ec_private_key())
        mock_http_client.post.return_value = mock_http_response_factory({"id_token": forged})
        mock_http_client.get.return_value = mock_http_response_factory(apple_jwks)

        with pytest.raises(MalformedIdentityError):
            await adapter.exchange_code_for_identity("code")

    @pytest.mark.asyncio
    async def test_no_identity_token(self, adapter, mock_http_client, mock_http_response_factory):
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "a"})

        with pytest.raises(MalformedIdentityError):
            await adapter.exchange_code_for_identity("code", {})

    @pytest.mark.asyncio
    async def test_invalid_grant(self, adapter, mock_http_client, mock_http_response_factory):
        mock_http_client.post.return_value = mock_http_response_factory(
            {"error": "invalid_grant"}, status_code=400
        )

        with pytest.raises(ProviderRejectedError) as exc_info:
            await adapter.exchange_code_for_identity("code")
        assert exc_info.value.error_code == "invalid_grant"

    @pytest.mark.asyncio
    async def test_unverified_mode_reads_claims(
        self, apple_config, apple_identity_key, mock_http_client, mock_http_response_factory
    ):
        apple_config.verify_id_token = False
        adapter = AppleProviderAdapter(apple_config, callback_url="http://t/cb", timeout=5.0)
        mock_http_client.post.return_value = mock_http_response_factory(
            {"id_token": identity_token(apple_identity_key, sub="raw-sub")}
        )

        identity = await adapter.exchange_code_for_identity("code")
        assert identity.subject_id == "raw-sub"
        mock_http_client.get.assert_not_called()


class TestUserBlob:
    def test_parses_json_string(self):
        blob = parse_user_blob('{"name": {"firstName": "A"}, "email": "a@example.com"}')
        assert blob["email"] == "a@example.com"

    @pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]"])
    def test_unreadable_blob_is_empty(self, raw):
        assert parse_user_blob(raw) == {}
