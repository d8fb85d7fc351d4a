"""Unit tests for the static-secret OAuth2 provider adapters and the registry."""

import httpx
import pytest

from src.federation.core.errors import (
    ConfigurationError,
    MalformedIdentityError,
    ProviderNotConfiguredError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from src.federation.core.services.providers import (
    FacebookProviderAdapter,
    GitHubProviderAdapter,
    GoogleProviderAdapter,
    build_registry,
)
from src.federation.runtime.config.config_data import ConfigData, FederationConfig
from tests.utils import query_of

CALLBACK = "http://testserver/auth/{}/callback"


def google_adapter() -> GoogleProviderAdapter:
    config = FederationConfig().google
    config.client_id = "google-client-id"
    config.client_secret = "google-client-secret"
    return GoogleProviderAdapter(config, callback_url=CALLBACK.format("google"), timeout=5.0)


def github_adapter() -> GitHubProviderAdapter:
    config = FederationConfig().github
    config.client_id = "github-client-id"
    config.client_secret = "github-client-secret"
    return GitHubProviderAdapter(config, callback_url=CALLBACK.format("github"), timeout=5.0)


def facebook_adapter() -> FacebookProviderAdapter:
    config = FederationConfig().facebook
    config.client_id = "fb-app-id"
    config.client_secret = "fb-app-secret"
    return FacebookProviderAdapter(config, callback_url=CALLBACK.format("facebook"), timeout=5.0)


class TestAuthorizationUrl:
    def test_google_url_carries_state_and_callback(self):
        """Should build a code-flow URL bound to the given state."""
        url = google_adapter().build_authorization_url("state-123")
        assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")

        params = query_of(url)
        assert params["state"] == "state-123"
        assert params["client_id"] == "google-client-id"
        assert params["redirect_uri"] == "http://testserver/auth/google/callback"
        assert params["response_type"] == "code"
        assert params["scope"] == "openid email profile"
        assert "client_secret" not in params

    def test_facebook_scopes_are_comma_separated(self):
        params = query_of(facebook_adapter().build_authorization_url("s"))
        assert params["scope"] == "email"
        assert params["client_id"] == "fb-app-id"


class TestGoogleExchange:
    @pytest.mark.asyncio
    async def test_exchange_code_for_identity(self, mock_http_client, mock_http_response_factory):
        """Should redeem the code and map the userinfo document."""
        mock_http_client.post.return_value = mock_http_response_factory(
            {"access_token": "at-1", "token_type": "Bearer", "expires_in": 3600}
        )
        mock_http_client.get.return_value = mock_http_response_factory(
            {
                "id": "1098",
                "email": "ada@example.com",
                "verified_email": True,
                "given_name": "Ada",
                "family_name": "Lovelace",
                "picture": "https://example.com/ada.png",
            }
        )

        identity = await google_adapter().exchange_code_for_identity("code-1")

        assert identity.provider == "google"
        assert identity.subject_id == "1098"
        assert identity.email == "ada@example.com"
        assert identity.email_verified is True
        assert identity.first_name == "Ada"
        assert identity.last_name == "Lovelace"
        assert identity.avatar_url == "https://example.com/ada.png"

        token_call = mock_http_client.post.call_args
        assert token_call.args[0] == "https://oauth2.googleapis.com/token"
        assert token_call.kwargs["data"]["code"] == "code-1"
        assert token_call.kwargs["data"]["grant_type"] == "authorization_code"
        assert token_call.kwargs["data"]["redirect_uri"] == "http://testserver/auth/google/callback"

        profile_call = mock_http_client.get.call_args
        assert profile_call.kwargs["headers"]["Authorization"] == "Bearer at-1"

    @pytest.mark.asyncio
    async def test_token_endpoint_rejection(self, mock_http_client, mock_http_response_factory):
        """Should raise ProviderRejectedError carrying the provider's error code."""
        mock_http_client.post.return_value = mock_http_response_factory(
            {"error": "invalid_grant", "error_description": "Bad Request"}, status_code=400
        )

        with pytest.raises(ProviderRejectedError) as exc_info:
            await google_adapter().exchange_code_for_identity("used-code")

        assert exc_info.value.error_code == "invalid_grant"
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "provider_rejected"
        mock_http_client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_userinfo_rejection(self, mock_http_client, mock_http_response_factory):
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "at"})
        mock_http_client.get.return_value = mock_http_response_factory({}, status_code=401)

        with pytest.raises(ProviderRejectedError) as exc_info:
            await google_adapter().exchange_code_for_identity("code")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, mock_http_client):
        """Should map transport failures to ProviderUnavailableError without retrying."""
        mock_http_client.post.side_effect = httpx.ConnectTimeout("timed out")

        with pytest.raises(ProviderUnavailableError):
            await google_adapter().exchange_code_for_identity("code")
        assert mock_http_client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_access_token(self, mock_http_client, mock_http_response_factory):
        mock_http_client.post.return_value = mock_http_response_factory({"token_type": "Bearer"})

        with pytest.raises(MalformedIdentityError):
            await google_adapter().exchange_code_for_identity("code")

    @pytest.mark.asyncio
    async def test_profile_without_subject(self, mock_http_client, mock_http_response_factory):
        """Should raise MalformedIdentityError when the profile has no user id."""
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "at"})
        mock_http_client.get.return_value = mock_http_response_factory({"email": "x@example.com"})

        with pytest.raises(MalformedIdentityError):
            await google_adapter().exchange_code_for_identity("code")

    @pytest.mark.asyncio
    async def test_non_json_body(self, mock_http_client, mock_http_response_factory):
        response = mock_http_response_factory(None)
        response.json.side_effect = ValueError("not json")
        mock_http_client.post.return_value = response

        with pytest.raises(MalformedIdentityError):
            await google_adapter().exchange_code_for_identity("code")


class TestGitHubExchange:
    @pytest.mark.asyncio
    async def test_error_in_200_token_response(self, mock_http_client, mock_http_response_factory):
        """Should treat GitHub's 200-with-error token response as a rejection."""
        mock_http_client.post.return_value = mock_http_response_factory(
            {"error": "bad_verification_code", "error_description": "The code is incorrect"}
        )

        with pytest.raises(ProviderRejectedError) as exc_info:
            await github_adapter().exchange_code_for_identity("code")
        assert exc_info.value.error_code == "bad_verification_code"

    @pytest.mark.asyncio
    async def test_private_email_is_looked_up(self, mock_http_client, mock_http_response_factory):
        """Should fall back to the emails endpoint and prefer the primary address."""
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "gh"})
        mock_http_client.get.side_effect = [
            mock_http_response_factory(
                {"id": 42, "login": "octo", "name": "Mona Lisa Octocat", "email": None,
                 "avatar_url": "https://avatars.example.com/42"}
            ),
            mock_http_response_factory(
                [
                    {"email": "old@example.com", "primary": False, "verified": True},
                    {"email": "mona@example.com", "primary": True, "verified": True},
                ]
            ),
        ]

        identity = await github_adapter().exchange_code_for_identity("code")

        assert identity.subject_id == "42"
        assert identity.email == "mona@example.com"
        assert identity.email_verified is True
        assert identity.first_name == "Mona"
        assert identity.last_name == "Lisa Octocat"
        assert identity.avatar_url == "https://avatars.example.com/42"
        assert mock_http_client.get.call_args_list[1].args[0] == "https://api.github.com/user/emails"

    @pytest.mark.asyncio
    async def test_email_lookup_forbidden(self, mock_http_client, mock_http_response_factory):
        """Should continue without an email when the scope was not granted."""
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "gh"})
        mock_http_client.get.side_effect = [
            mock_http_response_factory({"id": 7, "name": None, "email": None}),
            mock_http_response_factory({"message": "Forbidden"}, status_code=403),
        ]

        identity = await github_adapter().exchange_code_for_identity("code")
        assert identity.subject_id == "7"
        assert identity.email is None
        assert identity.first_name is None


class TestFacebookExchange:
    @pytest.mark.asyncio
    async def test_profile_mapping(self, mock_http_client, mock_http_response_factory):
        mock_http_client.post.return_value = mock_http_response_factory({"access_token": "fb"})
        mock_http_client.get.return_value = mock_http_response_factory(
            {
                "id": "10001",
                "email": "fb@example.com",
                "first_name": "Grace",
                "last_name": "Hopper",
                "picture": {"data": {"url": "https://graph.example.com/pic.jpg"}},
            }
        )

        identity = await facebook_adapter().exchange_code_for_identity("code")

        assert identity.subject_id == "10001"
        assert identity.avatar_url == "https://graph.example.com/pic.jpg"
        assert identity.first_name == "Grace"
        params = mock_http_client.get.call_args.kwargs["params"]
        assert params["access_token"] == "fb"
        assert "email" in params["fields"]

    @pytest.mark.asyncio
    async def test_graph_error_object(self, mock_http_client, mock_http_response_factory):
        mock_http_client.post.return_value = mock_http_response_factory(
            {"error": {"message": "Invalid verification code format.", "type": "OAuthException"}},
            status_code=400,
        )

        with pytest.raises(ProviderRejectedError) as exc_info:
            await facebook_adapter().exchange_code_for_identity("code")
        assert exc_info.value.error_code == "OAuthException"
        assert exc_info.value.description == "Invalid verification code format."


class TestProviderRegistry:
    def test_only_configured_providers_are_registered(self, test_config: ConfigData):
        """Should omit providers without credentials."""
        registry = build_registry(test_config)
        assert registry.names() == ["google", "github", "apple"]
        assert "facebook" not in registry

    def test_require_unknown_provider(self, test_config: ConfigData):
        registry = build_registry(test_config)
        with pytest.raises(ProviderNotConfiguredError) as exc_info:
            registry.require("facebook")
        assert exc_info.value.code == "provider_not_configured"

    def test_disabled_provider_is_skipped(self, test_config: ConfigData):
        test_config.federation.google.enabled = False
        assert "google" not in build_registry(test_config)

    def test_empty_configuration(self):
        assert build_registry(ConfigData()).names() == []

    def test_invalid_apple_key_fails_at_startup(self, test_config: ConfigData):
        """Should surface a broken Apple key as ConfigurationError when building."""
        test_config.federation.apple.private_key = "QUJDRA=="
        with pytest.raises(ConfigurationError):
            build_registry(test_config)

    def test_registry_is_read_only(self, test_config: ConfigData):
        registry = build_registry(test_config)
        with pytest.raises(TypeError):
            registry["facebook"] = registry["google"]  # type: ignore[index]
