"""Startup-time registry of the providers that are actually usable."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType

from loguru import logger

from src.federation.core.errors import ConfigurationError, ProviderNotConfiguredError
from src.federation.core.services.providers.apple import AppleProviderAdapter
from src.federation.core.services.providers.base import ProviderAdapter
from src.federation.core.services.providers.facebook import FacebookProviderAdapter
from src.federation.core.services.providers.github import GitHubProviderAdapter
from src.federation.core.services.providers.google import GoogleProviderAdapter
from src.federation.runtime.config.config_data import ConfigData

PROVIDER_ORDER = ("google", "github", "facebook", "apple")


class ProviderRegistry(Mapping[str, ProviderAdapter]):
    """Read-only map of provider name to adapter.

    Built once at startup; a provider missing credentials simply is not in
    the map, so callers never see a half-configured adapter.
    """

    def __init__(self, adapters: Mapping[str, ProviderAdapter]) -> None:
        self._adapters = MappingProxyType(dict(adapters))

    def __getitem__(self, name: str) -> ProviderAdapter:
        return self._adapters[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def names(self) -> list[str]:
        return list(self._adapters)

    def require(self, name: str) -> ProviderAdapter:
        adapter = self._adapters.get(name)
        if adapter is None:
            raise ProviderNotConfiguredError(name)
        return adapter


def callback_url_for(config: ConfigData, provider: str) -> str:
    path = config.federation.callback_path.format(provider=provider)
    return f"{config.app.base_url.rstrip('/')}{path}"


def build_registry(config: ConfigData) -> ProviderRegistry:
    """Instantiate adapters for every fully configured provider.

    A configured Apple key that cannot be parsed is a ``ConfigurationError``
    at startup rather than a failure on the first login.
    """
    fed = config.federation
    timeout = fed.http_timeout_seconds
    factories: dict[str, tuple[bool, Callable[[], ProviderAdapter]]] = {
        "google": (
            fed.google.is_configured,
            lambda: GoogleProviderAdapter(
                fed.google, callback_url=callback_url_for(config, "google"), timeout=timeout
            ),
        ),
        "github": (
            fed.github.is_configured,
            lambda: GitHubProviderAdapter(
                fed.github, callback_url=callback_url_for(config, "github"), timeout=timeout
            ),
        ),
        "facebook": (
            fed.facebook.is_configured,
            lambda: FacebookProviderAdapter(
                fed.facebook,
                callback_url=callback_url_for(config, "facebook"),
                timeout=timeout,
            ),
        ),
        "apple": (
            fed.apple.is_configured,
            lambda: AppleProviderAdapter(
                fed.apple, callback_url=callback_url_for(config, "apple"), timeout=timeout
            ),
        ),
    }

    adapters: dict[str, ProviderAdapter] = {}
    for name in PROVIDER_ORDER:
        configured, factory = factories[name]
        if not configured:
            logger.bind(provider=name).info("Provider not configured; skipping")
            continue
        try:
            adapters[name] = factory()
        except ConfigurationError as e:
            logger.bind(provider=name).error("Provider configuration invalid: {}", e.message)
            raise
        logger.bind(provider=name).info("Provider enabled")

    return ProviderRegistry(adapters)
