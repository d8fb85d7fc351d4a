from .apple import AppleProviderAdapter
from .base import ProviderAdapter
from .facebook import FacebookProviderAdapter
from .github import GitHubProviderAdapter
from .google import GoogleProviderAdapter
from .registry import ProviderRegistry, build_registry, callback_url_for
from .standard import OAuth2ProviderAdapter

__all__ = [
    "AppleProviderAdapter",
    "FacebookProviderAdapter",
    "GitHubProviderAdapter",
    "GoogleProviderAdapter",
    "OAuth2ProviderAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "build_registry",
    "callback_url_for",
]
