from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace

from src.federation.runtime.config.config_data import ConfigData
from src.federation.runtime.config.config_template import load_config


@dataclass
class AppContext:
    """Application context containing configuration and other app-wide state."""

    config: ConfigData


_default_context: AppContext | None = None

# Context variable for application context
_app_context: ContextVar[AppContext | None] = ContextVar("app_context", default=None)


def _get_default_context() -> AppContext:
    global _default_context

    if _default_context is None:
        _default_context = AppContext(config=load_config())
    return _default_context


def get_context() -> AppContext:
    """Get the current application context.

    Returns:
        AppContext: The current application context containing configuration.
    """
    return _app_context.get() or _get_default_context()


def set_context(context: AppContext) -> Token[AppContext | None]:
    """Set the current application context.

    Args:
        context: AppContext instance to set as current.
    """
    return _app_context.set(context)


@contextmanager
def with_context(config_override: ConfigData | None = None) -> Iterator[None]:
    """Context manager for temporarily replacing the application configuration.

    Example:
        config = ConfigData()
        config.app.environment = "test"
        with with_context(config):
            assert get_config().app.environment == "test"
    """
    if config_override is None:
        yield
        return

    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    token = set_context(replace(get_context(), config=config_override))
    try:
        yield
    finally:
        _app_context.reset(token)


def set_config(config: ConfigData) -> None:
    """Replace the current application configuration."""
    set_context(replace(get_context(), config=config))


def get_config() -> ConfigData:
    """Convenience function to get the current configuration.

    Returns:
        ConfigData: The current configuration from the app context.
    """
    return get_context().config
