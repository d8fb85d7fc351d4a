from .identity_resolver import IdentityResolver

__all__ = ["IdentityResolver"]
