from .assertion import ClientAssertionGenerator, normalize_private_key

__all__ = ["ClientAssertionGenerator", "normalize_private_key"]
