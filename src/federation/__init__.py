"""Multi-provider identity federation service.

Authenticates users through external identity providers (OAuth2/OIDC style
and signed-assertion providers), links the resulting identity to a local
account and maintains a server-side session.
"""

__version__ = "0.1.0"
