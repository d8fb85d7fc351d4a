from .identity import ExternalIdentity
from .session import AuthSession, OAuthFlowState

__all__ = ["AuthSession", "ExternalIdentity", "OAuthFlowState"]
