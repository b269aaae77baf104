"""Authentication helpers for the request engine."""
from .base import AuthStrategy
from .bearer import BearerAuth
from .refresh import RefreshTokenHandler, TokenPair

__all__ = ["AuthStrategy", "BearerAuth", "RefreshTokenHandler", "TokenPair"]
