"""High-level API client entrypoints."""
from .auth import RefreshTokenHandler, TokenPair
from .client import APIService
from .config import APIConfig
from .endpoint import APIEndpoint, Endpoint, HTTPMethod
from .events import SessionEvents
from .exceptions import APIError, APIErrorKind
from .network import NetworkMonitor, NetworkStatus
from .storage import EncryptedFileStore, MemoryStore, TokenStorage

__all__ = [
    "APIService",
    "APIConfig",
    "APIEndpoint",
    "Endpoint",
    "HTTPMethod",
    "RefreshTokenHandler",
    "TokenPair",
    "SessionEvents",
    "APIError",
    "APIErrorKind",
    "NetworkMonitor",
    "NetworkStatus",
    "TokenStorage",
    "MemoryStore",
    "EncryptedFileStore",
]
