"""Confluence client library for the local mirror.

This package provides Python abstractions over the Confluence Cloud REST API,
translating transport failures into a typed exception hierarchy and remote
payloads into RemoteNode objects.
"""

from .errors import (
    SyncError,
    ConfluenceError,
    InvalidCredentialsError,
    PageNotFoundError,
    APIUnreachableError,
    APIAccessError,
    VersionConflictError,
    ConversionError,
)
from .auth import Authenticator, Credentials
from .api_wrapper import APIWrapper
from .remote_client import RemoteClient

__all__ = [
    "SyncError",
    "ConfluenceError",
    "InvalidCredentialsError",
    "PageNotFoundError",
    "APIUnreachableError",
    "APIAccessError",
    "VersionConflictError",
    "ConversionError",
    "Authenticator",
    "Credentials",
    "APIWrapper",
    "RemoteClient",
]
