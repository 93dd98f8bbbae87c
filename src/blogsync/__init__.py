"""Synchronize blog entries between local files and an AtomPub collection."""

from blogsync.broker import Broker
from blogsync.config import BlogConfig, Config, load_config
from blogsync.errors import (
    AuthError,
    BlogsyncError,
    ConfigError,
    ConflictError,
    FormatError,
    NotFoundError,
    ProtocolError,
    SyncReport,
    TransportError,
)
from blogsync.models import Entry, StoreResult

__version__ = "0.3.0"

__all__ = [
    "AuthError",
    "BlogConfig",
    "BlogsyncError",
    "Broker",
    "Config",
    "ConfigError",
    "ConflictError",
    "Entry",
    "FormatError",
    "NotFoundError",
    "ProtocolError",
    "StoreResult",
    "SyncReport",
    "TransportError",
    "load_config",
]
