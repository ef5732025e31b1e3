from .auth_store import AuthStore
from .config import ClientConfig, ConfigError, load_config
from .exceptions import (
    ApiError,
    AuthError,
    NotFoundError,
    PayloadError,
    ServerError,
    TransportError,
    ValidationError,
)
from .http_client import AsyncHttpClient
from .models import ListingPage, OptionItem, SelectionEntry, SessionData, TableState
from .notifications import NotificationCenter, Severity
from .observable import StateContainer
from .session import ApiSession
from .table_store import TableDataStore, serialize_row
from .tracing import TraceContext

__all__ = [
    "ApiError",
    "ApiSession",
    "AsyncHttpClient",
    "AuthError",
    "AuthStore",
    "ClientConfig",
    "ConfigError",
    "ListingPage",
    "NotFoundError",
    "NotificationCenter",
    "OptionItem",
    "PayloadError",
    "SelectionEntry",
    "ServerError",
    "SessionData",
    "Severity",
    "StateContainer",
    "TableDataStore",
    "TableState",
    "TraceContext",
    "TransportError",
    "ValidationError",
    "load_config",
    "serialize_row",
]
