from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol

from .auth_store import AuthStore
from .config import ClientConfig
from .http_client import AsyncHttpClient
from .logger import get_logger, log_action
from .models import SessionData
from .tracing import TraceContext

logger = get_logger(__name__)


class SessionProvider(Protocol):
    def current_token(self) -> str | None: ...

    def logout(self) -> None: ...


@dataclass
class ApiSession:
    config: ClientConfig
    auth_store: AuthStore | None = None
    trace: TraceContext | None = None
    token: str | None = None
    username: str | None = None
    on_logout: list[Callable[[], None]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.auth_store = self.auth_store or AuthStore()
        self.trace = self.trace or TraceContext()
        stored = self.auth_store.load()
        if stored and not self.token:
            self.token = stored.access_token
            self.username = stored.username

    def http(self) -> AsyncHttpClient:
        return AsyncHttpClient(config=self.config, trace=self.trace)

    def current_token(self) -> str | None:
        return self.token

    def establish(self, token: str, username: str | None = None) -> None:
        self.token = token
        self.username = username
        self.auth_store.save(SessionData(access_token=token, username=username, env_name=self.config.env_name))

    def logout(self) -> None:
        self.token = None
        self.username = None
        if self.auth_store:
            self.auth_store.clear()
        log_action(logger, module="session", action="logout", trace_id=self.trace.trace_id if self.trace else None, outcome="success")
        for callback in list(self.on_logout):
            callback()
