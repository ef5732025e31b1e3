from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urljoin

import httpx

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import PayloadError, TransportError
from .tracing import TRACE_HEADER, TraceContext

ResponseHook = Callable[[httpx.Response], None]
RequestHook = Callable[[str, str, dict[str, Any]], None]
Payload = dict[str, Any] | list[Any] | None


@dataclass
class LastOperation:
    module: str
    operation: str
    duration_ms: int
    result: str
    trace_id: str | None


@dataclass
class AsyncHttpClient:
    config: ClientConfig
    trace: TraceContext | None = None
    client: httpx.AsyncClient | None = None
    before_request: RequestHook | None = None
    after_response: ResponseHook | None = None
    last_operation: LastOperation | None = None

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self.config.timeout_seconds,
                    connect=self.config.connect_timeout_seconds,
                ),
                limits=httpx.Limits(max_connections=self.config.max_connections),
                verify=self.config.verify_ssl,
            )

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        base = self.config.api_base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: httpx.QueryParams | dict[str, Any] | None = None,
        content: str | bytes | None = None,
        expect_json: bool = True,
        module: str = "unknown",
        operation: str = "unknown",
    ) -> Payload:
        if self.client is None:
            raise RuntimeError("HTTP client not initialized")
        request_headers = {"Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        trace_context = self.trace or TraceContext()
        request_headers[TRACE_HEADER] = trace_context.ensure()

        normalized_method = method.upper()
        url = self._build_url(path)
        if self.before_request:
            self.before_request(
                normalized_method,
                url,
                {"headers": request_headers, "params": params, "content": content},
            )

        started = time.monotonic()
        try:
            response = await self.client.request(
                normalized_method,
                url,
                headers=request_headers,
                params=params,
                content=content,
            )
        except httpx.HTTPError as exc:
            self._record_operation(module, operation, started, "error", trace_context.trace_id)
            raise TransportError(
                code="TRANSPORT_ERROR",
                message=str(exc) or type(exc).__name__,
                details={"type": type(exc).__name__},
                trace_id=trace_context.trace_id,
                status_code=0,
                raw_payload=None,
            ) from exc

        if self.after_response:
            self.after_response(response)
        trace_context.update_from_headers(response.headers)

        if response.is_success:
            if not expect_json or not response.content:
                self._record_operation(module, operation, started, "success", trace_context.trace_id)
                return None
            try:
                parsed = response.json()
            except ValueError as exc:
                self._record_operation(module, operation, started, "error", trace_context.trace_id)
                raise PayloadError(
                    code="INVALID_JSON",
                    message="Response body is not valid JSON",
                    details={"type": type(exc).__name__},
                    trace_id=trace_context.trace_id,
                    status_code=response.status_code,
                    raw_payload=response.text,
                ) from exc
            self._record_operation(module, operation, started, "success", trace_context.trace_id)
            return parsed

        payload = None
        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"details": payload}
        trace_context.update_from_payload(payload)
        self._record_operation(module, operation, started, "error", trace_context.trace_id)
        raise map_error(response.status_code, payload, trace_context.trace_id)

    def _record_operation(self, module: str, operation: str, started: float, result: str, trace_id: str | None) -> None:
        self.last_operation = LastOperation(
            module=module,
            operation=operation,
            duration_ms=int((time.monotonic() - started) * 1000),
            result=result,
            trace_id=trace_id,
        )
