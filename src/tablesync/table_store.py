from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Callable

import httpx
from pydantic import ValidationError as PayloadValidationError

from .config import ClientConfig
from .exceptions import ApiError, PayloadError, TransportError
from .http_client import AsyncHttpClient
from .logger import get_logger, log_action
from .models import ListingPage, Row, SelectionEntry, TableState
from .notifications import Notifier, Severity
from .observable import StateContainer
from .session import SessionProvider

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
SORT_DIRECTION = "asc"
SEARCH_PARAM = "searchQuery"
FOREIGN_KEY_SUFFIX = "FK"
FOREIGN_KEY_TARGET = "ID"

LOAD_FAILED_MESSAGE = "Failed to fetch data. Try to re-login"
DELETE_SUCCESS_MESSAGE = "Item deleted successfully"
DELETE_FAILED_MESSAGE = "Failed to delete the item."
ITEM_NOT_FOUND_MESSAGE = "Item with the specified ID not found."
UPDATE_SUCCESS_MESSAGE = "Data successfully updated"


def is_vacuous(row: Mapping[str, Any]) -> bool:
    return all(value is None or (isinstance(value, list) and not value) for value in row.values())


def form_field_name(key: str) -> str:
    if key.endswith(FOREIGN_KEY_SUFFIX):
        return key[: -len(FOREIGN_KEY_SUFFIX)] + FOREIGN_KEY_TARGET
    return key


def _form_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_form_value(item) for item in value)
    return str(value)


def serialize_row(row: Mapping[str, Any]) -> httpx.QueryParams:
    """Form fields for a row update. Nested option maps are not record fields."""
    pairs = [
        (form_field_name(key), _form_value(value))
        for key, value in row.items()
        if not isinstance(value, Mapping)
    ]
    return httpx.QueryParams(pairs)


class TableDataStore:
    """Paginated, searchable view over one remote collection.

    Local state lives in a ``StateContainer``; every network round trip ends
    in a single snapshot swap. Loads are tagged with a generation number and
    a response is applied only while it belongs to the most recent load.
    """

    def __init__(
        self,
        table_name: str,
        *,
        config: ClientConfig,
        http: AsyncHttpClient,
        session: SessionProvider,
        notifier: Notifier,
        delete_collection: str | None = None,
        page_size: int | None = None,
    ) -> None:
        self.table_name = table_name
        self.config = config
        self.http = http
        self.session = session
        self.notifier = notifier
        self.resource_url = config.resource_url(table_name)
        self.delete_url = (
            config.resource_url(delete_collection) if delete_collection else config.delete_collection_url()
        )
        self.page_size = page_size or config.page_size
        self.container: StateContainer[TableState] = StateContainer(TableState())
        self._generation = 0

    # State access

    @property
    def state(self) -> TableState:
        return self.container.state

    @property
    def rows(self) -> tuple[Row, ...]:
        return self.state.rows

    @property
    def selection(self) -> tuple[SelectionEntry, ...]:
        return self.state.selection

    @property
    def current_page(self) -> int:
        return self.state.current_page

    @property
    def pages_count(self) -> int:
        return self.state.pages_count

    @property
    def search_query(self) -> str:
        return self.state.search_query

    @property
    def available_filters(self) -> tuple[str, ...]:
        return self.state.available_filters

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def all_selected(self) -> bool:
        return self.state.all_selected

    @property
    def generation(self) -> int:
        return self._generation

    def selected_ids(self) -> list[Any]:
        return self.state.selected_ids()

    def subscribe(self, listener: Callable[[TableState, TableState], None]) -> Callable[[], None]:
        return self.container.subscribe(listener)

    # Query parameters

    def set_param(self, key: str, value: Any) -> None:
        self.container.update(params=self.state.params.set(key, str(value)))

    def clear_param(self, key: str) -> None:
        if key in self.state.params:
            self.container.update(params=self.state.params.remove(key))

    def query_string(self) -> str:
        return str(self.state.params)

    def request_params(self) -> httpx.QueryParams:
        return self.state.params.merge(
            {
                "pageIndex": str(self.state.current_page),
                "pageSize": str(self.page_size),
                "sortDirection": SORT_DIRECTION,
            }
        )

    def shareable_url(self, ui_base: str) -> str:
        params = self.state.params.set("pageIndex", str(self.state.current_page))
        return str(httpx.URL(ui_base).copy_merge_params(params))

    # Search and pagination

    async def search(self, query: str) -> None:
        with self.container.batch():
            self.container.update(is_loading=True, search_query=query)
            if query != "":
                self.set_param(SEARCH_PARAM, query)
            else:
                self.clear_param(SEARCH_PARAM)
        await self.load()

    async def go_to_page(self, page: int) -> None:
        clamped = min(max(page, 1), self.state.pages_count)
        self.container.update(current_page=clamped)
        await self.load()

    async def next_page(self) -> None:
        if self.state.current_page < self.state.pages_count:
            await self.go_to_page(self.state.current_page + 1)

    async def previous_page(self) -> None:
        if self.state.current_page > 1:
            await self.go_to_page(self.state.current_page - 1)

    # Selection

    def toggle_row(self, index: int) -> None:
        selection = self.state.selection
        if not 0 <= index < len(selection):
            raise IndexError(f"Row index {index} out of range for {len(selection)} loaded rows")
        entry = selection[index]
        flipped = replace(entry, selected=not entry.selected)
        self.container.update(selection=selection[:index] + (flipped,) + selection[index + 1 :])

    def toggle_all_rows(self) -> None:
        target = not self.state.all_selected
        self.container.update(selection=tuple(replace(entry, selected=target) for entry in self.state.selection))

    # Remote operations

    def _headers(self, content_type: str) -> dict[str, str]:
        headers = {"Content-Type": content_type}
        token = self.session.current_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def load(self) -> bool:
        params = self.request_params()
        self._generation += 1
        generation = self._generation
        self.container.update(is_loading=True)

        try:
            payload = await self.http.request(
                "GET",
                self.resource_url,
                headers=self._headers(JSON_CONTENT_TYPE),
                params=params,
                module=self.table_name,
                operation="load",
            )
            if payload is None:
                raise PayloadError(
                    code="EMPTY_BODY",
                    message="List response has no body",
                    details=None,
                    trace_id=None,
                    status_code=200,
                )
            page = ListingPage.model_validate(payload)
        except (ApiError, PayloadValidationError) as exc:
            if generation != self._generation:
                self._log_stale(generation, "load")
                return False
            self._fail_session(exc, operation="load")
            return False

        if generation != self._generation:
            self._log_stale(generation, "load")
            return False

        rows = tuple(row for row in page.data if not is_vacuous(row))
        pages_count = max(1, page.total_pages)
        filters = self.state.available_filters
        if not filters:
            filters = tuple(rows[0].keys()) if rows else ()
        self.container.update(
            rows=rows,
            supplementary=dict(page.additional),
            pages_count=pages_count,
            current_page=min(max(self.state.current_page, 1), pages_count),
            selection=tuple(SelectionEntry(id=row.get("id")) for row in rows),
            available_filters=filters,
            is_loading=False,
        )
        log_action(
            logger,
            module=self.table_name,
            action="load",
            trace_id=self._trace_id(),
            outcome="success",
            page=self.state.current_page,
            pages=pages_count,
            rows=len(rows),
            dropped=len(page.data) - len(rows),
        )
        return True

    async def delete_item(self, item_id: Any) -> bool:
        try:
            await self.http.request(
                "DELETE",
                f"{self.delete_url}/{item_id}",
                headers=self._headers(JSON_CONTENT_TYPE),
                expect_json=False,
                module=self.table_name,
                operation="delete",
            )
        except TransportError as exc:
            self._fail_session(exc, operation="delete")
            return False
        except ApiError as exc:
            self.notifier.notify(DELETE_FAILED_MESSAGE, Severity.ERROR)
            log_action(
                logger,
                module=self.table_name,
                action="delete",
                trace_id=exc.trace_id,
                outcome="error",
                level=logging.WARNING,
                status_code=exc.status_code,
            )
            return False

        self.notifier.notify(DELETE_SUCCESS_MESSAGE, Severity.DEFAULT)
        log_action(logger, module=self.table_name, action="delete", trace_id=self._trace_id(), outcome="success", item_id=item_id)
        await self.load()
        return True

    async def edit_field(self, index: int, key: str, value: Any) -> bool:
        return await self.edit_fields(index, {key: value})

    async def edit_fields(self, index: int, changes: Mapping[str, Any]) -> bool:
        rows = self.state.rows
        if not 0 <= index < len(rows):
            self.notifier.notify(f"Row {index} is not loaded.", Severity.WARNING)
            return False
        row = {**rows[index], **changes}
        self.container.update(rows=rows[:index] + (row,) + rows[index + 1 :])
        return await self.submit(row.get("id"))

    async def submit(self, item_id: Any) -> bool:
        row = next((item for item in self.state.rows if item.get("id") == item_id), None)
        if row is None:
            self.notifier.notify(ITEM_NOT_FOUND_MESSAGE, Severity.WARNING)
            return False

        form = serialize_row(row)
        try:
            await self.http.request(
                "PUT",
                f"{self.resource_url}/{item_id}",
                headers=self._headers(FORM_CONTENT_TYPE),
                params=form,
                content=str(form),
                expect_json=False,
                module=self.table_name,
                operation="submit",
            )
        except TransportError as exc:
            self.notifier.notify(f"Failed to submit data: {exc.message}", Severity.WARNING)
            log_action(
                logger,
                module=self.table_name,
                action="submit",
                trace_id=exc.trace_id,
                outcome="error",
                level=logging.ERROR,
                error_code=exc.code,
            )
            return False
        except ApiError as exc:
            self.notifier.notify(f"HTTP error! status: {exc.status_code}", Severity.ERROR)
            log_action(
                logger,
                module=self.table_name,
                action="submit",
                trace_id=exc.trace_id,
                outcome="error",
                level=logging.WARNING,
                status_code=exc.status_code,
            )
            await self.load()
            return False

        self.notifier.notify(UPDATE_SUCCESS_MESSAGE, Severity.DEFAULT)
        log_action(logger, module=self.table_name, action="submit", trace_id=self._trace_id(), outcome="success", item_id=item_id)
        await self.load()
        return True

    def _fail_session(self, exc: Exception, *, operation: str) -> None:
        with self.container.batch():
            self.session.logout()
            self.notifier.notify(LOAD_FAILED_MESSAGE, Severity.WARNING)
            self.container.update(is_loading=False)
        log_action(
            logger,
            module=self.table_name,
            action=operation,
            trace_id=getattr(exc, "trace_id", None),
            outcome="error",
            level=logging.WARNING,
            error_code=getattr(exc, "code", type(exc).__name__),
        )

    def _log_stale(self, generation: int, operation: str) -> None:
        logger.debug(
            "Discarding %s response for %s: generation %s superseded by %s",
            operation,
            self.table_name,
            generation,
            self._generation,
        )

    def _trace_id(self) -> str | None:
        trace = self.http.trace
        return trace.trace_id if trace else None
