from __future__ import annotations

import asyncio

import httpx

from tablesync.models import SelectionEntry
from tablesync.table_store import LOAD_FAILED_MESSAGE, is_vacuous

from tests.store_helpers import BASE_URL, build_store, page_payload, run


def _projects(count: int, *, start: int = 1) -> list[dict]:
    return [{"id": i, "name": f"Project {i}", "ownerFK": 7, "tags": ["a"]} for i in range(start, start + count)]


def test_load_builds_request_from_params_and_session() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=page_payload(_projects(1)))

    store, _, _ = build_store(handler)
    store.set_param("status", "open")
    store.set_param("pageSize", "100")
    store.set_param("sortDirection", "desc")

    assert run(store.load()) is True

    request = seen[0]
    assert request.method == "GET"
    assert str(request.url).startswith(f"{BASE_URL}/Projects?")
    assert request.url.params["status"] == "open"
    assert request.url.params["pageIndex"] == "1"
    assert request.url.params["pageSize"] == "5"
    assert request.url.params["sortDirection"] == "asc"
    assert request.headers["Authorization"] == "Bearer token-1"
    assert request.headers["Content-Type"] == "application/json"


def test_load_without_token_omits_authorization() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=page_payload([]))

    store, _, _ = build_store(handler, token=None)
    run(store.load())

    assert "Authorization" not in seen[0].headers


def test_end_to_end_first_page_drops_vacuous_row() -> None:
    rows = _projects(5)
    rows[2] = {"id": None, "name": None, "ownerFK": None, "tags": []}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=page_payload(rows, total_pages=3, additional={"ownerFK": [{"id": 7, "name": "Ana"}]}),
        )

    store, session, notifications = build_store(handler)
    run(store.load())

    assert len(store.rows) == 4
    assert [row["id"] for row in store.rows] == [1, 2, 4, 5]
    assert store.pages_count == 3
    assert store.selection == tuple(SelectionEntry(id=i) for i in (1, 2, 4, 5))
    assert store.is_loading is False
    assert store.state.supplementary["ownerFK"][0].name == "Ana"
    assert store.available_filters == ("id", "name", "ownerFK", "tags")
    assert session.logout_calls == 0
    assert notifications.items == []


def test_selection_stays_aligned_with_rows() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=page_payload([{"id": 10}, {}, {"id": 11, "note": None}]))

    store, _, _ = build_store(handler)
    run(store.load())

    assert len(store.selection) == len(store.rows) == 2
    assert all(entry.id == row["id"] for entry, row in zip(store.selection, store.rows))


def test_vacuous_row_detection() -> None:
    assert is_vacuous({"a": None, "b": []})
    assert is_vacuous({})
    assert not is_vacuous({"a": None, "b": [1]})
    assert not is_vacuous({"a": 0})
    assert not is_vacuous({"a": ""})


def test_available_filters_are_derived_once() -> None:
    payloads = [
        page_payload([{"id": 1, "name": "x"}], total_pages=2),
        page_payload([{"id": 2, "title": "y", "extra": True}], total_pages=2),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payloads.pop(0))

    store, _, _ = build_store(handler)
    run(store.load())
    run(store.load())

    assert store.rows[0]["id"] == 2
    assert store.available_filters == ("id", "name")


def test_available_filters_stay_empty_without_rows() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=page_payload([{"id": None}]))

    store, _, _ = build_store(handler)
    run(store.load())

    assert store.rows == ()
    assert store.available_filters == ()


def test_load_failure_logs_out_and_keeps_rows() -> None:
    responses = [httpx.Response(200, json=page_payload(_projects(2), total_pages=4))]

    def handler(request: httpx.Request) -> httpx.Response:
        if responses:
            return responses.pop(0)
        raise httpx.ConnectError("connection refused", request=request)

    store, session, notifications = build_store(handler)
    run(store.load())
    before = store.rows

    assert run(store.load()) is False

    assert store.is_loading is False
    assert store.rows == before
    assert store.pages_count == 4
    assert session.logout_calls == 1
    assert notifications.items == [{"level": "warning", "message": LOAD_FAILED_MESSAGE, "trace_id": None}]


def test_load_failure_on_error_status_and_bad_payload() -> None:
    bodies = [
        httpx.Response(500, json={"message": "boom"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=[{"id": 1}]),
        httpx.Response(200, json={"data": "nope", "totalPages": 1}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return bodies.pop(0)

    store, session, notifications = build_store(handler)
    for _ in range(4):
        assert run(store.load()) is False

    assert session.logout_calls == 4
    assert len(notifications.by_level("warning")) == 4
    assert store.rows == ()


def test_load_clamps_current_page_to_new_page_count() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=page_payload(_projects(1), total_pages=0))

    store, _, _ = build_store(handler)
    store.container.update(current_page=4, pages_count=6)
    run(store.load())

    assert store.pages_count == 1
    assert store.current_page == 1


def test_observers_see_one_atomic_transition_per_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=page_payload(_projects(3), total_pages=2))

    store, _, _ = build_store(handler)
    snapshots = []
    store.subscribe(lambda new, old: snapshots.append(new))
    run(store.load())

    final = snapshots[-1]
    assert final.is_loading is False
    assert len(final.rows) == len(final.selection) == 3
    assert all(len(state.rows) == len(state.selection) for state in snapshots)


def test_stale_load_response_is_discarded() -> None:
    async def scenario():
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["pageIndex"] == "1":
                await release.wait()
                return httpx.Response(200, json=page_payload([{"id": 1, "name": "old"}], total_pages=3))
            release.set()
            return httpx.Response(200, json=page_payload([{"id": 6, "name": "new"}], total_pages=3))

        store, session, notifications = build_store(handler)
        store.container.update(pages_count=3)
        first = asyncio.create_task(store.load())
        await asyncio.sleep(0)
        await store.go_to_page(2)
        applied_first = await first
        return store, applied_first

    store, applied_first = run(scenario())

    assert applied_first is False
    assert store.generation == 2
    assert store.current_page == 2
    assert [row["name"] for row in store.rows] == ["new"]
    assert store.is_loading is False


def test_stale_failure_does_not_log_out() -> None:
    async def scenario():
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("searchQuery") is None:
                await release.wait()
                raise httpx.ReadTimeout("slow", request=request)
            release.set()
            return httpx.Response(200, json=page_payload([{"id": 1}]))

        store, session, notifications = build_store(handler)
        first = asyncio.create_task(store.load())
        await asyncio.sleep(0)
        await store.search("acme")
        await first
        return store, session, notifications

    store, session, notifications = run(scenario())

    assert session.logout_calls == 0
    assert notifications.items == []
    assert store.rows == ({"id": 1},)
