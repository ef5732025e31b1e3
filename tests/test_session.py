from __future__ import annotations

from tablesync.auth_store import AuthStore
from tablesync.models import SessionData
from tablesync.notifications import NotificationCenter, Severity
from tablesync.session import ApiSession

from tests.store_helpers import make_config


def test_auth_store_round_trip_and_permissions(tmp_path) -> None:
    store = AuthStore(base_dir=tmp_path)
    store.save(SessionData(access_token="abc", username="demo", env_name="test"))

    loaded = store.load()

    assert loaded is not None
    assert loaded.access_token == "abc"
    assert (tmp_path / "session.json").stat().st_mode & 0o777 == 0o600


def test_auth_store_discards_corrupt_file(tmp_path) -> None:
    (tmp_path / "session.json").write_text("{not json")
    store = AuthStore(base_dir=tmp_path)

    assert store.load() is None
    assert not (tmp_path / "session.json").exists()


def test_auth_store_discards_invalid_payload(tmp_path) -> None:
    (tmp_path / "session.json").write_text('{"username": "demo"}')

    assert AuthStore(base_dir=tmp_path).load() is None


def test_api_session_restores_token_and_logs_out(tmp_path) -> None:
    auth_store = AuthStore(base_dir=tmp_path)
    ApiSession(make_config(), auth_store=auth_store).establish("token-9", "demo")

    session = ApiSession(make_config(), auth_store=auth_store)
    logged_out: list[bool] = []
    session.on_logout.append(lambda: logged_out.append(True))

    assert session.current_token() == "token-9"
    assert session.username == "demo"

    session.logout()

    assert session.current_token() is None
    assert auth_store.load() is None
    assert logged_out == [True]


def test_notification_center_records_levels() -> None:
    center = NotificationCenter()

    center.notify("saved")
    center.notify("careful", Severity.WARNING)
    center.notify("broken", "error")

    assert center.render()["count"] == 3
    assert [item["level"] for item in center.items] == ["default", "warning", "error"]
    assert center.by_level(Severity.WARNING) == [{"level": "warning", "message": "careful", "trace_id": None}]

    center.clear()
    assert center.items == []
