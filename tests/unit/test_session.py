import json

import pytest
from unittest.mock import MagicMock, patch

from selenium.common.exceptions import InvalidSessionIdException, WebDriverException

from shellchrome.core.config import ShellChromeConfig
from shellchrome.core.errors import DriverFailure, NotFound, WaitTimeout
from shellchrome.core.session import Session, parse_network_entry


AX_NODES = [
    {"nodeId": "1", "role": {"value": "RootWebArea"}, "name": {"value": "Home"}, "childIds": ["2", "3"]},
    {"nodeId": "2", "role": {"value": "button"}, "name": {"value": "Submit"}, "childIds": [], "backendDOMNodeId": 5},
    {"nodeId": "3", "role": {"value": "link"}, "name": {"value": "Docs"}, "childIds": [], "backendDOMNodeId": 6},
]


def make_session(**config):
    driver = MagicMock()
    driver.window_handles = ["T1"]
    driver.current_window_handle = "T1"

    def cdp(cmd, params):
        if cmd == "Target.getTargets":
            return {"targetInfos": [{"targetId": "T1", "type": "page", "url": "https://example.com", "title": "Home"}]}
        if cmd == "Accessibility.getFullAXTree":
            return {"nodes": AX_NODES}
        raise WebDriverException(f"{cmd} unsupported")

    driver.execute_cdp_cmd.side_effect = cdp
    return Session(driver=driver, config=ShellChromeConfig(**config)), driver


def test_take_snapshot_numbers_page_elements():
    session, _ = make_session()

    snapshot = session.take_snapshot()

    assert [str(r) for r in snapshot.records()] == [
        "[uid_1] RootWebArea: Home",
        "[uid_2] button: Submit",
        "[uid_3] link: Docs",
    ]
    assert snapshot.page_id == 1
    assert session.snapshot is snapshot


def test_sessions_are_independent():
    first, _ = make_session()
    second, _ = make_session()

    first.take_snapshot()

    assert second.snapshot is None


def test_action_on_unknown_uid_is_not_found():
    session, _ = make_session()
    session.take_snapshot()

    with pytest.raises(NotFound):
        session.click("uid_40")


def test_visual_scan_uids_resolve_by_rescanning():
    session, driver = make_session()
    driver.execute_script.return_value = [
        {"text": "Welcome", "rect": {"x": 0, "y": 0, "width": 90, "height": 20}, "xpath": "/html/body/h1"},
    ]

    records = session.list_elements_for_visual_scan()

    assert [r.uid for r in records] == ["ocr_1"]
    assert session.index.epoch("ocr") == 1
    assert len(session.index) == 0
    assert session.index.get("ocr_1").name == "Welcome"
    assert driver.execute_script.call_count == 2


def test_evaluate_wraps_bare_expressions():
    session, driver = make_session()
    driver.execute_script.return_value = 2

    assert session.evaluate("1 + 1") == 2
    driver.execute_script.assert_called_with("return (1 + 1);")

    session.evaluate("return document.title")
    driver.execute_script.assert_called_with("return document.title")


def test_wait_for_text_times_out():
    session, driver = make_session()
    driver.execute_script.return_value = False

    with pytest.raises(WaitTimeout) as excinfo:
        session.wait_for("Never", timeout_ms=0)
    assert excinfo.value.timeout_ms == 0


def test_wait_for_text_found():
    session, driver = make_session()
    driver.execute_script.return_value = True

    session.wait_for("Welcome", timeout_ms=100)


def test_screenshot_written_to_path(tmp_path):
    session, driver = make_session()
    driver.get_screenshot_as_png.return_value = b"\x89PNG"
    path = tmp_path / "shots" / "page.png"

    data = session.screenshot(str(path))

    assert data == b"\x89PNG"
    assert path.read_bytes() == b"\x89PNG"


def test_lost_browser_makes_session_unusable():
    session, driver = make_session()
    session.list_pages()
    driver.execute_script.side_effect = InvalidSessionIdException("invalid session id")

    with pytest.raises(DriverFailure) as excinfo:
        session.evaluate("1")
    assert excinfo.value.fatal
    assert not session.usable

    driver.execute_script.reset_mock()
    with pytest.raises(DriverFailure):
        session.evaluate("1")
    driver.execute_script.assert_not_called()


def test_status():
    session, _ = make_session(headless=False)
    session.take_snapshot()

    status = session.status()

    assert status == {
        "headless": False,
        "pages": 1,
        "current_page": 1,
        "url": "https://example.com",
        "snapshot_nodes": 3,
    }


def test_close_leaves_injected_driver_running():
    session, driver = make_session()

    with session:
        session.list_pages()

    driver.quit.assert_not_called()


def test_lost_browser_during_resolution_is_fatal():
    session, driver = make_session()
    session.take_snapshot()
    driver.execute_cdp_cmd.side_effect = InvalidSessionIdException("invalid session id")
    driver.execute_script.side_effect = InvalidSessionIdException("invalid session id")

    with pytest.raises(DriverFailure) as excinfo:
        session.hover("uid_2")

    assert excinfo.value.fatal
    assert not session.usable


def test_lost_browser_during_snapshot_is_fatal():
    session, driver = make_session()
    session.list_pages()
    driver.execute_cdp_cmd.side_effect = InvalidSessionIdException("invalid session id")

    with pytest.raises(DriverFailure) as excinfo:
        session.take_snapshot()

    assert excinfo.value.fatal
    assert not session.usable


def test_lost_browser_during_visual_scan_is_fatal():
    session, driver = make_session()
    session.list_pages()
    driver.execute_script.side_effect = ConnectionRefusedError("chromedriver gone")

    with pytest.raises(DriverFailure) as excinfo:
        session.list_elements_for_visual_scan()

    assert excinfo.value.fatal
    assert not session.usable


def performance_entry(method, url, webview="T1", event="Network.requestWillBeSent"):
    message = {
        "message": {"method": event, "params": {"request": {"method": method, "url": url}, "type": "Document"}},
        "webview": webview,
    }
    return {"level": "INFO", "message": json.dumps(message), "timestamp": 0}


def test_parse_network_entry():
    assert parse_network_entry(performance_entry("POST", "https://api.example.com/x")) == {
        "method": "POST",
        "url": "https://api.example.com/x",
        "type": "Document",
        "page": "T1",
    }
    assert parse_network_entry(performance_entry("GET", "https://a", event="Network.responseReceived")) is None
    assert parse_network_entry({"message": "not json"}) is None


def test_network_requests_accumulate_for_current_tab():
    session, driver = make_session()
    session.list_pages()
    driver.get_log.side_effect = [
        [performance_entry("GET", "https://example.com/"), performance_entry("GET", "https://other.tab/", webview="T9")],
        [performance_entry("GET", "https://example.com/app.js")],
    ]

    first = session.network_requests()
    second = session.network_requests()

    driver.get_log.assert_called_with("performance")
    assert [r["url"] for r in first] == ["https://example.com/"]
    assert [r["url"] for r in second] == ["https://example.com/", "https://example.com/app.js"]


def test_session_starts_chrome_with_configured_page_load_timeout():
    with patch("shellchrome.core.session.create_driver") as factory:
        factory.return_value.window_handles = []
        session = Session(config=ShellChromeConfig(headless=False, page_load_timeout=5))
        session.list_pages()

    factory.assert_called_once_with(headless=False, profile_path=None, page_load_timeout=5)
