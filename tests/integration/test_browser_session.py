"""
Integration tests against a real headless Chrome.

Run with SHELLCHROME_INTEGRATION=1; pages are inline data: URLs so no
network access is needed.
"""

import os
from urllib.parse import quote

import pytest

# Skip if dependencies not available
pytest.importorskip("selenium")

pytestmark = pytest.mark.skipif(
    os.environ.get("SHELLCHROME_INTEGRATION") != "1",
    reason="set SHELLCHROME_INTEGRATION=1 to run against a real Chrome",
)

PAGE = """<!doctype html>
<html><head><title>Fixture</title></head><body>
<h1>Welcome</h1>
<input id="query" aria-label="Query" value="old">
<button onclick="document.getElementById('out').textContent = 'clicked'">Submit</button>
<a href="about:blank" target="_blank">Open blank</a>
<p id="out"></p>
<p style="display:none">Hidden paragraph</p>
<span style="visibility:hidden">Invisible span</span>
</body></html>"""


def find_uid(snapshot, role, name):
    for record in snapshot.records():
        if record.role == role and record.name == name:
            return record.uid
    raise AssertionError(f"{role} {name!r} not in snapshot:\n{snapshot.render()}")


class TestBrowserSession:
    """Snapshot, resolve and act on a live page."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        from shellchrome.core.config import ShellChromeConfig
        from shellchrome.core.session import Session

        self.session = Session(config=ShellChromeConfig(headless=True, screenshot_path=str(tmp_path / "page.png")))
        self.session.navigate("data:text/html," + quote(PAGE))
        yield
        self.session.close()

    def test_click_button_by_uid(self):
        snapshot = self.session.take_snapshot()
        uid = find_uid(snapshot, "button", "Submit")

        self.session.click(uid)

        self.session.wait_for("clicked", timeout_ms=5000)

    def test_fill_replaces_value(self):
        snapshot = self.session.take_snapshot()
        uid = find_uid(snapshot, "textbox", "Query")

        self.session.fill(uid, "new")

        assert self.session.evaluate("document.getElementById('query').value") == "new"

    def test_new_tab_link_becomes_current(self):
        before = len(self.session.list_pages())
        snapshot = self.session.take_snapshot()

        result = self.session.click(find_uid(snapshot, "link", "Open blank"))

        pages = self.session.list_pages()
        assert len(pages) == before + 1
        assert result.metadata["switched_to_page"] == max(p.id for p in pages)

    def test_visual_scan_lists_heading(self):
        records = self.session.list_elements_for_visual_scan()

        names = [r.name for r in records]
        assert "Welcome" in names
        uid = records[names.index("Welcome")].uid
        with self.session.resolver.resolve(uid) as resolved:
            assert resolved.element.text == "Welcome"

    def test_visual_scan_skips_hidden_elements(self):
        names = [r.name for r in self.session.list_elements_for_visual_scan()]

        assert "Welcome" in names
        assert not any("Hidden paragraph" in name for name in names)
        assert not any("Invisible span" in name for name in names)

    def test_stale_uid_after_new_snapshot(self):
        from shellchrome.core.errors import NotFound

        first = self.session.take_snapshot()
        stale = f"uid_{len(first)}"
        assert first.get(stale) is not None
        self.session.navigate("data:text/html," + quote("<p>Empty</p>"))
        second = self.session.take_snapshot()
        assert len(second) < len(first)

        with pytest.raises(NotFound):
            self.session.click(stale)
