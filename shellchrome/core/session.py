"""
Session - the action surface of one browser.

A Session owns every piece of mutable state: the driver, the page
registry (current-page pointer) and the snapshot index. Commands run one
at a time; each call returns only after the browser round-trips it needs
have completed.
"""

from collections import deque
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional
import json
import logging
import os

from selenium.common.exceptions import TimeoutException
from selenium.webdriver.support.ui import WebDriverWait

from shellchrome.core.config import ShellChromeConfig
from shellchrome.core.driver_factory import create_driver, WebDriverType
from shellchrome.core.errors import DriverFailure, WaitTimeout, translate_driver_errors
from shellchrome.core.pages import PageInfo, PageRegistry
from shellchrome.layers.action.interaction import ActionResult, InteractionDriver
from shellchrome.layers.action.resolver import ElementResolver
from shellchrome.layers.sense.records import NodeRecord, Snapshot, TREE_NAMESPACE, VISUAL_NAMESPACE, split_uid
from shellchrome.layers.sense.snapshot_index import SnapshotIndex
from shellchrome.layers.sense.tree_builder import AccessibilityTreeBuilder, AccessibilityTreeSource
from shellchrome.layers.sense.visual_scanner import VisualScanner

logger = logging.getLogger(__name__)

LINK_HREFS_SCRIPT = r"""
const hrefs = {};
document.querySelectorAll('a[href]').forEach((el) => {
    const text = (el.textContent || '').trim() || el.getAttribute('aria-label') || '';
    if (text) hrefs[text] = el.href;
});
return hrefs;
"""

TEXT_PRESENT_SCRIPT = "return !!document.body && document.body.innerText.includes(arguments[0]);"

# Requests kept across reads of the performance log, which drains on every read
MAX_NETWORK_ENTRIES = 5000


def parse_network_entry(entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Extract one outgoing request from a Chrome performance log entry.

    Returns None for entries that are not ``Network.requestWillBeSent``.
    """
    try:
        payload = json.loads(entry.get("message") or "{}")
    except ValueError:
        return None
    message = payload.get("message") or {}
    if message.get("method") != "Network.requestWillBeSent":
        return None
    params = message.get("params") or {}
    request = params.get("request") or {}
    if not request.get("url"):
        return None
    return {
        "method": request.get("method", "GET"),
        "url": request["url"],
        "type": params.get("type", ""),
        "page": payload.get("webview"),
    }


class Session:
    """
    Drive one browser through uid-addressed actions.

    Example:
        >>> with Session(config=ShellChromeConfig(headless=True)) as session:
        ...     session.open("example.com")
        ...     print(session.take_snapshot().render())
        ...     session.click("uid_5")
    """

    def __init__(self, driver: Optional[WebDriverType] = None, config: Optional[ShellChromeConfig] = None):
        self.config = config or ShellChromeConfig()
        self._driver = driver
        self._owns_driver = driver is None
        self._initialized = False
        self.usable = True
        self._requests: deque = deque(maxlen=MAX_NETWORK_ENTRIES)

        self.pages: Optional[PageRegistry] = None
        self.scanner: Optional[VisualScanner] = None
        self.index: Optional[SnapshotIndex] = None
        self.builder: Optional[AccessibilityTreeBuilder] = None
        self.source: Optional[AccessibilityTreeSource] = None
        self.resolver: Optional[ElementResolver] = None
        self.interactions: Optional[InteractionDriver] = None

    @property
    def driver(self) -> WebDriverType:
        """Get the WebDriver instance, creating it if needed."""
        if not self._initialized:
            self._initialize()
        return self._driver

    def _initialize(self) -> None:
        """Initialize all components lazily."""
        if self._initialized:
            return

        if self._driver is None:
            self._driver = create_driver(
                headless=self.config.headless,
                profile_path=self.config.profile_path,
                page_load_timeout=self.config.page_load_timeout,
            )

        driver = self._driver
        self.pages = PageRegistry(driver)
        self.scanner = VisualScanner(driver)
        self.index = SnapshotIndex(scanner=self.scanner)
        self.builder = AccessibilityTreeBuilder(self.index)
        self.source = AccessibilityTreeSource(
            driver,
            interesting_only=self.config.interesting_only,
            with_bounds=self.config.with_bounds,
        )
        self.resolver = ElementResolver(driver, self.index)
        self.interactions = InteractionDriver(
            driver,
            self.resolver,
            self.pages,
            settle_delay=self.config.settle_delay,
            new_tab_settle=self.config.new_tab_settle,
        )
        self._initialized = True
        self.pages.refresh()

    @contextmanager
    def _command(self, action: str) -> Iterator[None]:
        """Run one command; a fatal driver failure marks the session unusable."""
        if not self.usable:
            raise DriverFailure("Browser session is no longer usable; restart the shell", fatal=True)
        with translate_driver_errors("Start session"):
            self._initialize()
        try:
            with translate_driver_errors(action):
                yield
        except DriverFailure as e:
            if e.fatal:
                self.usable = False
                logger.error(f"[Session] {e}")
            raise

    # --- Tabs ---

    def open(self, url: str) -> PageInfo:
        with self._command("Open page"):
            return self.pages.open(url)

    def navigate(self, url: str) -> str:
        with self._command("Navigate"):
            return self.pages.navigate(url)

    def close_page(self, page_id: Optional[int] = None) -> Optional[PageInfo]:
        with self._command("Close page"):
            return self.pages.close(page_id)

    def switch_page(self, page_id: int) -> PageInfo:
        with self._command("Switch page"):
            return self.pages.select(page_id)

    def list_pages(self) -> List[PageInfo]:
        with self._command("List pages"):
            return self.pages.refresh()

    # --- Perception ---

    def take_snapshot(self) -> Snapshot:
        """Capture a new accessibility snapshot; previous uids stop resolving."""
        with self._command("Snapshot"):
            page = self.pages.current()
            nodes = self.source.fetch()
            return self.builder.build_from_flat(nodes, page_id=page.id)

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self.index.snapshot if self.index else None

    def list_elements_for_visual_scan(self) -> List[NodeRecord]:
        """Enumerate visible text elements as ``ocr_<n>`` records."""
        with self._command("Visual scan"):
            self.pages.current()
            records = self.scanner.scan()
            self.index.clear(VISUAL_NAMESPACE)
            return records

    def link_hrefs(self) -> Dict[str, str]:
        """Link text to absolute href, for annotating link entries."""
        with self._command("Read links"):
            return self.driver.execute_script(LINK_HREFS_SCRIPT) or {}

    # --- Interaction ---

    def click(self, uid: str) -> ActionResult:
        with self._command(f"Click {uid}"):
            self._check_page_context(uid)
            return self.interactions.click(uid)

    def fill(self, uid: str, text: str) -> ActionResult:
        with self._command(f"Fill {uid}"):
            self._check_page_context(uid)
            return self.interactions.fill(uid, text)

    def hover(self, uid: str) -> ActionResult:
        with self._command(f"Hover {uid}"):
            self._check_page_context(uid)
            return self.interactions.hover(uid)

    def press_key(self, key: str) -> ActionResult:
        with self._command(f"Press {key}"):
            return self.interactions.press_key(key)

    def _check_page_context(self, uid: str) -> None:
        parts = split_uid(uid)
        snapshot = self.index.snapshot
        if not parts or parts[0] != TREE_NAMESPACE or snapshot is None:
            return
        if snapshot.page_id is not None and snapshot.page_id != self.pages.current_id:
            logger.warning(
                f"[Session] {uid} comes from a snapshot of page {snapshot.page_id}, "
                f"but page {self.pages.current_id} is current"
            )

    def wait_for(self, text: str, timeout_ms: Optional[int] = None) -> None:
        """
        Block until ``text`` appears in the page body.

        Raises:
            WaitTimeout: the text did not appear within ``timeout_ms``
        """
        timeout_ms = self.config.wait_timeout_ms if timeout_ms is None else timeout_ms
        with self._command(f"Wait for {text!r}"):
            self.pages.current()
            try:
                WebDriverWait(self.driver, timeout_ms / 1000, poll_frequency=0.2).until(
                    lambda d: d.execute_script(TEXT_PRESENT_SCRIPT, text)
                )
            except TimeoutException as e:
                raise WaitTimeout(f"Text {text!r} did not appear within {timeout_ms} ms", timeout_ms=timeout_ms) from e

    # --- Output ---

    def screenshot(self, path: Optional[str] = None) -> bytes:
        """PNG of the current viewport, also written to ``path`` when given."""
        with self._command("Screenshot"):
            self.pages.current()
            data = self.driver.get_screenshot_as_png()

        if path:
            parent = os.path.dirname(os.path.abspath(path))
            os.makedirs(parent, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
            logger.info(f"[Session] Screenshot saved to {path}")
        return data

    def evaluate(self, code: str) -> Any:
        """Run JavaScript in the page; a bare expression is returned as the result."""
        script = code if code.lstrip().startswith("return") or ";" in code else f"return ({code});"
        with self._command("Evaluate"):
            self.pages.current()
            return self.driver.execute_script(script)

    def console_messages(self) -> List[Dict[str, Any]]:
        with self._command("Read console"):
            return list(self.driver.get_log("browser"))

    def network_requests(self) -> List[Dict[str, Any]]:
        """Requests issued by the current page, oldest first."""
        with self._command("Read network"):
            page = self.pages.current()
            for entry in self.driver.get_log("performance"):
                request = parse_network_entry(entry)
                if request is not None:
                    self._requests.append(request)
        # DevTools target ids double as ChromeDriver window handles
        return [r for r in self._requests if r["page"] in (None, page.handle)]

    def status(self) -> Dict[str, Any]:
        """Summary of the session for display."""
        with self._command("Status"):
            pages = self.pages.refresh()
            current = next((p for p in pages if p.selected), None)
        snapshot = self.index.snapshot
        return {
            "headless": self.config.headless,
            "pages": len(pages),
            "current_page": current.id if current else None,
            "url": current.url if current else None,
            "snapshot_nodes": len(snapshot) if snapshot else 0,
        }

    # --- Lifecycle ---

    def close(self) -> None:
        """Quit the browser if this session started it."""
        if self._driver is not None and self._owns_driver:
            try:
                self._driver.quit()
            except Exception as e:
                logger.debug(f"[Session] Browser quit failed: {e}")
        self._driver = None
        self._initialized = False

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
