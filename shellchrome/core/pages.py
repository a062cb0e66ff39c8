"""
Page Registry - tab lifecycle on top of WebDriver window handles.

Tabs get small integer ids in the order they are first seen. The ids
stay stable while a tab is open, so the highest id is always the most
recently created tab.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, TYPE_CHECKING
import logging
import re

from selenium.common.exceptions import NoSuchWindowException

from shellchrome.core.errors import NotFound, SESSION_LOST_ERRORS, translate_driver_errors

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^(https?://|about:|file:|data:|chrome:)", re.IGNORECASE)


def normalize_url(url: Optional[str]) -> str:
    """Add ``https://`` to bare host names; empty input means ``about:blank``."""
    if not url or not url.strip():
        return "about:blank"
    url = url.strip()
    if _SCHEME.match(url):
        return url
    return "https://" + url


@dataclass
class PageInfo:
    """One open tab."""
    id: int
    handle: str
    url: str = ""
    title: str = ""
    selected: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {"id": self.id, "url": self.url, "title": self.title, "selected": self.selected}


class PageRegistry:
    """
    Keeps the list of open tabs and the current-page pointer.

    Example:
        >>> pages = PageRegistry(driver)
        >>> pages.open("example.com")
        >>> [p.id for p in pages.refresh()]
        [1, 2]
    """

    def __init__(self, driver: "WebDriver"):
        self.driver = driver
        self._ids: Dict[str, int] = {}
        self._next_id = 1
        self._pages: List[PageInfo] = []
        self.current_id: Optional[int] = None

    @property
    def pages(self) -> List[PageInfo]:
        return list(self._pages)

    def refresh(self) -> List[PageInfo]:
        """Re-read the open tabs from the driver."""
        with translate_driver_errors("List pages"):
            handles = list(self.driver.window_handles)
            targets = self._target_infos()
            try:
                current_handle = self.driver.current_window_handle
            except NoSuchWindowException:
                # Current tab was closed underneath us
                current_handle = None

        for handle in list(self._ids):
            if handle not in handles:
                del self._ids[handle]
        for handle in handles:
            if handle not in self._ids:
                self._ids[handle] = self._next_id
                self._next_id += 1

        self._pages = []
        for handle in handles:
            info = targets.get(handle, {})
            self._pages.append(PageInfo(
                id=self._ids[handle],
                handle=handle,
                url=info.get("url", ""),
                title=info.get("title", ""),
                selected=handle == current_handle,
            ))

        self.current_id = self._ids.get(current_handle) if current_handle else None
        return self.pages

    def _target_infos(self) -> Dict[str, Dict[str, str]]:
        """URL and title per tab; ChromeDriver window handles are DevTools target ids."""
        try:
            response = self.driver.execute_cdp_cmd("Target.getTargets", {})
        except SESSION_LOST_ERRORS:
            raise
        except Exception as e:
            logger.debug(f"[Pages] Target listing unavailable: {e}")
            return {}
        return {
            info.get("targetId"): info
            for info in (response or {}).get("targetInfos", [])
            if info.get("type") == "page"
        }

    def get(self, page_id: int) -> PageInfo:
        for page in self._pages:
            if page.id == page_id:
                return page
        raise NotFound(f"Page {page_id} does not exist")

    def current(self) -> PageInfo:
        """The selected page; raises NotFound when none is open."""
        if self.current_id is None:
            self.refresh()
        if self.current_id is None:
            raise NotFound("No page is selected; open one with 'o <url>'")
        return self.get(self.current_id)

    def newest(self) -> Optional[PageInfo]:
        return max(self._pages, key=lambda p: p.id) if self._pages else None

    def open(self, url: str) -> PageInfo:
        """Open ``url`` in a new tab and make it current."""
        full_url = normalize_url(url)
        with translate_driver_errors(f"Open {full_url}"):
            self.driver.switch_to.new_window("tab")
            self.driver.get(full_url)
        self.refresh()
        logger.info(f"[Pages] Opened page {self.current_id}: {full_url}")
        return self.current()

    def navigate(self, url: str) -> str:
        """Load ``url`` in the current tab."""
        self.current()
        full_url = normalize_url(url)
        with translate_driver_errors(f"Navigate to {full_url}"):
            self.driver.get(full_url)
        self.refresh()
        return full_url

    def select(self, page_id: int) -> PageInfo:
        """Switch the current-page pointer (and browser focus) to ``page_id``."""
        self.refresh()
        page = self.get(page_id)
        with translate_driver_errors(f"Switch to page {page_id}"):
            self.driver.switch_to.window(page.handle)
        self.refresh()
        return self.get(page_id)

    def close(self, page_id: Optional[int] = None) -> Optional[PageInfo]:
        """
        Close ``page_id`` (default: the current page).

        Closing the last tab leaves a blank tab behind so the browser
        session stays alive.

        Returns:
            The page that is current afterwards
        """
        self.refresh()
        target_id = page_id if page_id is not None else self.current_id
        if target_id is None:
            raise NotFound("No page to close; open one with 'o <url>'")
        target = self.get(target_id)
        previous_id = self.current_id

        with translate_driver_errors(f"Close page {target_id}"):
            if len(self._pages) == 1:
                self.driver.switch_to.new_window("tab")
            self.driver.switch_to.window(target.handle)
            self.driver.close()

            remaining = [p for p in self._pages if p.id != target_id]
            handles = list(self.driver.window_handles)
            if previous_id != target_id and any(p.id == previous_id for p in remaining):
                follow = next(p.handle for p in remaining if p.id == previous_id)
            elif remaining:
                follow = remaining[0].handle
            else:
                follow = handles[0]
            self.driver.switch_to.window(follow)

        self.refresh()
        logger.info(f"[Pages] Closed page {target_id}")
        return self.current() if self.current_id is not None else None
