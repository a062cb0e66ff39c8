"""
Interaction Driver - click, fill, hover and key presses by uid.

Every action resolves its uid first, scrolls the element into view and
lets the layout settle before acting. Clicks walk a fallback chain
(script click, native click, pointer click at the element centre) and
only fail once every strategy has failed.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, TYPE_CHECKING
import logging
import time

from selenium.common.exceptions import StaleElementReferenceException
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.actions.action_builder import ActionBuilder
from selenium.webdriver.common.keys import Keys

from shellchrome.core.errors import NotFound, SESSION_LOST_ERRORS, StaleReference, translate_driver_errors

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement
    from shellchrome.core.pages import PageRegistry
    from shellchrome.layers.action.resolver import ElementResolver

logger = logging.getLogger(__name__)

KEY_ALIASES = {
    "enter": Keys.ENTER,
    "return": Keys.RETURN,
    "tab": Keys.TAB,
    "escape": Keys.ESCAPE,
    "esc": Keys.ESCAPE,
    "backspace": Keys.BACKSPACE,
    "delete": Keys.DELETE,
    "space": Keys.SPACE,
    "arrowup": Keys.ARROW_UP,
    "arrowdown": Keys.ARROW_DOWN,
    "arrowleft": Keys.ARROW_LEFT,
    "arrowright": Keys.ARROW_RIGHT,
    "home": Keys.HOME,
    "end": Keys.END,
    "pageup": Keys.PAGE_UP,
    "pagedown": Keys.PAGE_DOWN,
    "control": Keys.CONTROL,
    "ctrl": Keys.CONTROL,
    "shift": Keys.SHIFT,
    "alt": Keys.ALT,
    "meta": Keys.COMMAND,
    "command": Keys.COMMAND,
}
KEY_ALIASES.update({f"f{n}": getattr(Keys, f"F{n}") for n in range(1, 13)})

CLEAR_VALUE_SCRIPT = r"""
const el = arguments[0];
el.focus();
if ('value' in el) {
    const proto = Object.getPrototypeOf(el);
    const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
    if (descriptor && descriptor.set) descriptor.set.call(el, '');
    else el.value = '';
} else if (el.isContentEditable) {
    el.textContent = '';
}
el.dispatchEvent(new Event('input', {bubbles: true}));
el.dispatchEvent(new Event('change', {bubbles: true}));
"""


@dataclass
class ActionResult:
    """Outcome of a completed action; failures raise instead."""
    action: str
    target: str
    duration_ms: float
    metadata: Optional[dict] = None


def parse_key_combo(combo: str) -> Tuple[List[str], str]:
    """
    Split ``"Control+Shift+A"`` into modifier keys and the final key.

    Named keys are case-insensitive; anything else is typed as is.
    """
    parts = [part for part in combo.split("+") if part] if combo != "+" else ["+"]
    if not parts:
        raise ValueError("Empty key")
    keys = [KEY_ALIASES.get(part.lower(), part) for part in parts]
    return keys[:-1], keys[-1]


class InteractionDriver:
    """
    Perform user-level actions on resolved elements.

    Example:
        >>> interactions = InteractionDriver(driver, resolver, pages)
        >>> result = interactions.click("uid_4")
        >>> result.metadata["strategy"]
        'script'
    """

    def __init__(
        self,
        driver: "WebDriver",
        resolver: "ElementResolver",
        pages: "PageRegistry",
        settle_delay: float = 0.1,
        new_tab_settle: float = 1.0,
    ):
        self.driver = driver
        self.resolver = resolver
        self.pages = pages
        self.settle_delay = settle_delay
        self.new_tab_settle = new_tab_settle

    def click(self, uid: str) -> ActionResult:
        """
        Click an element, following a new tab if the click opened one.

        Raises:
            NotFound: the uid cannot be resolved or every click strategy failed
            StaleReference: the element went stale during the last attempt
        """
        start_time = time.time()
        known_pages = {page.id for page in self.pages.refresh()}

        with self.resolver.resolve(uid) as resolved:
            element = resolved.element
            with translate_driver_errors(f"Click {uid}"):
                self._scroll_into_view(element)
                opens_new_tab = self._opens_new_tab(element)
            strategy = self._click_with_fallbacks(uid, element)

        metadata = {"strategy": strategy, "resolution": resolved.strategy.value}
        if opens_new_tab:
            switched = self._follow_new_tab(known_pages)
            if switched is not None:
                metadata["switched_to_page"] = switched

        return ActionResult(
            action="click",
            target=uid,
            duration_ms=(time.time() - start_time) * 1000,
            metadata=metadata,
        )

    def _click_with_fallbacks(self, uid: str, element: "WebElement") -> str:
        attempts: List[Tuple[str, Callable[[], Any]]] = [
            ("script", lambda: self.driver.execute_script("arguments[0].click();", element)),
            ("native", element.click),
            ("pointer", lambda: self._pointer_click(element)),
        ]

        last_error: Optional[Exception] = None
        for name, attempt in attempts:
            try:
                attempt()
                return name
            except SESSION_LOST_ERRORS:
                raise
            except Exception as e:
                logger.debug(f"[Interaction] {name} click on {uid} failed: {e}. Falling back...")
                last_error = e

        if isinstance(last_error, StaleElementReferenceException):
            raise StaleReference(f"Element {uid} went stale before it could be clicked", uid=uid)
        raise NotFound(f"Element {uid} could not be clicked: {last_error}", uid=uid)

    def _pointer_click(self, element: "WebElement") -> None:
        rect = self.driver.execute_script(
            "const r = arguments[0].getBoundingClientRect();"
            "return {x: r.left, y: r.top, width: r.width, height: r.height};",
            element,
        )
        x = int(rect["x"] + rect["width"] / 2)
        y = int(rect["y"] + rect["height"] / 2)
        actions = ActionBuilder(self.driver)
        actions.pointer_action.move_to_location(x, y)
        actions.pointer_action.click()
        actions.perform()

    def _opens_new_tab(self, element: "WebElement") -> bool:
        return bool(self.driver.execute_script(
            "const a = arguments[0].closest('a');"
            "return !!a && (a.getAttribute('target') || '').toLowerCase() === '_blank';",
            element,
        ))

    def _follow_new_tab(self, known_pages: set) -> Optional[int]:
        time.sleep(self.new_tab_settle)
        pages = self.pages.refresh()
        newest = self.pages.newest()
        if len(pages) > 1 and newest is not None and newest.id not in known_pages:
            self.pages.select(newest.id)
            logger.info(f"[Interaction] Link opened page {newest.id}; switched to it")
            return newest.id
        return None

    def fill(self, uid: str, text: str) -> ActionResult:
        """Replace the element's value with ``text``."""
        start_time = time.time()
        with self.resolver.resolve(uid) as resolved:
            element = resolved.element
            with translate_driver_errors(f"Fill {uid}"):
                self._scroll_into_view(element)
                self.driver.execute_script(CLEAR_VALUE_SCRIPT, element)
                element.send_keys(text)

        return ActionResult(
            action="fill",
            target=uid,
            duration_ms=(time.time() - start_time) * 1000,
            metadata={"resolution": resolved.strategy.value},
        )

    def hover(self, uid: str) -> ActionResult:
        start_time = time.time()
        with self.resolver.resolve(uid) as resolved:
            element = resolved.element
            with translate_driver_errors(f"Hover {uid}"):
                self._scroll_into_view(element)
                ActionChains(self.driver).move_to_element(element).perform()

        return ActionResult(
            action="hover",
            target=uid,
            duration_ms=(time.time() - start_time) * 1000,
            metadata={"resolution": resolved.strategy.value},
        )

    def press_key(self, combo: str) -> ActionResult:
        """Press a key or combo such as ``Enter`` or ``Control+A`` on the focused element."""
        start_time = time.time()
        modifiers, key = parse_key_combo(combo)

        with translate_driver_errors(f"Press {combo}"):
            chain = ActionChains(self.driver)
            for modifier in modifiers:
                chain.key_down(modifier)
            chain.send_keys(key)
            for modifier in reversed(modifiers):
                chain.key_up(modifier)
            chain.perform()

        return ActionResult(
            action="press_key",
            target=combo,
            duration_ms=(time.time() - start_time) * 1000,
        )

    def _scroll_into_view(self, element: "WebElement") -> None:
        """Scroll an element into the viewport, then let the layout settle."""
        in_view = self.driver.execute_script("""
            var rect = arguments[0].getBoundingClientRect();
            return (
                rect.top >= 0 &&
                rect.left >= 0 &&
                rect.bottom <= (window.innerHeight || document.documentElement.clientHeight) &&
                rect.right <= (window.innerWidth || document.documentElement.clientWidth)
            );
        """, element)

        if not in_view:
            self.driver.execute_script(
                "arguments[0].scrollIntoView({behavior: 'instant', block: 'center'});",
                element
            )
        time.sleep(self.settle_delay)
