"""
Visual Scanner - flat enumeration of visible, text-bearing elements.

Bypasses the accessibility tree and reads the rendered page directly.
Used when the accessibility tree is sparse or unavailable. Every call
re-enumerates the page; results are numbered ``ocr_1..n`` in reading
order (top-to-bottom rows of 10 px, then left-to-right).
"""

from typing import Any, Dict, List, TYPE_CHECKING
import logging
import math
import re

from shellchrome.core.errors import DriverFailure, SESSION_LOST_ERRORS
from shellchrome.layers.sense.records import (
    BoundingBox,
    NodeRecord,
    StructuralLocator,
    VISUAL_NAMESPACE,
    make_uid,
)

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 50
ROW_BUCKET_PX = 10
NUMERIC_ONLY = re.compile(r"^\d+$")


def keep_text(text: str) -> bool:
    """Empty, over-long and purely numeric labels are treated as noise."""
    if not text:
        return False
    if len(text) > MAX_TEXT_LENGTH:
        return False
    return not NUMERIC_ONLY.match(text)


def reading_order_key(box: BoundingBox) -> tuple:
    """Row bucket (nearest 10 px, halves round up) first, then horizontal position."""
    return (math.floor(box.y / ROW_BUCKET_PX + 0.5), box.x)


class VisualScanner:
    """
    Enumerates what a reader would see on the page.

    Example:
        >>> scanner = VisualScanner(driver)
        >>> for record in scanner.scan():
        ...     print(record)
        [ocr_1] button: Sign in
    """

    # Text-like input types worth listing
    TEXT_INPUT_TYPES = ["", "text", "search", "email", "password", "url", "tel", "number"]

    def __init__(self, driver: "WebDriver"):
        self.driver = driver

    def scan(self) -> List[NodeRecord]:
        """Return a freshly numbered list of visible elements."""
        try:
            raw = self.driver.execute_script(self._get_scan_script(), self.TEXT_INPUT_TYPES)
        except SESSION_LOST_ERRORS:
            raise
        except Exception as e:
            raise DriverFailure(f"Visual scan failed: {e}") from e

        return self.build_records(raw or [])

    def build_records(self, raw: List[Dict[str, Any]]) -> List[NodeRecord]:
        """Filter, order and number raw scan results."""
        kept = []
        for item in raw:
            text = (item.get("text") or "").strip()
            box = BoundingBox.from_value(item.get("rect"))
            if box is None or box.is_empty or not keep_text(text):
                continue
            kept.append((box, text, item))

        # sorted() is stable, so equal keys keep document order
        kept.sort(key=lambda entry: reading_order_key(entry[0]))

        records = []
        for number, (box, text, item) in enumerate(kept, start=1):
            xpath = item.get("xpath")
            records.append(NodeRecord(
                uid=make_uid(VISUAL_NAMESPACE, number),
                role=item.get("role") or "text",
                name=text,
                bounding_box=box,
                locator=StructuralLocator(xpath) if xpath else None,
            ))

        logger.debug(f"[VisualScanner] {len(records)} of {len(raw)} candidates kept")
        return records

    def _get_scan_script(self) -> str:
        """JavaScript that lists candidate elements with text, rect and XPath."""
        return r"""
        const textInputTypes = new Set(arguments[0]);
        const selector = [
            'button', 'input', 'textarea', 'a', 'label',
            'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
            'p', 'span', 'div', 'li', 'td', 'th',
            '[role="button"]', '[role="link"]', '[role="heading"]', '[role="text"]'
        ].join(', ');
        const containerTags = new Set(['P', 'SPAN', 'DIV', 'LI', 'TD', 'TH']);

        const isVisible = (el) => {
            const rect = el.getBoundingClientRect();
            if (rect.width === 0 || rect.height === 0) return false;
            const style = window.getComputedStyle(el);
            return style.display !== 'none' && style.visibility !== 'hidden' && style.opacity !== '0';
        };

        const getXPath = (el) => {
            if (el.id) return '//*[@id="' + el.id + '"]';
            const parts = [];
            let cur = el;
            while (cur && cur.nodeType === Node.ELEMENT_NODE) {
                let nth = 1;
                let sib = cur.previousElementSibling;
                while (sib) {
                    if (sib.nodeName === cur.nodeName) nth++;
                    sib = sib.previousElementSibling;
                }
                parts.unshift(cur.nodeName.toLowerCase() + '[' + nth + ']');
                cur = cur.parentElement;
            }
            return '/' + parts.join('/');
        };

        const roleOf = (el) => {
            const explicit = el.getAttribute('role');
            if (explicit) return explicit;
            const tag = el.tagName;
            if (tag === 'BUTTON') return 'button';
            if (tag === 'A') return 'link';
            if (tag === 'INPUT' || tag === 'TEXTAREA') return 'textbox';
            if (/^H[1-6]$/.test(tag)) return 'heading';
            if (tag === 'LABEL') return 'label';
            return 'text';
        };

        const directText = (el) => Array.from(el.childNodes)
            .filter(n => n.nodeType === Node.TEXT_NODE)
            .map(n => n.textContent)
            .join(' ')
            .replace(/\s+/g, ' ')
            .trim();

        const results = [];
        for (const el of document.querySelectorAll(selector)) {
            const tag = el.tagName;
            if (tag === 'INPUT' && !textInputTypes.has((el.getAttribute('type') || '').toLowerCase())) continue;
            if (!isVisible(el)) continue;

            let text;
            if (tag === 'INPUT' || tag === 'TEXTAREA') {
                text = el.placeholder || el.value || '';
            } else if (containerTags.has(tag) && !el.getAttribute('role')) {
                text = directText(el);
            } else {
                text = (el.textContent || '').replace(/\s+/g, ' ').trim();
            }

            const rect = el.getBoundingClientRect();
            results.push({
                tag: tag.toLowerCase(),
                role: roleOf(el),
                text: text,
                xpath: getXPath(el),
                rect: {x: rect.left, y: rect.top, width: rect.width, height: rect.height}
            });
        }
        return results;
        """
