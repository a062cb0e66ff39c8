"""
Element Resolver - turn a uid into a live, actionable element.

A uid comes from a snapshot taken at some earlier moment; the page may
have scrolled, re-rendered or mutated since. Resolution therefore tries,
in order:

1. DIRECT: ask DevTools for the live node behind the recorded backend id.
2. HEURISTIC: score every element on the page against the record
   (role, text, position) and take the best one.
3. STRUCTURAL: replay the XPath captured by the visual scanner.

The first strategy that yields an attached element wins. Every resolved
element must be released after use; ``ResolvedElement`` is a context
manager for that purpose.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING
import logging
import uuid

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from shellchrome.core.errors import NotFound, SESSION_LOST_ERRORS
from shellchrome.layers.sense.records import (
    DirectHandleLocator,
    NodeRecord,
    StructuralLocator,
    VISUAL_NAMESPACE,
)

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement
    from shellchrome.layers.sense.snapshot_index import SnapshotIndex

logger = logging.getLogger(__name__)

# Heuristic weights
ROLE_MATCH_SCORE = 10
TEXT_EXACT_SCORE = 20
TEXT_CANDIDATE_CONTAINS_SCORE = 15  # live text contains the recorded name
TEXT_TARGET_CONTAINS_SCORE = 10  # recorded name contains the live text
GEOMETRY_MATCH_SCORE = 30
GEOMETRY_EPSILON_PX = 10

HANDLE_ATTRIBUTE = "data-shellchrome-handle"

BUTTON_INPUT_TYPES = {"button", "submit", "reset"}


class ResolutionStrategy(Enum):
    """Which strategy produced the element."""
    DIRECT = "direct"
    HEURISTIC = "heuristic"
    STRUCTURAL = "structural"


@dataclass
class Candidate:
    """One live element as seen by the heuristic scan, in document order."""
    index: int
    tag: str
    role: Optional[str] = None  # explicit ARIA role
    input_type: Optional[str] = None
    text: str = ""
    x: float = 0.0
    y: float = 0.0

    @property
    def effective_role(self) -> str:
        return effective_role(self.tag, self.role, self.input_type)

    @classmethod
    def from_dict(cls, index: int, data: Dict[str, Any]) -> "Candidate":
        return cls(
            index=index,
            tag=(data.get("tag") or "").lower(),
            role=data.get("role") or None,
            input_type=(data.get("type") or "").lower() or None,
            text=" ".join((data.get("text") or "").split()),
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
        )


def effective_role(tag: str, explicit_role: Optional[str] = None, input_type: Optional[str] = None) -> str:
    """Explicit ARIA role, else the role implied by the tag."""
    if explicit_role:
        return explicit_role
    if tag == "a":
        return "link"
    if tag == "button":
        return "button"
    if tag == "input" and (input_type or "") in BUTTON_INPUT_TYPES:
        return "button"
    if tag in ("input", "textarea"):
        return "textbox"
    return tag


def score_candidate(record: NodeRecord, candidate: Candidate) -> int:
    """Integer agreement score between a recorded node and a live candidate."""
    score = 0

    if record.role and candidate.effective_role == record.role:
        score += ROLE_MATCH_SCORE

    target = (record.name or "").strip()
    text = candidate.text
    if target and text:
        if text == target:
            score += TEXT_EXACT_SCORE
        elif target in text:
            score += TEXT_CANDIDATE_CONTAINS_SCORE
        elif text in target:
            score += TEXT_TARGET_CONTAINS_SCORE

    box = record.bounding_box
    if box is not None:
        if abs(candidate.x - box.x) <= GEOMETRY_EPSILON_PX and abs(candidate.y - box.y) <= GEOMETRY_EPSILON_PX:
            score += GEOMETRY_MATCH_SCORE

    return score


def pick_best(record: NodeRecord, candidates: List[Candidate]) -> Optional[Tuple[Candidate, int]]:
    """
    Highest-scoring candidate; the first one seen wins ties.

    Returns None when no candidate scores above zero.
    """
    best: Optional[Candidate] = None
    best_score = 0
    for candidate in candidates:
        score = score_candidate(record, candidate)
        if score > best_score:
            best, best_score = candidate, score
    if best is None:
        return None
    return best, best_score


@dataclass
class ResolvedElement:
    """
    A live element handle plus how it was found.

    Use as a context manager, or call ``release()`` on every exit path.
    """
    uid: str
    element: "WebElement"
    strategy: ResolutionStrategy
    record: NodeRecord
    score: Optional[int] = None
    _releaser: Optional[Callable[[], None]] = field(default=None, repr=False)
    released: bool = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        if self._releaser is not None:
            try:
                self._releaser()
            except Exception as e:
                # Page already navigated away or closed; nothing left to free
                logger.debug(f"[Resolver] Release of {self.uid} failed: {e}")

    def __enter__(self) -> "ResolvedElement":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False


class ElementResolver:
    """
    Resolves uids from the snapshot index against the live page.

    Example:
        >>> resolver = ElementResolver(driver, index)
        >>> with resolver.resolve("uid_3") as resolved:
        ...     resolved.element.click()
    """

    def __init__(self, driver: "WebDriver", index: "SnapshotIndex"):
        self.driver = driver
        self.index = index

    def resolve(self, uid: str) -> ResolvedElement:
        """
        Find a live element for ``uid``.

        Raises:
            NotFound: the uid is not in the current epoch or no strategy matched
        """
        record = self.index.get(uid)
        return self.resolve_record(record)

    def resolve_record(self, record: NodeRecord) -> ResolvedElement:
        strategies = [self._resolve_direct, self._resolve_heuristic, self._resolve_structural]
        for strategy in strategies:
            try:
                resolved = strategy(record)
            except SESSION_LOST_ERRORS:
                raise
            except WebDriverException as e:
                logger.debug(f"[Resolver] {strategy.__name__} failed for {record.uid}: {e}")
                continue
            if resolved is not None:
                logger.debug(f"[Resolver] {record.uid} resolved via {resolved.strategy.value}")
                return resolved

        raise NotFound(f"Element {record.uid} ({record.label()}) could not be located on the page", uid=record.uid)

    # --- Strategy 1: direct handle ---

    def _resolve_direct(self, record: NodeRecord) -> Optional[ResolvedElement]:
        if not isinstance(record.locator, DirectHandleLocator):
            return None

        response = self.driver.execute_cdp_cmd(
            "DOM.resolveNode", {"backendNodeId": record.locator.backend_node_id}
        )
        object_id = ((response or {}).get("object") or {}).get("objectId")
        if not object_id:
            return None

        token = uuid.uuid4().hex
        try:
            tagged = self.driver.execute_cdp_cmd("Runtime.callFunctionOn", {
                "objectId": object_id,
                "functionDeclaration": (
                    "function(name, token) {"
                    " if (this.nodeType !== 1 || !this.isConnected) return false;"
                    " this.setAttribute(name, token); return true; }"
                ),
                "arguments": [{"value": HANDLE_ATTRIBUTE}, {"value": token}],
                "returnByValue": True,
            })
            if not ((tagged or {}).get("result") or {}).get("value"):
                self._release_object(object_id)
                return None
            element = self.driver.find_element(By.CSS_SELECTOR, f'[{HANDLE_ATTRIBUTE}="{token}"]')
        except WebDriverException:
            self._release_object(object_id)
            raise

        def releaser() -> None:
            self.driver.execute_cdp_cmd("Runtime.callFunctionOn", {
                "objectId": object_id,
                "functionDeclaration": "function(name) { this.removeAttribute(name); }",
                "arguments": [{"value": HANDLE_ATTRIBUTE}],
            })
            self._release_object(object_id)

        return ResolvedElement(
            uid=record.uid,
            element=element,
            strategy=ResolutionStrategy.DIRECT,
            record=record,
            _releaser=releaser,
        )

    def _release_object(self, object_id: str) -> None:
        try:
            self.driver.execute_cdp_cmd("Runtime.releaseObject", {"objectId": object_id})
        except WebDriverException:
            pass

    # --- Strategy 2: scored heuristic ---

    def list_candidates(self) -> List[Candidate]:
        """Every element of the page, in document order."""
        raw = self.driver.execute_script(self._get_candidates_script()) or []
        return [Candidate.from_dict(i, item) for i, item in enumerate(raw)]

    def _resolve_heuristic(self, record: NodeRecord) -> Optional[ResolvedElement]:
        best = pick_best(record, self.list_candidates())
        if best is None:
            logger.debug(f"[Resolver] No candidate scored above 0 for {record.uid}")
            return None

        candidate, score = best
        element = self.driver.execute_script(
            "const el = document.querySelectorAll('*')[arguments[0]];"
            "return (el && el.tagName.toLowerCase() === arguments[1]) ? el : null;",
            candidate.index,
            candidate.tag,
        )
        if element is None:
            # Document changed between enumeration and lookup
            return None

        logger.debug(f"[Resolver] {record.uid} matched <{candidate.tag}> #{candidate.index} with score {score}")
        return ResolvedElement(
            uid=record.uid,
            element=element,
            strategy=ResolutionStrategy.HEURISTIC,
            record=record,
            score=score,
        )

    def _get_candidates_script(self) -> str:
        return r"""
        return Array.from(document.querySelectorAll('*')).map(el => {
            const rect = el.getBoundingClientRect();
            const content = (el.textContent || '').replace(/\s+/g, ' ').trim().substring(0, 500);
            return {
                tag: el.tagName.toLowerCase(),
                role: el.getAttribute('role'),
                type: el.getAttribute('type'),
                text: content || el.getAttribute('aria-label') || el.getAttribute('placeholder') || '',
                x: rect.left,
                y: rect.top
            };
        });
        """

    # --- Strategy 3: structural locator replay ---

    def _resolve_structural(self, record: NodeRecord) -> Optional[ResolvedElement]:
        if record.namespace != VISUAL_NAMESPACE or not isinstance(record.locator, StructuralLocator):
            return None

        element = self.driver.find_element(By.XPATH, record.locator.xpath)
        return ResolvedElement(
            uid=record.uid,
            element=element,
            strategy=ResolutionStrategy.STRUCTURAL,
            record=record,
        )
