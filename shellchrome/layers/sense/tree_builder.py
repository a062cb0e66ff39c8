"""
Accessibility Tree Builder - uid-tagged snapshots of the accessibility tree.

Two input shapes are supported:

* a nested tree (``{"role", "name", "children": [...]}``), as produced by
  accessibility snapshot APIs;
* a flat node list with ``nodeId``/``childIds`` references, as returned by
  the DevTools ``Accessibility.getFullAXTree`` command. The tree is
  rebuilt from the id map before numbering.

Numbering is pre-order depth-first and restarts at 1 for every snapshot.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING
import logging

from shellchrome.core.errors import DriverFailure, SESSION_LOST_ERRORS
from shellchrome.layers.sense.records import (
    BoundingBox,
    DirectHandleLocator,
    NodeRecord,
    Snapshot,
    TREE_NAMESPACE,
    UNKNOWN_ROLE,
    make_uid,
)

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from shellchrome.layers.sense.snapshot_index import SnapshotIndex

logger = logging.getLogger(__name__)

# Role the DevTools accessibility domain gives the document node
DOCUMENT_ROOT_ROLE = "RootWebArea"


def ax_text(node: Dict[str, Any], key: str) -> Optional[str]:
    """Read a property that may be a plain value or a ``{type, value}`` object."""
    raw = node.get(key)
    if isinstance(raw, dict):
        raw = raw.get("value")
    if raw is None:
        return None
    text = str(raw)
    return text if text != "" else None


class AccessibilityTreeBuilder:
    """
    Turns a raw accessibility tree into an immutable ``Snapshot``.

    Example:
        >>> builder = AccessibilityTreeBuilder(index)
        >>> snapshot = builder.build({"role": "button", "name": "Submit"})
        >>> snapshot.root.uid
        'uid_1'
    """

    def __init__(self, index: Optional["SnapshotIndex"] = None):
        self.index = index
        self._counter = 1

    def _reset(self) -> None:
        self._counter = 1
        if self.index is not None:
            self.index.clear(TREE_NAMESPACE)

    def _next_uid(self) -> str:
        uid = make_uid(TREE_NAMESPACE, self._counter)
        self._counter += 1
        return uid

    def build(self, raw_root: Optional[Dict[str, Any]], page_id: Optional[int] = None) -> Snapshot:
        """
        Build a snapshot from a nested accessibility tree.

        Args:
            raw_root: Root node with ordered ``children``; None or {} for an empty page
            page_id: Page the tree was captured from

        Returns:
            The new current Snapshot
        """
        self._reset()
        if not raw_root:
            return self._install(Snapshot.empty(page_id=page_id))

        return self._install(self._number(raw_root, lambda raw: raw.get("children") or [], page_id))

    def build_from_flat(self, nodes: Optional[List[Dict[str, Any]]], page_id: Optional[int] = None) -> Snapshot:
        """
        Build a snapshot from a flat node list with child-id references.

        The root is the first node whose role is the document root role,
        falling back to the first listed node. Child ids that do not resolve
        are skipped.
        """
        self._reset()
        if not nodes:
            return self._install(Snapshot.empty(page_id=page_id))

        by_id = {str(node.get("nodeId")): node for node in nodes if node.get("nodeId") is not None}
        root = next((node for node in nodes if ax_text(node, "role") == DOCUMENT_ROOT_ROLE), nodes[0])
        visited = set()

        def children_of(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
            visited.add(str(raw.get("nodeId")))
            resolved = []
            for child_id in raw.get("childIds") or []:
                key = str(child_id)
                child = by_id.get(key)
                if child is None or key in visited:
                    continue
                visited.add(key)
                resolved.append(child)
            return resolved

        return self._install(self._number(root, children_of, page_id))

    def _number(
        self,
        raw_root: Dict[str, Any],
        children_of: Callable[[Dict[str, Any]], List[Dict[str, Any]]],
        page_id: Optional[int],
    ) -> Snapshot:
        index: Dict[str, NodeRecord] = {}
        root_record: Optional[NodeRecord] = None

        # Iterative pre-order walk; children pushed in reverse so they pop in source order
        stack = [(raw_root, None)]
        while stack:
            raw, parent = stack.pop()
            record = self._make_record(raw, parent)
            index[record.uid] = record
            if parent is None:
                root_record = record
            else:
                parent.children.append(record.uid)

            for child in reversed(children_of(raw)):
                stack.append((child, record))

        return Snapshot(root=root_record, index=index, counter_start=1, page_id=page_id)

    def _make_record(self, raw: Dict[str, Any], parent: Optional[NodeRecord]) -> NodeRecord:
        backend_id = raw.get("backendDOMNodeId")
        locator = DirectHandleLocator(int(backend_id)) if isinstance(backend_id, int) and backend_id > 0 else None

        return NodeRecord(
            uid=self._next_uid(),
            role=ax_text(raw, "role") or UNKNOWN_ROLE,
            name=ax_text(raw, "name"),
            value=ax_text(raw, "value"),
            description=ax_text(raw, "description"),
            bounding_box=BoundingBox.from_value(raw.get("boundingBox") or raw.get("bounds")),
            parent_uid=parent.uid if parent else None,
            locator=locator,
        )

    def _install(self, snapshot: Snapshot) -> Snapshot:
        if self.index is not None:
            self.index.replace(snapshot)
        logger.info(f"[TreeBuilder] Snapshot built with {len(snapshot)} nodes")
        return snapshot


def collapse_ignored(nodes: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Drop nodes flagged ``ignored`` and hoist their children into the parent.

    The document root is always kept so the tree keeps its anchor.
    """
    nodes = list(nodes)
    by_id = {str(node.get("nodeId")): node for node in nodes}

    def is_dropped(node: Dict[str, Any]) -> bool:
        return bool(node.get("ignored")) and ax_text(node, "role") != DOCUMENT_ROOT_ROLE

    def expand(child_ids: Iterable[Any], seen: set) -> List[str]:
        result: List[str] = []
        for child_id in child_ids:
            key = str(child_id)
            if key in seen:
                continue
            seen.add(key)
            child = by_id.get(key)
            if child is not None and is_dropped(child):
                result.extend(expand(child.get("childIds") or [], seen))
            else:
                result.append(key)
        return result

    collapsed = []
    for node in nodes:
        if is_dropped(node):
            continue
        copy = dict(node)
        copy["childIds"] = expand(node.get("childIds") or [], {str(node.get("nodeId"))})
        collapsed.append(copy)
    return collapsed


class AccessibilityTreeSource:
    """
    Fetches the accessibility tree of the current page over DevTools.

    Example:
        >>> source = AccessibilityTreeSource(driver)
        >>> snapshot = builder.build_from_flat(source.fetch())
    """

    # Upper bound on box model round-trips per snapshot
    MAX_BOX_LOOKUPS = 2000

    def __init__(self, driver: "WebDriver", interesting_only: bool = True, with_bounds: bool = True):
        self.driver = driver
        self.interesting_only = interesting_only
        self.with_bounds = with_bounds

    def fetch(self) -> List[Dict[str, Any]]:
        """Return the flat node list of the current page."""
        try:
            response = self.driver.execute_cdp_cmd("Accessibility.getFullAXTree", {})
        except SESSION_LOST_ERRORS:
            raise
        except Exception as e:
            raise DriverFailure(f"Accessibility tree unavailable: {e}") from e

        nodes = (response or {}).get("nodes") or []
        if self.interesting_only:
            nodes = collapse_ignored(nodes)
        if self.with_bounds:
            self._attach_bounds(nodes)
        return nodes

    def _attach_bounds(self, nodes: List[Dict[str, Any]]) -> None:
        lookups = 0
        for node in nodes:
            backend_id = node.get("backendDOMNodeId")
            if not isinstance(backend_id, int) or lookups >= self.MAX_BOX_LOOKUPS:
                continue
            lookups += 1
            try:
                box = self.driver.execute_cdp_cmd("DOM.getBoxModel", {"backendNodeId": backend_id})
            except SESSION_LOST_ERRORS:
                raise
            except Exception:
                # Nodes without layout (text runs, hidden elements) have no box model
                continue
            bounds = quad_to_box(((box or {}).get("model") or {}).get("border"))
            if bounds is not None:
                node["boundingBox"] = bounds.to_dict()


def quad_to_box(quad: Optional[List[float]]) -> Optional[BoundingBox]:
    """Convert a DevTools quad (four x,y corner pairs) to a bounding box."""
    if not isinstance(quad, list) or len(quad) < 8:
        return None
    xs = [float(quad[i]) for i in (0, 2, 4, 6)]
    ys = [float(quad[i]) for i in (1, 3, 5, 7)]
    x, y = min(xs), min(ys)
    return BoundingBox(x, y, max(xs) - x, max(ys) - y)
