"""
Records - the indexed representation of discovered elements.

A ``NodeRecord`` describes one accessible (``uid_<n>``) or visually
scanned (``ocr_<n>``) element. A ``Snapshot`` groups the records of one
epoch and is never modified after it is built.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

TREE_NAMESPACE = "uid"
VISUAL_NAMESPACE = "ocr"

UNKNOWN_ROLE = "unknown"
EMPTY_SNAPSHOT_MARKER = "(no accessible elements)"

# Roles offered by the "interactive elements" listing
INTERACTIVE_ROLES = frozenset([
    "button", "textbox", "link", "checkbox", "radio",
    "combobox", "listbox", "menuitem", "option", "tab",
    "treeitem", "menu", "menubar", "toolbar", "searchbox",
    "spinbutton", "slider", "switch",
])


def make_uid(namespace: str, number: int) -> str:
    return f"{namespace}_{number}"


def split_uid(uid: str) -> Optional[tuple]:
    """Split ``"uid_12"`` into ``("uid", 12)``; None when malformed."""
    if not isinstance(uid, str) or "_" not in uid:
        return None
    namespace, _, suffix = uid.rpartition("_")
    if not namespace or not suffix.isdigit():
        return None
    return namespace, int(suffix)


@dataclass(frozen=True)
class BoundingBox:
    """Element bounds in viewport pixels at capture time."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_value(cls, value: Any) -> Optional["BoundingBox"]:
        """Accept a dict (``x/y/width/height`` or ``left/top``) or a 4-sequence."""
        if value is None:
            return None
        if isinstance(value, BoundingBox):
            return value
        try:
            if isinstance(value, dict):
                x = value.get("x", value.get("left"))
                y = value.get("y", value.get("top"))
                width = value.get("width")
                height = value.get("height")
            else:
                x, y, width, height = value
            return cls(float(x), float(y), float(width), float(height))
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class DirectHandleLocator:
    """The provider can hand back the live node for this DOM backend id."""
    backend_node_id: int


@dataclass(frozen=True)
class StructuralLocator:
    """An XPath captured at scan time, replayed to re-find the element."""
    xpath: str


Locator = Union[DirectHandleLocator, StructuralLocator]


@dataclass
class NodeRecord:
    """
    One accessible or visually scanned element.

    ``parent_uid`` and ``children`` are only populated in the tree
    namespace; they hold uids, never objects.
    """
    uid: str
    role: str = UNKNOWN_ROLE
    name: Optional[str] = None
    value: Optional[str] = None
    description: Optional[str] = None
    bounding_box: Optional[BoundingBox] = None
    parent_uid: Optional[str] = None
    children: List[str] = field(default_factory=list)
    locator: Optional[Locator] = None

    @property
    def namespace(self) -> str:
        parts = split_uid(self.uid)
        return parts[0] if parts else ""

    def is_interactive(self) -> bool:
        return self.role in INTERACTIVE_ROLES

    def label(self) -> str:
        """``role: name`` plus the value, as shown to the operator."""
        text = self.role
        if self.name:
            text += f": {self.name}"
        if self.value:
            text += f" = {self.value}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Display view: role, name, value and bounds only."""
        return {
            "uid": self.uid,
            "role": self.role,
            "name": self.name,
            "value": self.value,
            "bounding_box": self.bounding_box.to_dict() if self.bounding_box else None,
        }

    def __str__(self) -> str:
        return f"[{self.uid}] {self.label()}"


class Snapshot:
    """
    One epoch of uid-tagged records.

    The index is exposed read-only; a new snapshot replaces this one
    wholesale rather than updating it.
    """

    def __init__(
        self,
        root: Optional[NodeRecord],
        index: Mapping[str, NodeRecord],
        counter_start: int = 1,
        page_id: Optional[int] = None,
        namespace: str = TREE_NAMESPACE,
    ):
        self.root = root
        self.index = MappingProxyType(dict(index))
        self.counter_start = counter_start
        self.page_id = page_id
        self.namespace = namespace

    @classmethod
    def empty(cls, page_id: Optional[int] = None) -> "Snapshot":
        return cls(root=None, index={}, page_id=page_id)

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def __len__(self) -> int:
        return len(self.index)

    def __contains__(self, uid: object) -> bool:
        return uid in self.index

    def get(self, uid: str) -> Optional[NodeRecord]:
        return self.index.get(uid)

    def walk(self) -> Iterator[tuple]:
        """Yield ``(depth, record)`` in pre-order."""
        if self.root is None:
            return
        stack = [(0, self.root)]
        while stack:
            depth, record = stack.pop()
            yield depth, record
            for child_uid in reversed(record.children):
                child = self.index.get(child_uid)
                if child is not None:
                    stack.append((depth + 1, child))

    def records(self) -> List[NodeRecord]:
        return [record for _, record in self.walk()]

    def interactive_records(self) -> List[NodeRecord]:
        return [record for record in self.records() if record.is_interactive()]

    def render(self) -> str:
        """Indented text tree, one element per line."""
        if self.is_empty:
            return EMPTY_SNAPSHOT_MARKER
        return "\n".join(f"{'  ' * depth}{record}" for depth, record in self.walk())

    def __repr__(self) -> str:
        return f"Snapshot(nodes={len(self.index)}, page_id={self.page_id})"
