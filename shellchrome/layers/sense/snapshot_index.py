"""
Snapshot Index - uid to NodeRecord lookup for the current epoch.

Tree uids are looked up in the table filled by the last snapshot.
Visual (``ocr_<n>``) uids are not stored: a lookup re-runs the visual
scan and takes the n-th element of the fresh result, so they only stay
valid while the page's visual ordering is unchanged.
"""

from typing import Dict, List, Optional, TYPE_CHECKING
import logging

from shellchrome.core.errors import NotFound
from shellchrome.layers.sense.records import (
    NodeRecord,
    Snapshot,
    TREE_NAMESPACE,
    VISUAL_NAMESPACE,
    split_uid,
)

if TYPE_CHECKING:
    from shellchrome.layers.sense.visual_scanner import VisualScanner

logger = logging.getLogger(__name__)


class SnapshotIndex:
    """
    Mutable table holding exactly one epoch per namespace.

    Owned by a ``Session``; builders replace its contents, the resolver
    only reads from it.
    """

    NAMESPACES = (TREE_NAMESPACE, VISUAL_NAMESPACE)

    def __init__(self, scanner: Optional["VisualScanner"] = None):
        self.scanner = scanner
        # Only tree records are stored; visual uids are re-derived on lookup
        self._tables: Dict[str, Dict[str, NodeRecord]] = {TREE_NAMESPACE: {}}
        self._epochs: Dict[str, int] = {ns: 0 for ns in self.NAMESPACES}
        self._snapshot: Optional[Snapshot] = None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """The current tree-namespace snapshot, if any."""
        return self._snapshot

    def epoch(self, namespace: str = TREE_NAMESPACE) -> int:
        return self._epochs.get(namespace, 0)

    def get(self, uid: str) -> NodeRecord:
        """
        Look up a record in the current epoch.

        Raises:
            NotFound: malformed uid, unknown namespace, or not in this epoch
        """
        parts = split_uid(uid)
        if parts is None:
            raise NotFound(f"Malformed uid: {uid!r}", uid=uid)
        namespace, number = parts

        if namespace == VISUAL_NAMESPACE:
            return self._get_visual(uid, number)

        table = self._tables.get(namespace)
        if table is None:
            raise NotFound(f"Unknown uid namespace: {namespace!r}", uid=uid)

        record = table.get(uid)
        if record is None:
            raise NotFound(f"Element {uid} is not in the current snapshot; take a new snapshot", uid=uid)
        return record

    def _get_visual(self, uid: str, number: int) -> NodeRecord:
        if self.scanner is None:
            raise NotFound(f"No visual scanner available to resolve {uid}", uid=uid)

        records: List[NodeRecord] = self.scanner.scan()
        if number < 1 or number > len(records):
            raise NotFound(f"Element {uid} is not in the current visual scan ({len(records)} elements)", uid=uid)

        logger.debug(f"[Index] {uid} re-derived from a fresh visual scan")
        return records[number - 1]

    def put(self, uid: str, record: NodeRecord) -> None:
        parts = split_uid(uid)
        if parts is None or parts[0] not in self._tables:
            raise ValueError(f"Cannot store uid {uid!r}; only {TREE_NAMESPACE}_ records are stored")
        self._tables[parts[0]][uid] = record

    def clear(self, namespace: Optional[str] = None) -> None:
        """Drop one namespace (or all of them) and start a new epoch."""
        targets = [namespace] if namespace else list(self.NAMESPACES)
        for ns in targets:
            if ns not in self.NAMESPACES:
                raise ValueError(f"Unknown namespace: {ns!r}")
            if ns in self._tables:
                self._tables[ns] = {}
            self._epochs[ns] += 1
            if ns == TREE_NAMESPACE:
                self._snapshot = None

    def replace(self, snapshot: Snapshot) -> None:
        """Install a freshly built snapshot as the current epoch of its namespace."""
        self.clear(snapshot.namespace)
        for uid, record in snapshot.index.items():
            self.put(uid, record)
        if snapshot.namespace == TREE_NAMESPACE:
            self._snapshot = snapshot

    def __len__(self) -> int:
        return sum(len(table) for table in self._tables.values())
