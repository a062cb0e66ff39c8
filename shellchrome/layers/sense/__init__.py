"""Sense Layer - snapshot building, visual scanning and the uid index."""

from shellchrome.layers.sense.records import BoundingBox, NodeRecord, Snapshot
from shellchrome.layers.sense.snapshot_index import SnapshotIndex
from shellchrome.layers.sense.tree_builder import AccessibilityTreeBuilder, AccessibilityTreeSource
from shellchrome.layers.sense.visual_scanner import VisualScanner

__all__ = [
    "BoundingBox",
    "NodeRecord",
    "Snapshot",
    "SnapshotIndex",
    "AccessibilityTreeBuilder",
    "AccessibilityTreeSource",
    "VisualScanner",
]
