"""
Tree layout for the knowledge tree.

Computes deterministic x/y positions for every node, level by level:
- The root sits at a fixed anchor
- Each depth level occupies its own band
- A single child sits straight below its parent
- Several children are spread evenly and centred under their parent, with the
  spacing widened whenever neighbouring subtrees would otherwise overlap
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .ktree import KTree

VERTICAL = "vertical"
HORIZONTAL = "horizontal"


@dataclass(frozen=True)
class LayoutConfig:
    # Anchor of the root node.
    origin_x: float = 600
    origin_y: float = 100

    # Distance between two consecutive depth levels.
    level_height: float = 200

    # Upper bound for the distance between two siblings.
    max_spacing: float = 200

    # Width a sibling group would like to fill; divided by (siblings - 1).
    total_spread: float = 400

    # Minimum centre-to-centre distance of two nodes on the same level.
    node_width: float = 100

    # Padding around the outermost nodes for the drawing canvas.
    pad_left: float = 200
    pad_right: float = 400
    pad_top: float = 100
    pad_bottom: float = 200

    # Smallest canvas handed to the renderer.
    min_width: float = 1400
    min_height: float = 1000

    # "vertical": depth grows downwards. "horizontal": depth grows to the right.
    orientation: str = VERTICAL

    def __post_init__(self):
        if self.orientation not in (VERTICAL, HORIZONTAL):
            raise ValueError(f"Unknown orientation '{self.orientation}'")
        if self.node_width <= 0 or self.level_height <= 0:
            raise ValueError("node_width and level_height must be positive")


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class Bounds:
    # Canvas rectangle enclosing every node plus padding.
    min_x: float
    min_y: float
    width: float
    height: float


def sibling_spacing(count: int, cfg: LayoutConfig) -> float:
    """Preferred distance between `count` siblings, before overlap widening."""
    if count < 2:
        return 0.0
    return min(cfg.max_spacing, cfg.total_spread / (count - 1))


def _group_by_depth(tree: KTree) -> Dict[int, List[str]]:
    levels: Dict[int, List[str]] = {}
    for node in tree.list_nodes():
        levels.setdefault(node.depth, []).append(node.id)
    return levels


def _child_offsets(
    tree: KTree,
    levels: Dict[int, List[str]],
    cfg: LayoutConfig,
) -> Dict[str, float]:
    """
    Offset of every non-root node relative to its parent along the sibling axis.

    Works bottom-up: each subtree is summarised by its extent (left, right)
    relative to its own node, and a sibling group is spaced so that the
    extents of neighbours never overlap.
    """
    half = cfg.node_width / 2.0
    extents: Dict[str, Tuple[float, float]] = {}
    offsets: Dict[str, float] = {}

    for depth in sorted(levels, reverse=True):
        for node_id in levels[depth]:
            kids = tree.get_node(node_id).child_ids
            if not kids:
                extents[node_id] = (-half, half)
                continue

            spans = [extents[k] for k in kids]
            spacing = sibling_spacing(len(kids), cfg)
            for (_, right), (left, _) in zip(spans, spans[1:]):
                spacing = max(spacing, right - left)

            start = -spacing * (len(kids) - 1) / 2.0
            lo, hi = -half, half
            for i, (kid, (left, right)) in enumerate(zip(kids, spans)):
                offset = start + i * spacing
                offsets[kid] = offset
                lo = min(lo, offset + left)
                hi = max(hi, offset + right)
            extents[node_id] = (lo, hi)

    return offsets


def compute_layout(tree: KTree, cfg: LayoutConfig = LayoutConfig()) -> Dict[str, Position]:
    """
    Compute a position for each node in the tree.

    Pure function of the tree topology and the config: the same tree always
    yields the same positions.

    Returns:
      node_id -> Position (empty if the tree has no root yet)
    """
    root = tree.root
    if root is None:
        return {}

    levels = _group_by_depth(tree)
    offsets = _child_offsets(tree, levels, cfg)

    if cfg.orientation == VERTICAL:
        cross_origin, main_origin = cfg.origin_x, cfg.origin_y
    else:
        cross_origin, main_origin = cfg.origin_y, cfg.origin_x

    cross: Dict[str, float] = {root.id: cross_origin}
    positions: Dict[str, Position] = {}

    for depth in sorted(levels):
        main = main_origin + depth * cfg.level_height
        for node_id in levels[depth]:
            node = tree.get_node(node_id)
            if node.parent_id is not None:
                cross[node_id] = cross[node.parent_id] + offsets[node_id]
            if cfg.orientation == VERTICAL:
                positions[node_id] = Position(x=cross[node_id], y=main)
            else:
                positions[node_id] = Position(x=main, y=cross[node_id])

    return positions


def compute_bounds(positions: Dict[str, Position], cfg: LayoutConfig = LayoutConfig()) -> Bounds:
    """Padded canvas rectangle around a layout, for the renderer."""
    if not positions:
        return Bounds(min_x=0, min_y=0, width=cfg.min_width, height=cfg.min_height)

    xs = [p.x for p in positions.values()]
    ys = [p.y for p in positions.values()]

    min_x = min(xs) - cfg.pad_left
    min_y = min(ys) - cfg.pad_top
    width = max(cfg.min_width, max(xs) + cfg.pad_right - min_x)
    height = max(cfg.min_height, max(ys) + cfg.pad_bottom - min_y)

    return Bounds(min_x=min_x, min_y=min_y, width=width, height=height)
