"""
Visualization utilities for KTree.

This module turns a tree and its layout into the view model consumed by a
renderer, and provides text-based views and statistics.
"""

from typing import Optional, List, Dict, Any

from .ktree import KTree, Node
from .layout import Position, compute_layout


def build_view(tree: KTree, layout: Optional[Dict[str, Position]] = None,
               selected_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the renderer view model.

    Args:
        tree: The KTree to render
        layout: Positions from compute_layout (computed when omitted)
        selected_id: Currently selected node, if any

    Returns:
        {"nodes": [...], "edges": [...], "selectedId": ...} in creation order
    """
    if layout is None:
        layout = compute_layout(tree)

    nodes = []
    edges = []
    for node in tree.list_nodes():
        pos = layout[node.id]
        nodes.append({
            "id": node.id,
            "title": node.title,
            "position": {"x": pos.x, "y": pos.y},
            "hasChildren": not node.is_leaf(),
        })
        for child_id in node.child_ids:
            edges.append({"fromId": node.id, "toId": child_id})

    return {"nodes": nodes, "edges": edges, "selectedId": selected_id}


def export_tree_statistics(tree: KTree) -> Dict[str, Any]:
    """
    Generate statistics about the tree structure.

    Args:
        tree: The KTree to analyze

    Returns:
        Dictionary containing various statistics
    """
    nodes = tree.list_nodes()
    node_messages = sum(len(node.messages) for node in nodes)
    leaves = [node for node in nodes if node.is_leaf()]

    stats = {
        "total_nodes": len(nodes),
        "leaf_nodes": len(leaves),
        "max_depth": max((node.depth for node in nodes), default=0),
        "total_messages": len(tree.conversation),
        "node_messages": node_messages,
        "transcript_only_messages": len(tree.conversation) - node_messages,
        "nodes_per_depth": {},
    }
    for node in nodes:
        stats["nodes_per_depth"][node.depth] = stats["nodes_per_depth"].get(node.depth, 0) + 1

    return stats


def visualize_tree_ascii(tree: KTree, max_width: int = 80) -> str:
    """
    Create an ASCII art visualization of the tree.

    Args:
        tree: The KTree to visualize
        max_width: Maximum width of the visualization

    Returns:
        String containing ASCII art representation
    """
    lines: List[str] = []
    root = tree.root
    if root is None:
        return ""

    def add_node(node: Node, prefix: str, connector: str, child_prefix: str):
        # Truncate title if needed
        max_title_len = max(max_width - len(prefix) - 10, 4)
        title = node.title
        if len(title) > max_title_len:
            title = title[:max_title_len - 3] + "..."

        lines.append(f"{prefix}{connector}{title} ({len(node.messages)} msgs)")

        children = tree.get_children(node.id)
        for i, child in enumerate(children):
            is_last = i == len(children) - 1
            add_node(child, child_prefix,
                     "└─ " if is_last else "├─ ",
                     child_prefix + ("   " if is_last else "│  "))

    add_node(root, "", "", "")
    return "\n".join(lines)


def print_detailed_tree(tree: KTree, max_depth: Optional[int] = None) -> None:
    """
    Print a detailed tree structure with statistics.

    Args:
        tree: The KTree to visualize
        max_depth: Maximum depth to display (None for unlimited)
    """
    print("="*80)
    print("KNOWLEDGE TREE - DETAILED VIEW")
    print("="*80)
    print(f"Total nodes: {len(tree)}")
    print(f"Total messages: {len(tree.conversation)}")
    print("="*80)
    print()

    root = tree.root
    if root is None:
        return

    def print_node(node: Node, is_last: bool = True, prefix: str = ""):
        if max_depth is not None and node.depth > max_depth:
            return

        connector = "└── " if is_last else "├── "
        extension = "    " if is_last else "│   "

        print(f"{prefix}{connector}{node.title}")
        print(f"{prefix}{extension}├─ Depth: {node.depth}")
        print(f"{prefix}{extension}├─ Messages: {len(node.messages)}")
        print(f"{prefix}{extension}├─ Children: {len(node.child_ids)}")

        summary = node.summary.replace('\n', ' ')[:100]
        if len(node.summary) > 100:
            summary += "..."
        print(f"{prefix}{extension}└─ Summary: {summary}")

        children = tree.get_children(node.id)
        if children:
            print(f"{prefix}{extension}")
            for i, child in enumerate(children):
                print_node(child, i == len(children) - 1, prefix + extension)

    print_node(root)
