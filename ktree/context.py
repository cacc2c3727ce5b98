"""
Ancestry context for follow-up questions.

A node's conversation is conditioned on everything discussed on the path from
the root down to it. Nothing here is cached: the tree may have grown between
two calls.
"""

from typing import List

from .ktree import KTree, Node


def ancestry_ids(tree: KTree, node_id: str) -> List[str]:
    """
    Identifiers on the path from the root to `node_id`, root first, self included.

    Raises NotFoundError if `node_id` does not resolve.
    """
    return [node.id for node in tree.get_ancestors(node_id, include_self=True)]


def _format_block(node: Node) -> str:
    lines = [f"Node: {node.title}"]
    lines.extend(f"{msg.role}: {msg.content}" for msg in node.messages)
    return "\n".join(lines)


def build_ancestry_context(tree: KTree, node_id: str) -> str:
    """
    Serialize the conversations along the ancestry chain of a node.

    Each node on the chain contributes a block made of a `Node: {title}` line
    followed by one `{role}: {content}` line per message. Blocks are separated
    by a blank line, root first.

    Args:
        tree: The tree to read
        node_id: The node whose ancestry is serialized

    Returns:
        The context string, or "" if no node on the chain has any message
    """
    chain = tree.get_ancestors(node_id, include_self=True)
    if not any(node.messages for node in chain):
        return ""
    return "\n\n".join(_format_block(node) for node in chain)
