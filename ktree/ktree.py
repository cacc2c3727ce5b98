"""
Knowledge Tree (KTree)
This module implements the in-memory tree of learning topics, where every node
keeps its own conversation and children are created by explicit expansion.
"""

import logging
from typing import Callable, List, Dict, Optional, Any
from dataclasses import dataclass, field
from datetime import datetime

from .errors import AlreadyExistsError, BusyError, NotFoundError
from .utils import MonotonicClock, generate_id, truncate

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")
TITLE_LIMIT = 50
SUMMARY_LIMIT = 100


@dataclass(eq=False)
class Message:
    """
    One turn in a conversation.

    Attributes:
        id: Unique message identifier
        role: Either "user" or "assistant"
        content: Text body
        timestamp: Creation time (UTC)
        node_id: Node whose conversation this message belongs to, None for the flat transcript
        context_node_ids: Ancestry chain (root first) used when the message was produced
    """
    id: str
    role: str
    content: str
    timestamp: datetime
    node_id: Optional[str] = None
    context_node_ids: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Converts message to dictionary representation."""
        result = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.node_id is not None:
            result["node_id"] = self.node_id
        if self.context_node_ids is not None:
            result["context_node_ids"] = list(self.context_node_ids)
        return result

    def __repr__(self) -> str:
        return f"Message({self.role}: {truncate(self.content, 40)})"


@dataclass(eq=False)
class Node:
    """
    A single topic in the knowledge tree.

    Children and parent are stored as identifiers, never as object references;
    the owning KTree resolves them.

    Attributes:
        id: Immutable node identifier
        title: Short human label
        summary: Short description of the topic
        depth: Distance from the root (root = 0)
        parent_id: Identifier of the parent, None only for the root
        child_ids: Child identifiers in creation order
        messages: This node's conversation
    """
    id: str
    title: str
    summary: str = ""
    depth: int = 0
    parent_id: Optional[str] = None
    child_ids: List[str] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)

    def is_leaf(self) -> bool:
        """Returns True if this node has not been expanded."""
        return len(self.child_ids) == 0

    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> Dict[str, Any]:
        """Converts node to dictionary representation."""
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "depth": self.depth,
            "parent_id": self.parent_id,
            "child_ids": list(self.child_ids),
            "messages": [m.to_dict() for m in self.messages],
        }

    def __repr__(self) -> str:
        return f"Node('{self.title}', depth={self.depth}, {len(self.child_ids)} children, {len(self.messages)} msgs)"


class KTree:
    """
    Knowledge Tree - the authoritative store of topic nodes and messages.

    Nodes live in an arena keyed by identifier. History is append-only:
    nodes and messages are never removed, only new messages and new children
    are added.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        """
        Initialize an empty tree.

        Args:
            id_factory: Callable producing candidate identifiers. Defaults to
                        generate_id. Candidates already in use are re-drawn.
        """
        self._id_factory = id_factory or generate_id
        self._clock = MonotonicClock()
        self._nodes: Dict[str, Node] = {}
        self._used_ids = set()
        self._root_id: Optional[str] = None
        self.conversation: List[Message] = []
        self._generation_owner: Optional[object] = None
        self._generation_slot: Any = None

    def _new_id(self) -> str:
        while True:
            candidate = self._id_factory()
            if candidate not in self._used_ids:
                self._used_ids.add(candidate)
                return candidate

    def _new_message(self, role: str, content: str, node_id: Optional[str],
                     context_node_ids: Optional[List[str]] = None) -> Message:
        if role not in ROLES:
            raise ValueError(f"Unknown role '{role}', expected one of {ROLES}")
        return Message(
            id=self._new_id(),
            role=role,
            content=content,
            timestamp=self._clock.now(),
            node_id=node_id,
            context_node_ids=list(context_node_ids) if context_node_ids is not None else None,
        )

    @property
    def root(self) -> Optional[Node]:
        """The root node, or None before the first question."""
        if self._root_id is None:
            return None
        return self._nodes[self._root_id]

    @property
    def transcript(self) -> List[Message]:
        """Copy of the flat top-level transcript."""
        return list(self.conversation)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def create_root(self, question: str, answer: str) -> str:
        """
        Create the root node from the first question and its answer.

        Both messages are tagged with the new node's id and also appended
        to the flat transcript.

        Args:
            question: The user's opening question
            answer: The assistant's answer

        Returns:
            Identifier of the new root node
        """
        if self._root_id is not None:
            raise AlreadyExistsError(f"Tree already has a root node: {self._root_id}")

        node_id = self._new_id()
        user_msg = self._new_message("user", question, node_id)
        assistant_msg = self._new_message("assistant", answer, node_id)

        root = Node(
            id=node_id,
            title=truncate(question, TITLE_LIMIT),
            summary=truncate(answer, SUMMARY_LIMIT),
            depth=0,
            messages=[user_msg, assistant_msg],
        )
        self._nodes[node_id] = root
        self._root_id = node_id
        self.conversation.extend([user_msg, assistant_msg])

        logger.debug("Created root node %s (%r)", node_id, root.title)
        return node_id

    def expand(self, parent_id: str, child_titles: List[str]) -> List[str]:
        """
        Create child nodes under an existing node.

        Args:
            parent_id: Node to expand
            child_titles: Titles of the new children, in order

        Returns:
            Identifiers of the new children, in the same order as the titles
        """
        parent = self.get_node(parent_id)

        child_ids = []
        for title in child_titles:
            child_id = self._new_id()
            self._nodes[child_id] = Node(
                id=child_id,
                title=title,
                summary=f"Learn more about {title} in the context of {parent.title}",
                depth=parent.depth + 1,
                parent_id=parent.id,
            )
            child_ids.append(child_id)

        parent.child_ids.extend(child_ids)

        if child_ids:
            logger.debug("Expanded node %s with %d children", parent_id, len(child_ids))
        return child_ids

    def append_message(self, role: str, content: str, node_id: Optional[str] = None,
                       context_node_ids: Optional[List[str]] = None) -> Message:
        """
        Append a message to the flat transcript and, if possible, to a node.

        An unknown node_id is tolerated: the message still lands in the flat
        transcript but in no node's conversation.

        Args:
            role: "user" or "assistant"
            content: Message text
            node_id: Optional owning node
            context_node_ids: Optional ancestry chain recorded on the message

        Returns:
            The new Message
        """
        message = self._new_message(role, content, node_id, context_node_ids)
        self.conversation.append(message)

        if node_id is not None:
            node = self._nodes.get(node_id)
            if node is not None:
                node.messages.append(message)
            else:
                logger.warning("Message %s references unknown node %s; kept in transcript only",
                               message.id, node_id)
        return message

    @property
    def is_generating(self) -> bool:
        """True while some caller holds the generation slot of this tree."""
        return self._generation_owner is not None

    def acquire_generation(self, owner: object, slot: Any = None) -> None:
        """
        Claim the single in-flight generation slot of this tree.

        Only one generation call may be outstanding per tree, whoever drives it.

        Args:
            owner: Object that will release the slot (usually a session)
            slot: Conversation being served, for error messages
        """
        if self._generation_owner is not None:
            raise BusyError(f"A generation call is already in flight (slot {self._generation_slot!r})")
        self._generation_owner = owner
        self._generation_slot = slot

    def release_generation(self, owner: object) -> None:
        """Release the generation slot if `owner` holds it."""
        if self._generation_owner is owner:
            self._generation_owner = None
            self._generation_slot = None

    def get_node(self, node_id: str) -> Node:
        """Return the node with the given id or raise NotFoundError."""
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NotFoundError(node_id) from None

    def list_nodes(self) -> List[Node]:
        """All nodes in creation order."""
        return list(self._nodes.values())

    def get_children(self, node_id: str) -> List[Node]:
        return [self._nodes[child_id] for child_id in self.get_node(node_id).child_ids]

    def get_ancestors(self, node_id: str, include_self: bool = True) -> List[Node]:
        """
        Get all ancestor nodes of a given node.

        Args:
            node_id: The node to find ancestors for
            include_self: If True, includes the node itself

        Returns:
            List of nodes from root to the node
        """
        node = self.get_node(node_id)
        ancestors = []
        current = node if include_self else self._parent_of(node)

        while current is not None:
            ancestors.append(current)
            current = self._parent_of(current)

        ancestors.reverse()
        return ancestors

    def _parent_of(self, node: Node) -> Optional[Node]:
        if node.parent_id is None:
            return None
        return self.get_node(node.parent_id)

    def to_dict(self) -> Dict[str, Any]:
        """Export the tree structure to a dictionary."""
        return {
            "root_id": self._root_id,
            "total_messages": len(self.conversation),
            "nodes": [node.to_dict() for node in self._nodes.values()],
        }
