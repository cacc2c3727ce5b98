"""
Conversation orchestration for a knowledge tree.

A LearningSession owns one KTree and turns user intents (ask the first
question, ask about a node, expand a node, select a node) into tree updates,
calling the text generation backend in between. At most one generation call
is in flight per tree, even when several sessions share it; a second
submission is rejected, never queued.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .context import ancestry_ids, build_ancestry_context
from .errors import AlreadyExistsError, GenerationFailedError
from .ktree import KTree, Message
from .layout import LayoutConfig, compute_layout
from .topics import KeywordTopicSuggester, TopicSuggester
from .visualize import build_view

logger = logging.getLogger(__name__)

Generator = Callable[[str, str], Awaitable[str]]

IDLE = "idle"
SENDING = "sending"


@dataclass
class SlotStatus:
    """
    State of one conversation slot: the flat transcript (key None) or a node.

    Attributes:
        state: IDLE or SENDING
        error: Message of the last failed generation, cleared by the next success
    """
    state: str = IDLE
    error: Optional[str] = None


class LearningSession:
    """
    Coordinates user input, context lookup, generation and tree updates.
    """

    def __init__(self, generator: Generator, tree: Optional[KTree] = None,
                 suggester: Optional[TopicSuggester] = None, timeout: Optional[float] = None,
                 layout_config: LayoutConfig = LayoutConfig()):
        """
        Initialize the session.

        Args:
            generator: Async callable `generator(prompt, context) -> str`
            tree: Tree to drive (a new empty KTree by default)
            suggester: Strategy used by expand_node when no titles are given
            timeout: Optional limit in seconds for a single generation call
            layout_config: Constants used by view()
        """
        self.generator = generator
        self.tree = tree if tree is not None else KTree()
        self.suggester = suggester or KeywordTopicSuggester()
        self.timeout = timeout
        self.layout_config = layout_config
        self.selected_node_id: Optional[str] = None
        self._slots: Dict[Optional[str], SlotStatus] = {}

    @property
    def is_busy(self) -> bool:
        return self.tree.is_generating

    def slot_status(self, node_id: Optional[str] = None) -> SlotStatus:
        """Status of the flat transcript (None) or of a node's conversation."""
        return self._slots.get(node_id, SlotStatus())

    def select_node(self, node_id: Optional[str]) -> None:
        if node_id is not None:
            self.tree.get_node(node_id)
        self.selected_node_id = node_id

    def _begin(self, slot: Optional[str]) -> SlotStatus:
        # Check and set happen without an await in between, so no lock is needed.
        self.tree.acquire_generation(self, slot)
        status = self._slots.setdefault(slot, SlotStatus())
        status.state = SENDING
        return status

    def _end(self, status: SlotStatus) -> None:
        status.state = IDLE
        self.tree.release_generation(self)

    async def _generate(self, status: SlotStatus, prompt: str, context: str) -> str:
        try:
            if self.timeout is not None:
                reply = await asyncio.wait_for(self.generator(prompt, context), self.timeout)
            else:
                reply = await self.generator(prompt, context)
        except asyncio.TimeoutError as exc:
            status.error = f"Generation timed out after {self.timeout}s"
            logger.error(status.error)
            raise GenerationFailedError(status.error) from exc
        except Exception as exc:
            status.error = f"Generation failed: {exc}"
            logger.error(status.error)
            raise GenerationFailedError(status.error) from exc
        if not isinstance(reply, str):
            status.error = f"Generation returned {type(reply).__name__}, expected str"
            logger.error(status.error)
            raise GenerationFailedError(status.error)
        status.error = None
        return reply

    @staticmethod
    def _check_content(content: str) -> None:
        if not content or not content.strip():
            raise ValueError("Message content must not be empty")

    async def submit_root(self, question: str) -> str:
        """
        Ask the opening question and create the root node from the answer.

        Returns:
            Identifier of the new root node
        """
        self._check_content(question)
        if self.tree.root is not None:
            raise AlreadyExistsError(f"Tree already has a root node: {self.tree.root.id}")

        status = self._begin(None)
        try:
            answer = await self._generate(status, question, "")
            root_id = self.tree.create_root(question, answer)
        finally:
            self._end(status)

        self.selected_node_id = root_id
        return root_id

    async def submit_to_node(self, node_id: str, content: str) -> Message:
        """
        Ask a follow-up question in a node's conversation.

        The user message is recorded before the generator is called and stays
        recorded if the call fails.

        Returns:
            The assistant Message
        """
        self._check_content(content)
        context_ids = ancestry_ids(self.tree, node_id)

        status = self._begin(node_id)
        try:
            self.tree.append_message("user", content, node_id, context_ids)
            context = build_ancestry_context(self.tree, node_id)
            reply = await self._generate(status, content, context)
            return self.tree.append_message("assistant", reply, node_id, context_ids)
        finally:
            self._end(status)

    async def submit_flat(self, content: str) -> Message:
        """Classic-mode turn on the flat transcript, without tree context."""
        self._check_content(content)

        status = self._begin(None)
        try:
            self.tree.append_message("user", content)
            reply = await self._generate(status, content, "")
            return self.tree.append_message("assistant", reply)
        finally:
            self._end(status)

    async def submit(self, text: str, target_id: Optional[str] = None) -> Any:
        """
        Route a submission from the UI.

        No root yet: the text becomes the opening question (returns the root id).
        With a target node: follow-up in that node (returns the assistant Message).
        Otherwise: classic-mode turn (returns the assistant Message).
        """
        if self.tree.root is None:
            return await self.submit_root(text)
        if target_id is not None:
            return await self.submit_to_node(target_id, text)
        return await self.submit_flat(text)

    def expand_node(self, node_id: str, titles: Optional[List[str]] = None) -> List[str]:
        """
        Add child topics to a node.

        Args:
            node_id: Node to expand
            titles: Child titles; suggested from the node's title and summary when omitted

        Returns:
            Identifiers of the new children
        """
        node = self.tree.get_node(node_id)
        if titles is None:
            titles = self.suggester.suggest(node.title, node.summary)
        return self.tree.expand(node_id, list(titles))

    def view(self) -> Dict[str, Any]:
        """Rendering view model of the current tree and selection."""
        layout = compute_layout(self.tree, self.layout_config)
        return build_view(self.tree, layout, self.selected_node_id)
