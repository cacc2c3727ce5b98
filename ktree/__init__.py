"""
KTree - Knowledge Tree for Exploratory Learning

A tree of topic nodes, each holding its own conversation, with ancestry
context for follow-up questions and a deterministic 2-D layout.
"""

from .ktree import (
    KTree,
    Node,
    Message
)
from .errors import (
    KTreeError,
    NotFoundError,
    AlreadyExistsError,
    BusyError,
    GenerationFailedError
)
from .context import ancestry_ids, build_ancestry_context
from .layout import LayoutConfig, Position, Bounds, compute_layout, compute_bounds
from .topics import TopicSuggester, KeywordTopicSuggester
from .orchestrator import LearningSession, SlotStatus

__version__ = "0.1.0"
__all__ = [
    "KTree",
    "Node",
    "Message",
    "KTreeError",
    "NotFoundError",
    "AlreadyExistsError",
    "BusyError",
    "GenerationFailedError",
    "ancestry_ids",
    "build_ancestry_context",
    "LayoutConfig",
    "Position",
    "Bounds",
    "compute_layout",
    "compute_bounds",
    "TopicSuggester",
    "KeywordTopicSuggester",
    "LearningSession",
    "SlotStatus"
]
