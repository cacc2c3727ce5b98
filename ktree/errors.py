"""
Error kinds raised by the knowledge tree.
"""


class KTreeError(Exception):
    """Base class for all knowledge tree errors."""


class NotFoundError(KTreeError, LookupError):
    """An identifier does not resolve to an existing node."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class AlreadyExistsError(KTreeError):
    """A root node was requested on a tree that already has one."""


class BusyError(KTreeError):
    """A generation call is already in flight for this session."""


class GenerationFailedError(KTreeError):
    """The text generation backend raised or timed out."""
