import itertools

import pytest

from ktree import KTree


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id{next(counter)}"


@pytest.fixture
def tree(id_factory):
    return KTree(id_factory=id_factory)


@pytest.fixture
def recursion_tree(tree):
    """Root "What is recursion?" (id1, messages id2/id3) with children id4, id5."""
    root_id = tree.create_root("What is recursion?", "Recursion is when a function calls itself.")
    tree.expand(root_id, ["Base Case", "Recursive Case"])
    return tree
