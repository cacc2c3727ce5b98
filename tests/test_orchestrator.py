import asyncio

import pytest

from ktree import (
    AlreadyExistsError,
    BusyError,
    GenerationFailedError,
    KTree,
    LearningSession,
    NotFoundError,
)
from ktree.orchestrator import IDLE, SENDING


class RecordingGenerator:
    """Async generator stub that records its calls."""

    def __init__(self):
        self.calls = []

    async def __call__(self, prompt, context):
        self.calls.append((prompt, context))
        return f"answer to {prompt}"


class GatedGenerator:
    """Blocks until released, to hold a submission in flight."""

    def __init__(self):
        self.release = asyncio.Event()

    async def __call__(self, prompt, context):
        await self.release.wait()
        return "late answer"


async def failing_generator(prompt, context):
    raise RuntimeError("backend down")


async def slow_generator(prompt, context):
    await asyncio.sleep(5)
    return "too late"


@pytest.fixture
def generator():
    return RecordingGenerator()


@pytest.fixture
def session(generator, tree):
    return LearningSession(generator, tree=tree)


async def _session_with_children(session):
    root_id = await session.submit_root("What is recursion?")
    base, rec = session.expand_node(root_id, ["Base Case", "Recursive Case"])
    return root_id, base, rec


class TestSubmitRoot:

    @pytest.mark.asyncio
    async def test_creates_and_selects_root(self, session, generator):
        root_id = await session.submit_root("What is recursion?")

        assert generator.calls == [("What is recursion?", "")]
        root = session.tree.get_node(root_id)
        assert [m.content for m in root.messages] == ["What is recursion?", "answer to What is recursion?"]
        assert session.selected_node_id == root_id
        assert session.slot_status(None).state == IDLE
        assert not session.is_busy

    @pytest.mark.asyncio
    async def test_only_once(self, session):
        await session.submit_root("Q")
        with pytest.raises(AlreadyExistsError):
            await session.submit_root("Q again")

    @pytest.mark.asyncio
    async def test_failure_creates_nothing(self, tree):
        session = LearningSession(failing_generator, tree=tree)
        with pytest.raises(GenerationFailedError) as excinfo:
            await session.submit_root("Q")

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert tree.root is None
        assert tree.conversation == []
        assert not session.is_busy
        assert "backend down" in session.slot_status(None).error

    @pytest.mark.asyncio
    async def test_non_text_reply_is_a_failure(self, tree):
        async def empty_generator(prompt, context):
            return None

        session = LearningSession(empty_generator, tree=tree)
        with pytest.raises(GenerationFailedError):
            await session.submit_root("Q")

        assert tree.root is None
        assert tree.conversation == []
        assert "NoneType" in session.slot_status(None).error
        assert not session.is_busy

    @pytest.mark.asyncio
    async def test_empty_question(self, session):
        with pytest.raises(ValueError):
            await session.submit_root("   ")
        assert session.tree.root is None


class TestSubmitToNode:

    @pytest.mark.asyncio
    async def test_appends_exchange_with_context(self, session, generator):
        root_id, base, _ = await _session_with_children(session)

        reply = await session.submit_to_node(base, "Why do we need it?")

        node = session.tree.get_node(base)
        assert [m.role for m in node.messages] == ["user", "assistant"]
        assert node.messages[-1] is reply
        assert reply.content == "answer to Why do we need it?"
        for msg in node.messages:
            assert msg.context_node_ids == [root_id, base]
            assert msg.node_id == base

        prompt, context = generator.calls[-1]
        assert prompt == "Why do we need it?"
        assert context.startswith("Node: What is recursion?\nuser: What is recursion?")
        assert context.endswith("Node: Base Case\nuser: Why do we need it?")

    @pytest.mark.asyncio
    async def test_messages_also_reach_transcript(self, session):
        _, base, _ = await _session_with_children(session)
        await session.submit_to_node(base, "More?")
        assert [m.content for m in session.tree.conversation[-2:]] == ["More?", "answer to More?"]

    @pytest.mark.asyncio
    async def test_busy_while_sending(self, tree):
        gate = GatedGenerator()
        session = LearningSession(gate, tree=tree)
        tree.create_root("Q", "A")
        a, b = session.expand_node(tree.root.id, ["A", "B"])

        pending = asyncio.create_task(session.submit_to_node(a, "first"))
        await asyncio.sleep(0)

        assert session.is_busy
        assert session.slot_status(a).state == SENDING
        transcript_len = len(tree.conversation)
        with pytest.raises(BusyError):
            await session.submit_to_node(b, "second")
        with pytest.raises(BusyError):
            await session.submit_flat("third")
        assert tree.get_node(b).messages == []
        assert len(tree.conversation) == transcript_len

        gate.release.set()
        reply = await pending
        assert reply.content == "late answer"
        assert not session.is_busy
        assert session.slot_status(a).state == IDLE

    @pytest.mark.asyncio
    async def test_busy_across_sessions_sharing_a_tree(self, tree):
        gate = GatedGenerator()
        first = LearningSession(gate, tree=tree)
        second = LearningSession(RecordingGenerator(), tree=tree)
        tree.create_root("Q", "A")
        a, b = first.expand_node(tree.root.id, ["A", "B"])

        pending = asyncio.create_task(first.submit_to_node(a, "first"))
        await asyncio.sleep(0)

        assert second.is_busy
        with pytest.raises(BusyError):
            await second.submit_to_node(b, "second")
        assert tree.get_node(b).messages == []
        assert second.slot_status(b).state == IDLE

        gate.release.set()
        await pending
        assert not first.is_busy
        assert not second.is_busy
        reply = await second.submit_to_node(b, "second")
        assert reply.content == "answer to second"

    @pytest.mark.asyncio
    async def test_cancel_releases_slot(self, tree):
        gate = GatedGenerator()
        session = LearningSession(gate, tree=tree)
        root_id = tree.create_root("Q", "A")
        (child,) = session.expand_node(root_id, ["Child"])

        pending = asyncio.create_task(session.submit_to_node(child, "question"))
        await asyncio.sleep(0)
        assert session.is_busy

        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert not session.is_busy
        assert session.slot_status(child).state == IDLE
        assert [m.role for m in tree.get_node(child).messages] == ["user"]

        gate.release.set()
        reply = await session.submit_to_node(child, "again")
        assert reply.content == "late answer"

    @pytest.mark.asyncio
    async def test_failure_keeps_user_message(self, tree):
        session = LearningSession(failing_generator, tree=tree)
        root_id = tree.create_root("Q", "A")
        (child,) = session.expand_node(root_id, ["Child"])

        with pytest.raises(GenerationFailedError):
            await session.submit_to_node(child, "question")

        messages = tree.get_node(child).messages
        assert [m.role for m in messages] == ["user"]
        status = session.slot_status(child)
        assert status.state == IDLE
        assert "backend down" in status.error
        assert not session.is_busy

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, tree):
        generator = RecordingGenerator()
        session = LearningSession(failing_generator, tree=tree)
        root_id = tree.create_root("Q", "A")

        with pytest.raises(GenerationFailedError):
            await session.submit_to_node(root_id, "first")
        session.generator = generator
        await session.submit_to_node(root_id, "second")

        assert session.slot_status(root_id).error is None
        assert [m.content for m in tree.get_node(root_id).messages][-3:] == [
            "first", "second", "answer to second",
        ]

    @pytest.mark.asyncio
    async def test_timeout_is_a_generation_failure(self, tree):
        session = LearningSession(slow_generator, tree=tree, timeout=0.01)
        root_id = tree.create_root("Q", "A")

        with pytest.raises(GenerationFailedError):
            await session.submit_to_node(root_id, "question")

        assert "timed out" in session.slot_status(root_id).error
        assert not session.is_busy

    @pytest.mark.asyncio
    async def test_unknown_node(self, session):
        await session.submit_root("Q")
        total = len(session.tree.conversation)
        with pytest.raises(NotFoundError):
            await session.submit_to_node("missing", "hello")
        assert len(session.tree.conversation) == total
        assert not session.is_busy


class TestSubmitFlat:

    @pytest.mark.asyncio
    async def test_classic_turn(self, session, generator):
        root_id = await session.submit_root("Q")
        reply = await session.submit_flat("Tell me more")

        assert generator.calls[-1] == ("Tell me more", "")
        assert reply.node_id is None
        assert session.tree.conversation[-1] is reply
        assert len(session.tree.get_node(root_id).messages) == 2

    @pytest.mark.asyncio
    async def test_dispatch(self, session):
        root_id = await session.submit("What is recursion?")
        assert session.tree.root.id == root_id

        (child,) = session.expand_node(root_id, ["Child"])
        in_node = await session.submit("node question", target_id=child)
        assert in_node.node_id == child

        flat = await session.submit("flat question")
        assert flat.node_id is None


class TestExpandAndSelect:

    @pytest.mark.asyncio
    async def test_expand_with_suggestions(self, session):
        root_id = await session.submit_root("What is recursion?")
        child_ids = session.expand_node(root_id)
        titles = [session.tree.get_node(c).title for c in child_ids]
        assert titles == ["Core Syntax", "Data Structures", "Algorithms", "Debugging", "Best Practices"]

    @pytest.mark.asyncio
    async def test_expand_with_titles(self, session):
        root_id, base, rec = await _session_with_children(session)
        assert [session.tree.get_node(c).title for c in (base, rec)] == ["Base Case", "Recursive Case"]

    def test_expand_unknown(self, session):
        with pytest.raises(NotFoundError):
            session.expand_node("missing")

    @pytest.mark.asyncio
    async def test_select(self, session):
        _, base, _ = await _session_with_children(session)
        session.select_node(base)
        assert session.selected_node_id == base
        session.select_node(None)
        assert session.selected_node_id is None
        with pytest.raises(NotFoundError):
            session.select_node("missing")

    @pytest.mark.asyncio
    async def test_view(self, session):
        root_id, base, rec = await _session_with_children(session)
        view = session.view()

        assert view["selectedId"] == root_id
        assert [n["id"] for n in view["nodes"]] == [root_id, base, rec]
        assert view["edges"] == [
            {"fromId": root_id, "toId": base},
            {"fromId": root_id, "toId": rec},
        ]
        assert view["nodes"][0]["position"] == {"x": 600, "y": 100}


def test_session_creates_its_own_tree():
    session = LearningSession(RecordingGenerator())
    assert isinstance(session.tree, KTree)
    assert session.tree.root is None


def test_slot_status_of_unused_slot_is_idle():
    session = LearningSession(RecordingGenerator())
    status = session.slot_status("never-used")
    assert status.state == IDLE
    assert status.error is None
    assert "never-used" not in session._slots
