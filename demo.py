import asyncio
import logging

from ktree import LearningSession
from ktree.generators import SimulatedGenerator
from ktree.visualize import print_detailed_tree, visualize_tree_ascii

logging.basicConfig(level=logging.INFO)


async def main():
    session = LearningSession(SimulatedGenerator(delay=0.2, seed=7))

    print("Asking the opening question...")
    root_id = await session.submit_root("What is recursion?")

    # Let the keyword suggester pick subtopics for the root
    child_ids = session.expand_node(root_id)
    print(f"Expanded root into {len(child_ids)} subtopics")

    reply = await session.submit_to_node(child_ids[0], "Can you show me an example?")
    print(f"Assistant: {reply.content}")

    grandchildren = session.expand_node(child_ids[0], ["Lists", "Trees"])
    await session.submit_to_node(grandchildren[1], "How do I walk a tree recursively?")

    print(visualize_tree_ascii(session.tree))
    print_detailed_tree(session.tree)

    view = session.view()
    for node in view["nodes"]:
        print(f"{node['title']:<40} ({node['position']['x']:.0f}, {node['position']['y']:.0f})")


if __name__ == "__main__":
    asyncio.run(main())
