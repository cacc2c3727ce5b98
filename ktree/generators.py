"""
Text generation backends.

Every backend is an async callable `generator(prompt, context) -> str`. The
session treats them as black boxes: latency and failure modes are unspecified,
and any exception they raise is reported as a failed generation.
"""

import asyncio
import logging
import os
import random
from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic
from dotenv import load_dotenv
from openai import AsyncOpenAI

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a patient tutor helping a learner explore a topic as a tree of connected concepts.
Answer the learner's question clearly and concisely."""

CONTEXT_TEMPLATE = """

The learner reached the current concept through the following conversation (root first):

{context}"""

SIMULATED_RESPONSES = [
    "That's a great question! Let me explain this concept in more detail...",
    "I understand what you're asking about. Here's how this works...",
    "This is an important topic. Let me break it down for you...",
    "Excellent point! This connects to several key concepts...",
]


def build_system_prompt(context: str) -> str:
    """System prompt with the ancestry context appended when there is one."""
    if not context:
        return SYSTEM_PROMPT
    return SYSTEM_PROMPT + CONTEXT_TEMPLATE.format(context=context)


def first_topic(context: str) -> str:
    """Title of the first `Node:` block in a context string."""
    for line in context.splitlines():
        if line.startswith("Node:"):
            return line[len("Node:"):].strip()
    return ""


class SimulatedGenerator:
    """
    Offline backend returning canned tutor responses after a short delay.

    Args:
        delay: Seconds to wait before answering
        seed: Seed for the response choice, for reproducible runs
    """

    def __init__(self, delay: float = 1.0, seed: Optional[int] = None):
        self.delay = delay
        self._random = random.Random(seed)

    async def __call__(self, prompt: str, context: str) -> str:
        await asyncio.sleep(self.delay)
        if not context:
            return (f'Great question about "{prompt}"! Let me provide you with a comprehensive overview. '
                    "This topic involves several key areas that we can explore together: fundamental concepts, "
                    "practical applications, and advanced techniques. Each of these areas has its own depth "
                    "and can be broken down further based on your interests and learning goals.")
        topic = first_topic(context) or "this topic"
        opening = self._random.choice(SIMULATED_RESPONSES)
        return f'{opening} Based on our discussion about "{topic}", here\'s what you should know...'


class OpenAIGenerator:
    """
    Backend using the OpenAI chat completions API.

    Args:
        model: Chat model name
        api_key: OpenAI API key (or set OPENAI_API_KEY environment variable)
        temperature: Sampling temperature
        max_tokens: Optional completion limit
        client: Pre-built AsyncOpenAI client; api_key is ignored when given
    """

    def __init__(self, model: str = "gpt-4o-mini", api_key: Optional[str] = None,
                 temperature: float = 0.3, max_tokens: Optional[int] = None,
                 client: Optional[Any] = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        if client is not None:
            self.client = client
            return

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OpenAI API key must be provided or set in OPENAI_API_KEY environment variable")
        self.client = AsyncOpenAI(api_key=api_key)

    def build_messages(self, prompt: str, context: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": build_system_prompt(context)},
            {"role": "user", "content": prompt},
        ]

    async def __call__(self, prompt: str, context: str) -> str:
        api_kwargs = {
            "model": self.model,
            "messages": self.build_messages(prompt, context),
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            api_kwargs["max_tokens"] = self.max_tokens

        response = await self.client.chat.completions.create(**api_kwargs)
        content = response.choices[0].message.content
        if content is None:
            raise ValueError("OpenAI response contained no text")
        return content.strip()


class AnthropicGenerator:
    """
    Backend using the Anthropic messages API.

    Args:
        model: Claude model name
        api_key: Anthropic API key (or set ANTHROPIC_API_KEY environment variable)
        max_tokens: Completion limit
        client: Pre-built AsyncAnthropic client; api_key is ignored when given
    """

    def __init__(self, model: str = "claude-sonnet-4-5", api_key: Optional[str] = None,
                 max_tokens: int = 2048, client: Optional[Any] = None):
        self.model = model
        self.max_tokens = max_tokens

        if client is not None:
            self.client = client
            return

        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("Anthropic API key must be provided or set in ANTHROPIC_API_KEY environment variable")
        self.client = AsyncAnthropic(api_key=api_key)

    async def __call__(self, prompt: str, context: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=build_system_prompt(context),
            messages=[{"role": "user", "content": prompt}],
        )

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            logger.error("Anthropic response had no text blocks (stop_reason=%s)", response.stop_reason)
            raise ValueError(f"Anthropic response contained no text (stop_reason={response.stop_reason})")
        return text.strip()
