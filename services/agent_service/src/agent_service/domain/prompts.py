from __future__ import annotations

import re

from shared.schemas.agents import AgentProfile
from shared.schemas.documents import RetrievedChunk

CONTEXT_SEPARATOR = "\n\n---\n\n"
EMPTY_CONTEXT = "CONTEXT: (none relevant)"

DEFAULT_TEMPERATURE = 0.7
MAX_TEMPERATURE = 2.0
DEFAULT_EXPERTISE = "general topics"

GROUNDING_INSTRUCTION = """\
Use the provided CONTEXT when it is relevant to the user's question. \
If the CONTEXT is empty or does not cover the question, answer from general \
knowledge and do not cite or invent sources."""

TITLE_SYSTEM_PROMPT = """\
Write a short title (at most six words) for a conversation that starts with \
the user's message below. Reply with the title only, without quotes."""

GUEST_SESSION_TITLE = "Guest Chat"
MAX_TITLE_LENGTH = 80

_GREETING = re.compile(r"^(hi|hello|hey|greetings|howdy)\b", re.IGNORECASE)
_FAREWELL = re.compile(r"^(bye|goodbye|see you|farewell)\b", re.IGNORECASE)
_THANKS = re.compile(r"^(thanks|thank you|thx)\b", re.IGNORECASE)


def build_system_prompt(agent: AgentProfile) -> str:
    parts = [f"You are {agent.name}, an expert in {agent.topic_expertise or DEFAULT_EXPERTISE}."]
    if agent.system_prompt and agent.system_prompt.strip():
        parts.append(agent.system_prompt.strip())
    parts.append(GROUNDING_INSTRUCTION)
    return "\n\n".join(parts)


def build_context_block(chunks: list[RetrievedChunk]) -> str:
    """Join chunk texts into the CONTEXT block; never omitted, only empty."""
    if not chunks:
        return EMPTY_CONTEXT
    return "CONTEXT:\n" + CONTEXT_SEPARATOR.join(chunk.content for chunk in chunks)


def map_temperature(value: int | None) -> float:
    """Agent temperature is stored 0-100; providers take 0-2."""
    if value is None:
        return DEFAULT_TEMPERATURE
    return min(MAX_TEMPERATURE, max(0.0, value / 50))


def session_title(agent: AgentProfile, guest: bool) -> str:
    return GUEST_SESSION_TITLE if guest else f"Chat with {agent.name}"


def fallback_reply(agent: AgentProfile, message: str) -> str:
    expertise = agent.topic_expertise or DEFAULT_EXPERTISE
    text = message.strip()

    if _GREETING.match(text):
        return f"Hi! I'm {agent.name}, your {expertise} expert. How can I help you today?"
    if _FAREWELL.match(text):
        return f"Goodbye! Feel free to come back if you need any more help with {expertise}!"
    if _THANKS.match(text):
        return f"You're welcome! Let me know if you need anything else related to {expertise}."
    return (
        f'I\'ll help you with "{text}" from a {expertise} perspective. '
        "What specific aspects would you like me to address?"
    )


def clean_title(raw: str) -> str:
    title = raw.strip().splitlines()[0] if raw.strip() else ""
    title = title.strip().strip("\"'").strip()
    return title[:MAX_TITLE_LENGTH]
