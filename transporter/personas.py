"""Ask a persona for its next line.

The LLM is told to answer with {"message": ..., "action": ...}. Models are
not always obedient, so parse_reply() accepts, in order:
  1. the whole reply as a JSON object
  2. the first {...} object embedded in surrounding prose
  3. <action>up</action> style tags, with the rest of the text as the message

Anything else is a malformed reply and counts as a failed attempt.
"""

from __future__ import annotations

import json
import logging
import re

from transporter.config import FALLBACK_MESSAGE
from transporter.llm import LLM, LLMError, with_retries
from transporter.models import ChatMessage, GameState, Message
from transporter.prompts import get_persona_prompt

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()
_ACTION_TAG = re.compile(r"<action>\s*(\w+)\s*</action>", re.IGNORECASE)
_THINKING_TAG = re.compile(r"<thinking>.*?</thinking>", re.IGNORECASE | re.DOTALL)


def build_chat_messages(
    persona: str, state: GameState, history: list[Message]
) -> list[ChatMessage]:
    """System prompt followed by the log reshaped into role-tagged turns."""
    turns = [ChatMessage(role="system", content=get_persona_prompt(persona, state))]
    for msg in history:
        content = json.dumps({"message": msg.message, "action": msg.action})
        if msg.persona == "user":
            turns.append(ChatMessage(role="user", content=content))
        else:
            turns.append(ChatMessage(role="assistant", content=content, name=msg.persona))
    return turns


def parse_reply(text: str) -> tuple[str, str]:
    """Return (message, action) from a raw completion, or raise LLMError."""
    stripped = text.strip()

    payload = _load_object(stripped)
    if payload is None:
        payload = _first_embedded_object(stripped)

    if payload is not None:
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            action = payload.get("action") or "none"
            return message.strip(), str(action)
        raise LLMError("Reply JSON has no message")

    tag = _ACTION_TAG.search(stripped)
    if tag:
        message = _THINKING_TAG.sub("", _ACTION_TAG.sub("", stripped)).strip()
        if message:
            return message, tag.group(1)

    raise LLMError(f"Malformed reply: {stripped[:80]!r}")


def _load_object(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _first_embedded_object(text: str) -> dict | None:
    """First JSON object found anywhere in text, ignoring what surrounds it."""
    start = text.find("{")
    while start != -1:
        try:
            data, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return data
        start = text.find("{", start + 1)
    return None


async def fetch_persona_message(
    llm: LLM,
    persona: str,
    state: GameState,
    history: list[Message],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
) -> Message:
    """Get the persona's next Message. Never raises; degrades to an apology."""
    chat = build_chat_messages(persona, state, history)

    async def attempt() -> Message:
        text = await llm(chat)
        message, action = parse_reply(text)
        return Message(persona=persona, message=message, action=action)

    fallback = Message(persona=persona, message=FALLBACK_MESSAGE, action="none")
    reply = await with_retries(
        attempt,
        fallback=fallback,
        max_attempts=max_attempts,
        base_delay=base_delay,
    )
    logger.info("persona=%s action=%s", reply.persona, reply.action)
    return reply
