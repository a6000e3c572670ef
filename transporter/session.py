"""Game session service: one player's run through the building.

Turn flow for a player message:
  1. Reject if the game is over, Marvin and the elevator are chatting on
     their own, or the text is blank.
  2. Cheat code during the elevator stage → guide rides the car to floor 1.
  3. Otherwise append the user message and ask the active persona (elevator
     or marvin) for a reply.
  4. Append the reply, then whatever the guide has to say about the change
     (arrival announcements, Marvin joining).
  5. If the reply was a join, start the autonomous conversation.

Autonomous conversation: after each turn the runner sleeps
AUTONOMOUS_BASE_DELAY + AUTONOMOUS_DELAY_PER_MESSAGE * len(log) seconds and
asks the next speaker (Marvin and the elevator alternate). It stops once the
game is won, after AUTONOMOUS_MAX_TURNS persona turns, or when cancelled by a
rewind, a session delete or app shutdown. All appends go through the
deduplicating storage call.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from transporter.config import (
    AUTONOMOUS_BASE_DELAY,
    AUTONOMOUS_DELAY_PER_MESSAGE,
    AUTONOMOUS_MAX_TURNS,
    MARVIN_TRANSITION_MSG,
)
from transporter.display import format_message, render_elevator_ascii
from transporter.game import (
    cheat_messages,
    compute_game_state,
    find_marvin_join_start,
    guide_followups,
    is_cheat,
    next_autonomous_speaker,
    opening_messages,
)
from transporter.llm import LLM
from transporter.models import GameState, Message, Session
from transporter.personas import fetch_persona_message
from transporter.storage import Storage

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[object]]


class GameError(Exception):
    """Raised when a player action is not allowed in the current game state."""


class SessionNotFound(LookupError):
    """Raised when a session id does not exist."""


def autonomous_delay(message_count: int) -> float:
    return AUTONOMOUS_BASE_DELAY + AUTONOMOUS_DELAY_PER_MESSAGE * message_count


def autonomous_turns(messages: list[Message]) -> int:
    """Persona turns taken since the first join."""
    for i, msg in enumerate(messages):
        if msg.action == "join":
            return sum(1 for m in messages[i + 1:] if m.persona in ("elevator", "marvin"))
    return 0


def should_continue_autonomously(messages: list[Message]) -> bool:
    state = compute_game_state(messages)
    return (
        state.conversation_mode == "autonomous"
        and not state.has_won
        and autonomous_turns(messages) < AUTONOMOUS_MAX_TURNS
    )


# ---------------------------------------------------------------------------
# GameService
# ---------------------------------------------------------------------------

class GameService:
    """Player-facing operations on stored sessions.

    Args:
        storage:      Where message logs live.
        llm:          Chat completion callable (see transporter.llm.LLM).
        max_attempts: LLM attempts per persona reply before the fallback line.
        base_delay:   Backoff base in seconds between attempts.
        sleep:        Awaitable sleep used for autonomous pacing.
    """

    def __init__(
        self,
        storage: Storage,
        llm: LLM,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.storage = storage
        self.llm = llm
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self.runner = AutonomousRunner(self, sleep=sleep)

    # ── Queries ──────────────────────────────────────────

    def _require(self, session_id: str) -> Session:
        session = self.storage.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def snapshot(self, session_id: str) -> dict[str, Any]:
        """Messages, derived state and the rendered shaft for one session.

        Also resumes an autonomous conversation left without a runner,
        e.g. after a server restart.
        """
        session = self._require(session_id)
        messages = self.storage.get_messages(session_id)
        state = compute_game_state(messages)
        if should_continue_autonomously(messages):
            self.runner.ensure(session_id)
        return {
            "session": session.model_dump(),
            "messages": [m.model_dump() for m in messages],
            "lines": [format_message(m) for m in messages],
            "state": state.model_dump(),
            "is_over": state.is_over,
            "autonomous_running": self.runner.is_running(session_id),
            "elevator_ascii": render_elevator_ascii(
                state.current_floor,
                show_legend=not any(m.persona == "user" for m in messages),
                is_marvin_mode=state.current_persona == "marvin",
                has_marvin_joined=state.marvin_joined,
            ),
        }

    # ── Commands ─────────────────────────────────────────

    def start(self) -> Session:
        session = self.storage.create_session()
        for msg in opening_messages():
            self.storage.append_message(session.id, msg)
        logger.info("session %s started", session.id)
        return session

    async def delete(self, session_id: str) -> None:
        await self.runner.cancel(session_id)
        if not self.storage.delete_session(session_id):
            raise SessionNotFound(session_id)

    async def send_message(self, session_id: str, text: str) -> list[Message]:
        self._require(session_id)
        text = text.strip()
        if not text:
            raise GameError("Say something first")

        messages = self.storage.get_messages(session_id)
        state = compute_game_state(messages)
        if state.has_won:
            raise GameError("You have already won. So long, and thanks for all the fish!")
        if state.moves_left <= 0:
            raise GameError("You've run out of moves")
        if state.conversation_mode == "autonomous":
            raise GameError("Marvin and the elevator are busy talking to each other")

        if is_cheat(text, state):
            logger.info("session %s used the cheat code", session_id)
            for msg in cheat_messages(state):
                messages = self.storage.append_message(session_id, msg)
            return self._append_followups(session_id, state, messages)

        self.storage.append_message(session_id, Message(persona="user", message=text))
        return await self._ask(session_id, state.current_persona)

    async def guide_advice(self, session_id: str) -> list[Message]:
        self._require(session_id)
        messages = self.storage.get_messages(session_id)
        state = compute_game_state(messages)
        reply = await self._fetch("guide", state, messages)
        # The guide advises; it never moves the elevator
        reply = reply.model_copy(update={"action": "none"})
        return self.storage.append_message(session_id, reply)

    async def persona_switch(self, session_id: str) -> list[Message]:
        """Hand over to Marvin, or rewind to before he joined."""
        self._require(session_id)
        messages = self.storage.get_messages(session_id)
        state = compute_game_state(messages)

        if state.conversation_mode == "autonomous":
            index = find_marvin_join_start(messages)
            if index == -1:
                raise GameError("Nothing to rewind")
            await self.runner.cancel(session_id)
            logger.info("session %s rewound to message %d", session_id, index)
            return self.storage.truncate_messages(session_id, index)

        if state.current_persona != "elevator" or not state.first_stage_complete:
            raise GameError("The elevator has not reached the ground floor yet")
        return self.storage.append_message(
            session_id, Message(persona="guide", message=MARVIN_TRANSITION_MSG)
        )

    async def autonomous_turn(self, session_id: str) -> list[Message]:
        messages = self.storage.get_messages(session_id)
        return await self._ask(session_id, next_autonomous_speaker(messages))

    # ── Internals ────────────────────────────────────────

    async def _fetch(self, persona: str, state: GameState, history: list[Message]) -> Message:
        return await fetch_persona_message(
            self.llm, persona, state, history,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
        )

    async def _ask(self, session_id: str, persona: str) -> list[Message]:
        history = self.storage.get_messages(session_id)
        before = compute_game_state(history)
        reply = await self._fetch(persona, before, history)
        messages = self.storage.append_message(session_id, reply)
        messages = self._append_followups(session_id, before, messages)

        if should_continue_autonomously(messages):
            self.runner.ensure(session_id)
        return messages

    def _append_followups(
        self, session_id: str, before: GameState, messages: list[Message]
    ) -> list[Message]:
        after = compute_game_state(messages)
        last = messages[-1] if messages else None
        for followup in guide_followups(before, after, last):
            messages = self.storage.append_message(session_id, followup)
        return messages


# ---------------------------------------------------------------------------
# AutonomousRunner: one background task per session
# ---------------------------------------------------------------------------

class AutonomousRunner:
    """Drives the Marvin/elevator conversation without player input."""

    def __init__(self, service: GameService, sleep: Sleep = asyncio.sleep) -> None:
        self._service = service
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task] = {}

    def is_running(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    def ensure(self, session_id: str) -> None:
        """Start the conversation task unless one is already running."""
        if self.is_running(session_id):
            return
        task = asyncio.get_running_loop().create_task(self._run(session_id))
        self._tasks[session_id] = task
        task.add_done_callback(lambda t: self._forget(session_id, t))

    async def cancel(self, session_id: str) -> None:
        task = self._tasks.pop(session_id, None)
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def wait(self, session_id: str) -> None:
        """Block until the session's conversation task (if any) finishes."""
        task = self._tasks.get(session_id)
        if task is not None:
            await task

    async def shutdown(self) -> None:
        for session_id in list(self._tasks):
            await self.cancel(session_id)

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(session_id) is task:
            del self._tasks[session_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "autonomous conversation for %s crashed", session_id,
                exc_info=task.exception(),
            )

    async def _run(self, session_id: str) -> None:
        storage = self._service.storage
        logger.info("autonomous conversation started for %s", session_id)
        while True:
            messages = storage.get_messages(session_id)
            if not should_continue_autonomously(messages):
                break
            await self._sleep(autonomous_delay(len(messages)))
            # the log may have been rewound or deleted while we slept
            if storage.get_session(session_id) is None:
                break
            if not should_continue_autonomously(storage.get_messages(session_id)):
                break
            await self._service.autonomous_turn(session_id)
        logger.info("autonomous conversation finished for %s", session_id)
