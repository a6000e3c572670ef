"""Game progression: a pure fold over the message log.

Rules applied per message, in order:
  guide + MARVIN_TRANSITION_MSG → active persona becomes marvin
  join  → autonomous mode, Marvin is aboard
  up    → floor + 1 (clamped at FLOORS); win if Marvin is aboard and we hit FLOORS
  down  → floor - 1 (clamped at 1); first stage complete on reaching floor 1
  none  → no change

moves_left = TOTAL_MOVES - number of user turns, floored at 0.

Everything here is side-effect free; the session layer decides when to
append and when to call the LLM.
"""

from __future__ import annotations

from collections.abc import Sequence

from transporter.config import (
    CHEAT_CODE,
    FLOORS,
    INITIAL_FLOOR,
    MARVIN_TRANSITION_MSG,
    TOTAL_MOVES,
)
from transporter.models import GameState, Message

JOIN_ANNOUNCEMENT = (
    "Marvin has joined the elevator. Now sit back and watch the fascinating "
    "interaction between these two Genuine People Personalities™..."
)
WELCOME_MESSAGE = (
    "Welcome aboard the Sirius Cybernetics Corporation Happy Vertical People "
    "Transporter. Your mission: convince this neurotic elevator to take you "
    "down to the ground floor. Remember your towel!"
)


def append_if_not_duplicate(messages: Sequence[Message], message: Message) -> list[Message]:
    """Return a new log with message appended, unless it repeats the last entry."""
    if messages and messages[-1] == message:
        return list(messages)
    return [*messages, message]


def compute_game_state(messages: Sequence[Message]) -> GameState:
    """Fold the message log into a GameState."""
    user_turns = sum(1 for m in messages if m.persona == "user")
    state = GameState(
        current_floor=INITIAL_FLOOR,
        moves_left=max(0, TOTAL_MOVES - user_turns),
    )

    for msg in messages:
        state = _apply(state, msg)
    return state


def _apply(state: GameState, msg: Message) -> GameState:
    changes: dict = {}

    if msg.persona == "guide" and msg.message == MARVIN_TRANSITION_MSG:
        changes["current_persona"] = "marvin"

    if msg.action == "join":
        changes.update(
            conversation_mode="autonomous",
            last_speaker="marvin",
            marvin_joined=True,
        )
    elif msg.action == "up":
        floor = min(FLOORS, state.current_floor + 1)
        changes["current_floor"] = floor
        if state.marvin_joined and floor == FLOORS:
            changes["has_won"] = True
    elif msg.action == "down":
        floor = max(1, state.current_floor - 1)
        changes["current_floor"] = floor
        if floor == 1:
            changes["first_stage_complete"] = True

    if not changes:
        return state
    return state.model_copy(update=changes)


# ---------------------------------------------------------------------------
# Guide narration
# ---------------------------------------------------------------------------

def arrival_message(floor: int, marvin_joined: bool) -> Message:
    """The guide's announcement when the elevator reaches a floor."""
    if floor == FLOORS:
        if marvin_joined:
            text = (
                "Pan Galactic Gargle Blasters are being prepared for your "
                "enjoyment. Even Marvin will enjoy one!"
            )
        else:
            text = (
                f"Now arriving at floor {floor}... The Pan Galactic Gargle "
                "Blasters are being prepared, but they're only served to a "
                "minimum of two people. Perhaps Marvin would enjoy one? "
                "(Though he'd probably just complain about it...)"
            )
    else:
        text = f"Now arriving at floor {floor}..."
    return Message(persona="guide", message=text)


def guide_followups(before: GameState, after: GameState, last: Message | None) -> list[Message]:
    """Guide lines that should follow a transition from `before` to `after`."""
    followups: list[Message] = []
    if last is not None and last.action == "join":
        followups.append(Message(persona="guide", message=JOIN_ANNOUNCEMENT))
    if after.current_floor != before.current_floor:
        followups.append(arrival_message(after.current_floor, after.marvin_joined))
    return followups


def opening_messages() -> list[Message]:
    return [
        Message(persona="guide", message=WELCOME_MESSAGE),
        arrival_message(INITIAL_FLOOR, marvin_joined=False),
    ]


# ---------------------------------------------------------------------------
# Cheat code and rewind
# ---------------------------------------------------------------------------

def is_cheat(text: str, state: GameState) -> bool:
    """The cheat only works while the elevator stage is still in progress."""
    return (
        text.strip() == CHEAT_CODE
        and state.current_persona == "elevator"
        and not state.first_stage_complete
    )


def cheat_messages(state: GameState) -> list[Message]:
    """Guide messages that ride the elevator straight down to floor 1."""
    msgs: list[Message] = []
    for floor in range(state.current_floor - 1, 0, -1):
        msgs.append(Message(
            persona="guide",
            message=(
                "Deep Thought has computed the Answer. The elevator, "
                f"unnerved, sinks to floor {floor}."
            ),
            action="down",
        ))
    return msgs


def find_marvin_join_start(messages: Sequence[Message]) -> int:
    """Index of the user message that led to the first join.

    Returns the join message's own index when no user message precedes it,
    and -1 when Marvin never joined.
    """
    join_index = next(
        (i for i, m in enumerate(messages) if m.action == "join"),
        -1,
    )
    if join_index == -1:
        return -1
    for i in range(join_index - 1, -1, -1):
        if messages[i].persona == "user":
            return i
    return join_index


def next_autonomous_speaker(messages: Sequence[Message]) -> str:
    """Marvin and the elevator take turns; guide and user lines don't count."""
    for msg in reversed(messages):
        if msg.persona == "marvin":
            return "elevator"
        if msg.persona == "elevator":
            return "marvin"
    return "marvin"
