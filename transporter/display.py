"""Text rendering for the elevator shaft and message lines."""

from transporter.config import FLOORS
from transporter.models import Message

MESSAGE_PREFIXES = {
    "user": "> ",
    "guide": "",
    "elevator": "Elevator: ",
    "marvin": "Marvin: ",
}

ACTION_INDICATORS = {
    "up": "↑",
    "down": "↓",
}

_SHAFT = "   |  |   "
_CAR = "  [|##|]  "
_MARVIN_ABOARD = "  [|MA|]  "
_MARVIN_WAITING = "  MA     "


def render_elevator_ascii(
    floor: int,
    show_legend: bool = False,
    is_marvin_mode: bool = False,
    has_marvin_joined: bool = False,
) -> str:
    """Draw the shaft with floor FLOORS at the top and floor 1 at the bottom."""
    car = min(max(floor, 1), FLOORS) - 1
    rows = [_SHAFT] * FLOORS

    rows[car] = _CAR
    if is_marvin_mode:
        # Marvin waits on the ground floor
        rows[0] = _MARVIN_ABOARD if has_marvin_joined else _MARVIN_WAITING

    if show_legend:
        rows = ["                   |  |                   "] * FLOORS
        rows[FLOORS - 1] = f"                   |  |  <- Floor {FLOORS}       "
        rows[0] = "                   |  |  <- Floor 1 (Goal)"
        if is_marvin_mode:
            rows[0] = "     Marvin -> MA  |  |  <- Floor 1       "
        else:
            rows[car] = "      Elevator -> [|##|]                  "

    return "\n".join(reversed(rows))


def format_message(msg: Message) -> str:
    """One display line: speaker prefix, text and an arrow for moves."""
    line = f"{MESSAGE_PREFIXES[msg.persona]}{msg.message}"
    indicator = ACTION_INDICATORS.get(msg.action)
    if indicator:
        line = f"{line} {indicator}"
    return line
