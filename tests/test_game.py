"""Tests for the game-progression fold: floors, moves, stages, win condition,
dedupe, guide narration, cheat code and rewind lookup."""

import random

from transporter.config import CHEAT_CODE, FLOORS, MARVIN_TRANSITION_MSG, TOTAL_MOVES
from transporter.game import (
    JOIN_ANNOUNCEMENT,
    append_if_not_duplicate,
    arrival_message,
    cheat_messages,
    compute_game_state,
    find_marvin_join_start,
    guide_followups,
    is_cheat,
    next_autonomous_speaker,
    opening_messages,
)
from transporter.models import GameState, Message


def user(text="go"):
    return Message(persona="user", message=text)


def elevator(action="none", text="Hmm."):
    return Message(persona="elevator", message=text, action=action)


def marvin(action="none", text="Life. Don't talk to me about life."):
    return Message(persona="marvin", message=text, action=action)


def transition():
    return Message(persona="guide", message=MARVIN_TRANSITION_MSG)


# ── compute_game_state ───────────────────────────────────────


def test_empty_log_is_initial_state():
    state = compute_game_state([])
    assert state == GameState()
    assert state.current_floor == 3
    assert state.moves_left == TOTAL_MOVES


def test_down_moves_one_floor():
    state = compute_game_state([user(), elevator("down")])
    assert state.current_floor == 2


def test_up_moves_one_floor():
    state = compute_game_state([user(), elevator("up")])
    assert state.current_floor == 4


def test_up_at_top_floor_stays_at_top():
    log = [elevator("up", f"up {i}") for i in range(5)]
    assert compute_game_state(log).current_floor == FLOORS


def test_down_at_ground_floor_stays_at_ground():
    log = [elevator("down", f"down {i}") for i in range(5)]
    assert compute_game_state(log).current_floor == 1


def test_floor_always_in_bounds_for_random_logs():
    rng = random.Random(42)
    speakers = ["user", "elevator", "marvin", "guide"]
    actions = ["none", "join", "up", "down"]
    for _ in range(200):
        log = [
            Message(persona=rng.choice(speakers), message=str(i), action=rng.choice(actions))
            for i in range(rng.randint(0, 30))
        ]
        state = compute_game_state(log)
        assert 1 <= state.current_floor <= FLOORS


def test_moves_left_counts_user_turns():
    log = [user("a"), elevator(), user("b"), elevator(), Message(persona="guide", message="hi")]
    assert compute_game_state(log).moves_left == TOTAL_MOVES - 2


def test_moves_left_never_negative():
    log = [user(str(i)) for i in range(TOTAL_MOVES + 3)]
    assert compute_game_state(log).moves_left == 0


def test_moves_left_monotonically_non_increasing():
    rng = random.Random(7)
    log: list[Message] = []
    previous = compute_game_state(log).moves_left
    for i in range(40):
        log.append(Message(persona=rng.choice(["user", "elevator", "guide"]), message=str(i)))
        current = compute_game_state(log).moves_left
        assert current <= previous
        previous = current


def test_reaching_ground_floor_completes_first_stage():
    state = compute_game_state([elevator("down", "one"), elevator("down", "two")])
    assert state.current_floor == 1
    assert state.first_stage_complete


def test_first_stage_stays_complete_after_going_back_up():
    log = [elevator("down", "1"), elevator("down", "2"), elevator("up", "3"), elevator("down", "4")]
    state = compute_game_state(log)
    assert state.current_floor == 1
    assert state.first_stage_complete

    log = [elevator("down", "1"), elevator("down", "2"), elevator("up", "3")]
    assert compute_game_state(log).first_stage_complete


def test_transition_message_switches_to_marvin():
    state = compute_game_state([transition()])
    assert state.current_persona == "marvin"


def test_other_guide_messages_do_not_switch_persona():
    state = compute_game_state([Message(persona="guide", message="Don't Panic!")])
    assert state.current_persona == "elevator"


def test_join_enters_autonomous_mode():
    state = compute_game_state([transition(), user(), marvin("join")])
    assert state.conversation_mode == "autonomous"
    assert state.marvin_joined
    assert state.last_speaker == "marvin"


def test_reaching_top_floor_without_join_does_not_win():
    state = compute_game_state([elevator("up", "a"), elevator("up", "b")])
    assert state.current_floor == FLOORS
    assert not state.has_won


def test_reaching_top_floor_after_join_wins():
    log = [marvin("join")] + [elevator("up", str(i)) for i in range(2)]
    state = compute_game_state(log)
    assert state.current_floor == FLOORS
    assert state.has_won


def test_join_after_reaching_top_needs_another_up():
    log = [elevator("up", "a"), elevator("up", "b"), marvin("join")]
    assert not compute_game_state(log).has_won
    assert compute_game_state(log + [elevator("up", "c")]).has_won


def test_win_is_sticky():
    log = [marvin("join"), elevator("up", "a"), elevator("up", "b"), elevator("down", "c")]
    assert compute_game_state(log).has_won


def test_fold_is_deterministic():
    log = [user(), elevator("down"), transition(), user("x"), marvin("join")]
    assert compute_game_state(log) == compute_game_state(list(log))


# ── append_if_not_duplicate ──────────────────────────────────


def test_append_to_empty_log():
    assert append_if_not_duplicate([], user()) == [user()]


def test_identical_message_appended_once():
    log = append_if_not_duplicate([], user("hello"))
    log = append_if_not_duplicate(log, user("hello"))
    assert len(log) == 1


def test_same_text_different_action_is_not_duplicate():
    log = append_if_not_duplicate([elevator("none", "ok")], elevator("down", "ok"))
    assert len(log) == 2


def test_only_last_message_is_compared():
    log = [user("a"), user("b")]
    assert len(append_if_not_duplicate(log, user("a"))) == 3


def test_append_does_not_mutate_input():
    log = [user("a")]
    append_if_not_duplicate(log, user("b"))
    assert log == [user("a")]


# ── guide narration ──────────────────────────────────────────


def test_opening_messages_announce_initial_floor():
    msgs = opening_messages()
    assert msgs[-1].message == "Now arriving at floor 3..."
    assert all(m.persona == "guide" for m in msgs)


def test_arrival_at_top_floor_without_marvin():
    msg = arrival_message(FLOORS, marvin_joined=False)
    assert "minimum of two people" in msg.message


def test_arrival_at_top_floor_with_marvin():
    msg = arrival_message(FLOORS, marvin_joined=True)
    assert "Even Marvin will enjoy one" in msg.message


def test_followups_on_floor_change():
    before = GameState(current_floor=3)
    after = GameState(current_floor=2)
    msgs = guide_followups(before, after, elevator("down"))
    assert [m.message for m in msgs] == ["Now arriving at floor 2..."]


def test_followups_on_join():
    before = GameState(current_floor=1)
    after = GameState(current_floor=1, marvin_joined=True)
    msgs = guide_followups(before, after, marvin("join"))
    assert [m.message for m in msgs] == [JOIN_ANNOUNCEMENT]


def test_no_followups_without_change():
    state = GameState()
    assert guide_followups(state, state, elevator()) == []


# ── cheat code ───────────────────────────────────────────────


def test_cheat_recognised_during_elevator_stage():
    assert is_cheat(f" {CHEAT_CODE} ", GameState())


def test_cheat_ignored_after_first_stage():
    assert not is_cheat(CHEAT_CODE, GameState(first_stage_complete=True, current_floor=1))
    assert not is_cheat(CHEAT_CODE, GameState(current_persona="marvin"))


def test_cheat_messages_reach_ground_floor_without_spending_moves():
    log = opening_messages()
    log = log + cheat_messages(compute_game_state(log))
    state = compute_game_state(log)
    assert state.current_floor == 1
    assert state.first_stage_complete
    assert state.moves_left == TOTAL_MOVES


def test_cheat_messages_are_distinct():
    msgs = cheat_messages(GameState(current_floor=5))
    assert len(msgs) == 4
    assert len({m.message for m in msgs}) == 4


# ── rewind lookup ────────────────────────────────────────────


def test_join_start_is_triggering_user_message():
    log = [transition(), user("a"), marvin(), user("b"), marvin("join"), elevator()]
    assert find_marvin_join_start(log) == 3


def test_join_start_without_user_message_is_join_itself():
    log = [transition(), marvin("join")]
    assert find_marvin_join_start(log) == 1


def test_join_start_missing():
    assert find_marvin_join_start([user(), elevator()]) == -1


# ── autonomous turn order ────────────────────────────────────


def test_marvin_answers_elevator():
    assert next_autonomous_speaker([elevator()]) == "marvin"


def test_elevator_answers_marvin_even_after_guide_line():
    log = [marvin("join"), Message(persona="guide", message=JOIN_ANNOUNCEMENT)]
    assert next_autonomous_speaker(log) == "elevator"


def test_marvin_speaks_first_in_empty_log():
    assert next_autonomous_speaker([]) == "marvin"
