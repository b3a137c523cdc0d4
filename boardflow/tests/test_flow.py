"""
Tests for the Flow state machine.

Tests:
- Phase entry, successors, hooks and end conditions
- Turn end conditions, hooks and event intents
- Stages and the active-players set
- Event enable flags and cascade bounds
- Configuration validation
"""

import pytest

from ..engine_core.action import Action
from ..engine_core.events import enabled_events
from ..engine_core.flow import Flow, MAX_CASCADE
from ..engine_core.game import create_game
from ..engine_core.reducer import GameReducer
from ..errors import GameConfigError
from .helpers import add, event, move, start_flow


class TestPhases:
    """Tests for phase progression."""

    def test_start_phase(self):
        """The phase marked start is entered first."""
        flow = Flow(phases={"A": {}, "B": {"start": True}})
        assert start_flow(flow, 2).ctx.phase == "B"

    def test_first_configured_phase_without_start(self):
        flow = Flow(phases={"A": {}, "B": {}})
        assert start_flow(flow, 2).ctx.phase == "A"

    def test_default_phase_without_phases(self):
        assert start_flow(Flow(), 2).ctx.phase == "default"

    def test_list_phases_chain_and_end_game(self):
        """List phases follow each other; the last one ends the game."""
        flow = Flow(phases=[{"name": "A"}, {"name": "B"}])
        state = start_flow(flow, 2)

        state = flow.process_game_event(state, event("end_phase"))
        assert state.ctx.phase == "B"
        assert state.ctx.gameover is None

        state = flow.process_game_event(state, event("end_phase"))
        assert state.ctx.gameover is True

        assert flow.process_game_event(state, event("end_phase")) is state

    def test_hooks_run_in_order(self):
        """on_begin runs on entry, on_end on exit."""
        def hook(label):
            def fn(G, ctx):
                G["log"].append(label)
            return fn

        flow = Flow(phases={
            "A": {"on_begin": hook("begin A"), "on_end": hook("end A"), "next": "B"},
            "B": {"on_begin": hook("begin B")},
        })
        state = start_flow(flow, 2, G={"log": []})
        state = flow.process_game_event(state, event("end_phase"))

        assert state.G["log"] == ["begin A", "end A", "begin B"]

    def test_end_phase_starts_new_turn_with_first(self):
        """Entering a phase starts a new turn from the order's first player."""
        flow = Flow(phases=[{"name": "A"}, {"name": "B"}])
        state = start_flow(flow, 3)
        state = flow.process_game_event(state, event("end_turn"))
        assert state.ctx.current_player == "1"

        state = flow.process_game_event(state, event("end_phase"))

        assert state.ctx.turn == 3
        assert state.ctx.current_player == "1"
        assert state.ctx.num_moves == 0

    def test_set_phase(self):
        flow = Flow(phases={"A": {}, "B": {}, "C": {}})
        state = start_flow(flow, 2)

        state = flow.process_game_event(state, event("set_phase", "C"))

        assert state.ctx.phase == "C"
        assert state.ctx.turn == 2

    def test_set_unknown_phase_is_ignored(self):
        flow = Flow(phases={"A": {}})
        state = start_flow(flow, 2)
        assert flow.process_game_event(state, event("set_phase", "Z")) is state

    def test_end_if_after_move(self):
        """A truthy phase end_if ends the phase right after the move."""
        game = create_game(
            setup=lambda ctx: {"count": 0},
            moves={"add": add},
            phases={
                "A": {"end_if": lambda G, ctx: G["count"] >= 2, "next": "B"},
                "B": {},
            },
        )
        reducer = GameReducer(game, num_players=2)
        state = reducer(None, Action.init())

        state = reducer(state, move("add"))
        assert state.ctx.phase == "A"
        state = reducer(state, move("add"))

        assert state.ctx.phase == "B"
        assert [entry.automatic for entry in state.deltalog] == [False, True]
        assert state.deltalog[1].action.payload.type == "end_phase"

    def test_end_game_if_value(self):
        """end_game_if's return value becomes gameover."""
        game = create_game(
            setup=lambda ctx: {"count": 0},
            moves={"add": add},
            phases={"A": {"end_game_if": lambda G, ctx: G["count"] and {"winner": "0"}}},
        )
        reducer = GameReducer(game, num_players=2)
        state = reducer(reducer(None, Action.init()), move("add"))

        assert state.ctx.gameover == {"winner": "0"}

    def test_game_end_if(self):
        game = create_game(
            setup=lambda ctx: {"count": 0},
            moves={"add": add},
            end_if=lambda G, ctx: G["count"] >= 3 and {"winner": ctx.current_player},
        )
        reducer = GameReducer(game, num_players=2)
        state = reducer(None, Action.init())
        for _ in range(3):
            state = reducer(state, move("add"))

        assert state.ctx.gameover == {"winner": "0"}
        assert not reducer.apply(state, move("add")).success

    def test_phase_loop_is_held(self):
        """Phases that keep ending each other stop once one would end twice."""
        always = lambda G, ctx: True
        flow = Flow(phases={
            "A": {"end_if": always, "next": "B"},
            "B": {"end_if": always, "next": "A"},
        })
        state = start_flow(flow, 2)

        assert state.ctx.phase == "A"
        assert state.ctx.gameover is None


class TestTurns:
    """Tests for turn progression."""

    def test_move_limit(self):
        game = create_game(moves={"add": add}, turn={"move_limit": 2})
        reducer = GameReducer(game, num_players=3)
        state = reducer(None, Action.init())

        state = reducer(state, move("add"))
        assert state.ctx.turn == 1
        assert state.ctx.num_moves == 1

        state = reducer(state, move("add"))
        assert state.ctx.turn == 2
        assert state.ctx.current_player == "1"
        assert state.ctx.num_moves == 0

    def test_turn_end_if(self):
        game = create_game(
            setup=lambda ctx: {"count": 0},
            moves={"add": add},
            turn={"end_if": lambda G, ctx: G["count"] >= 5},
        )
        reducer = GameReducer(game, num_players=2)
        state = reducer(None, Action.init())

        state = reducer(state, move("add", 2))
        assert state.ctx.current_player == "0"
        state = reducer(state, move("add", 3))
        assert state.ctx.current_player == "1"

    def test_explicit_next_player(self):
        flow = Flow()
        state = start_flow(flow, 4)
        state = flow.process_game_event(state, event("end_turn", "2"))
        assert state.ctx.current_player == "2"
        assert state.ctx.play_order_pos == 2

    def test_on_begin_can_end_turn(self):
        """Intents recorded in turn.on_begin are applied too."""
        def skip_listed(G, ctx):
            if ctx.current_player in G["skip"]:
                ctx.events.end_turn()

        flow = Flow(turn={"on_begin": skip_listed})
        state = start_flow(flow, 3, G={"skip": ["1"]})
        state = flow.process_game_event(state, event("end_turn"))

        assert state.ctx.current_player == "2"
        assert state.ctx.turn == 3

    def test_end_turn_twice_in_one_move(self):
        """A second end_turn from the same move targets a turn that already ended."""
        def twice(G, ctx):
            ctx.events.end_turn()
            ctx.events.end_turn()

        reducer = GameReducer(create_game(moves={"twice": twice}), num_players=3)
        state = reducer(reducer(None, Action.init()), move("twice"))

        assert state.ctx.current_player == "1"
        assert state.ctx.turn == 2

    def test_pass_removes_player(self):
        flow = Flow()
        state = start_flow(flow, 3)

        state = flow.process_game_event(state, event("pass", True))

        assert state.ctx.play_order == ["1", "2"]
        assert state.ctx.current_player == "1"
        assert state.ctx.play_order_pos == 0

    def test_pass_without_remove_is_end_turn(self):
        flow = Flow()
        state = flow.process_game_event(start_flow(flow, 3), event("pass"))
        assert state.ctx.play_order == ["0", "1", "2"]
        assert state.ctx.current_player == "1"

    def test_last_player_passing_out_ends_phase(self):
        flow = Flow(phases=[{"name": "A"}])
        state = flow.process_game_event(start_flow(flow, 1), event("pass", True))
        assert state.ctx.gameover is True

    def test_cascade_is_bounded(self):
        """A hook that always ends the turn stops after MAX_CASCADE events."""
        def always_end(G, ctx):
            ctx.events.end_turn()

        flow = Flow(turn={"on_begin": always_end})
        state = start_flow(flow, 2)

        assert state.ctx.turn == MAX_CASCADE + 1


class TestStages:
    """Tests for stages and active players."""

    @pytest.fixture
    def reducer(self):
        def discard(G, ctx, card):
            G.setdefault("discarded", []).append(card)

        def draw(G, ctx):
            G["drawn"] = G.get("drawn", 0) + 1

        game = create_game(
            moves={"add": add},
            turn={"stages": {
                "discard": {"moves": {"discard": discard}, "next": "draw"},
                "draw": {"moves": {"draw": draw}},
            }},
        )
        return GameReducer(game, num_players=2)

    def test_stage_moves(self, reducer):
        """A stage with moves restricts its players to them."""
        state = reducer(None, Action.init())
        state = reducer(state, event("set_stage", "discard", player_id="0"))
        assert state.ctx.active_players == {"0": "discard"}

        result = reducer.apply(state, move("add", player_id="0"))
        assert not result.success
        assert result.error_code == "UNKNOWN_MOVE"

        state = reducer(state, move("discard", "sword", player_id="0"))
        assert state.G["discarded"] == ["sword"]

    def test_end_stage_follows_next_then_leaves(self, reducer):
        state = reducer(None, Action.init())
        state = reducer(state, event("set_stage", "discard"))

        state = reducer(state, event("end_stage"))
        assert state.ctx.active_players == {"0": "draw"}

        state = reducer(state, event("end_stage"))
        assert state.ctx.active_players is None
        assert state.ctx.action_players == ["0"]

    def test_unknown_stage_is_ignored(self, reducer):
        state = reducer(None, Action.init())
        result = reducer.apply(state, event("set_stage", "nope"))
        assert result.error_code == "EVENT_IGNORED"
        assert result.new_state is state

    def test_turn_active_players(self):
        """turn.active_players is installed at the start of every turn."""
        flow = Flow(turn={
            "active_players": {"others": "respond"},
            "stages": {"respond": {}},
        })
        state = start_flow(flow, 3)

        assert state.ctx.active_players == {"1": "respond", "2": "respond"}
        assert state.ctx.action_players == ["1", "2"]

        state = flow.process_game_event(state, event("end_turn"))
        assert state.ctx.active_players == {"0": "respond", "2": "respond"}

    def test_set_active_players(self):
        flow = Flow(
            events={"set_active_players": True},
            turn={"stages": {"A": {}, "B": {}}},
        )
        state = start_flow(flow, 3)

        state = flow.process_game_event(
            state, event("set_active_players", {"current_player": "A", "others": "B"})
        )

        assert state.ctx.active_players == {"0": "A", "1": "B", "2": "B"}

    def test_set_active_players_reverts(self):
        """With revert and a move_limit the previous set returns once all acted."""
        game = create_game(moves={"add": add}, events={"set_active_players": True})
        reducer = GameReducer(game, num_players=3)
        state = reducer(None, Action.init())

        state = reducer(state, event(
            "set_active_players",
            {"value": {"1": None}, "move_limit": 1, "revert": True},
        ))
        assert state.ctx.action_players == ["1"]

        state = reducer(state, move("add", player_id="1"))
        assert state.ctx.active_players is None
        assert state.ctx.action_players == ["0"]


class TestEvents:
    """Tests for event enable flags."""

    def test_defaults(self):
        enabled = enabled_events(None)
        assert "end_turn" in enabled
        assert "pass" in enabled
        assert "end_game" not in enabled
        assert "change_action_players" not in enabled
        assert "set_active_players" not in enabled

    def test_disabled_event_from_move_is_dropped(self):
        def finish(G, ctx):
            ctx.events.end_game("done")

        reducer = GameReducer(create_game(moves={"finish": finish}), num_players=2)
        state = reducer(reducer(None, Action.init()), move("finish"))
        assert state.ctx.gameover is None

    def test_enabled_event_from_move(self):
        def finish(G, ctx):
            ctx.events.end_game("done")

        game = create_game(moves={"finish": finish}, events={"end_game": True})
        reducer = GameReducer(game, num_players=2)
        state = reducer(reducer(None, Action.init()), move("finish"))

        assert state.ctx.gameover == "done"
        assert state.deltalog[-1].automatic
        assert state.deltalog[-1].action.payload.args == ["done"]

    def test_flag_can_disable_default(self):
        flow = Flow(events={"end_turn": False})
        state = start_flow(flow, 2)
        assert flow.process_game_event(state, event("end_turn")) is state


class TestConfigValidation:
    """Tests for malformed configurations."""

    def test_unknown_next_phase(self):
        with pytest.raises(GameConfigError) as exc_info:
            Flow(phases={"A": {"next": "missing"}})
        assert "missing" in exc_info.value.errors[0]

    def test_two_start_phases(self):
        with pytest.raises(GameConfigError):
            Flow(phases={"A": {"start": True}, "B": {"start": True}})

    def test_unknown_next_stage(self):
        with pytest.raises(GameConfigError):
            Flow(turn={"stages": {"a": {"next": "b"}}})

    def test_non_callable_move(self):
        with pytest.raises(GameConfigError):
            Flow(phases={"A": {"moves": {"bad": 3}}})

    def test_list_phase_without_name(self):
        with pytest.raises(GameConfigError):
            Flow(phases=[{"next": None}])

    def test_all_problems_reported(self):
        with pytest.raises(GameConfigError) as exc_info:
            Flow(phases={"A": {"next": "X", "start": True}, "B": {"start": True}})
        assert len(exc_info.value.errors) == 2

    def test_move_map_keys(self):
        noop = lambda G, ctx: G
        flow = Flow(phases={"A": {
            "moves": {"play": noop},
            "turn": {"stages": {"s": {"moves": {"react": noop}}}},
        }})
        assert "A.play" in flow.move_map
        assert "A.s.react" in flow.move_map
