"""
Test suite for WebSocket message handlers.

Drives dispatch() with mock WebSockets, checking acks, broadcasts and that
hidden cards only ever reach the player entitled to see them.

Run with: pytest test_handlers.py -v
"""

import random

import pytest

import handlers
from game import Card, GamePhase
from handlers import ACTION_NAMES, HANDLERS, ConnectionContext, dispatch, handle_player_leave
from models.actions import ACTION_TYPES, StartGame
from room import RoomManager


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def last_message(self) -> dict:
        return self.messages[-1] if self.messages else {}

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]

    def last_ack(self) -> dict:
        acks = self.messages_of_type("ack")
        return acks[-1] if acks else {}

    def last_state(self) -> dict:
        states = self.messages_of_type("room_state")
        return states[-1]["state"] if states else {}


def make_ctx(websocket=None, player_id="test_player", room=None):
    """Create a ConnectionContext with sensible defaults."""
    ws = websocket or MockWebSocket()
    return ConnectionContext(
        websocket=ws,
        player_id=player_id,
        current_room=room,
    )


async def seat_two(rm: RoomManager):
    """Alice creates a room, Bob joins it."""
    alice = make_ctx(player_id="alice")
    bob = make_ctx(player_id="bob")
    await dispatch({"type": "room:create", "name": "Alice"}, alice, room_manager=rm)
    code = alice.websocket.last_ack()["room_id"]
    await dispatch({"type": "room:join", "room_id": code, "name": "Bob"}, bob, room_manager=rm)
    alice.current_room.game.rng = random.Random(9)
    return alice, bob


async def play_ready(rm: RoomManager):
    """Seated, dealt and both peeks spent; Alice to draw."""
    alice, bob = await seat_two(rm)
    await dispatch({"type": "game:start"}, alice, room_manager=rm)
    for ctx in (alice, bob):
        for index in (0, 1):
            await dispatch({"type": "game:peek", "index": index}, ctx, room_manager=rm)
    return alice, bob


def put_on_draw_pile(game, code: str) -> Card:
    """Swap a card onto the top of the draw pile from wherever it is."""
    card = Card.from_code(code)
    for pile in [game.draw_pile, game.discard_pile] + [p.hand for p in game.players]:
        if card in pile:
            pos = pile.index(card)
            pile[pos], game.draw_pile[-1] = game.draw_pile[-1], pile[pos]
            break
    return card


def hand_slots(state: dict) -> list:
    return [slot for p in state["players"] for slot in p["hand"]]


# =============================================================================
# Dispatch table
# =============================================================================

class TestDispatchTable:

    def test_every_action_has_handler(self):
        assert set(HANDLERS) == set(ACTION_TYPES)

    def test_action_names(self):
        assert "turn:take" in ACTION_NAMES
        assert "power:queenUnseenSwap" in ACTION_NAMES
        assert len(ACTION_NAMES) == 16


# =============================================================================
# Lobby handlers
# =============================================================================

class TestCreateRoom:

    @pytest.mark.asyncio
    async def test_creates_room(self):
        rm = RoomManager()
        ctx = make_ctx(player_id="alice")

        await dispatch({"type": "room:create", "name": "Alice", "request_id": "r1"}, ctx, room_manager=rm)

        ack = ctx.websocket.last_ack()
        assert ack["ok"] is True
        assert ack["action"] == "room:create"
        assert ack["request_id"] == "r1"
        assert ack["player_id"] == "alice"
        assert len(ack["room_id"]) == 5
        assert ctx.current_room is rm.get_room(ack["room_id"])
        assert ctx.websocket.last_state()["players"][0]["name"] == "Alice"

    @pytest.mark.asyncio
    async def test_create_while_seated_rejected(self):
        rm = RoomManager()
        ctx = make_ctx(player_id="alice")
        await dispatch({"type": "room:create"}, ctx, room_manager=rm)

        await dispatch({"type": "room:create"}, ctx, room_manager=rm)

        ack = ctx.websocket.last_ack()
        assert ack["ok"] is False
        assert ack["error"] == "Already in a room"
        assert ack["category"] == "invalid_phase"
        assert len(rm.rooms) == 1


class TestJoinRoom:

    @pytest.mark.asyncio
    async def test_join_existing_room(self):
        rm = RoomManager()
        alice, bob = await seat_two(rm)

        assert bob.websocket.last_ack()["ok"] is True
        assert bob.current_room is alice.current_room
        # Both sides see two players after the join
        assert len(alice.websocket.last_state()["players"]) == 2
        assert bob.websocket.last_state()["players"][1]["is_me"] is True

    @pytest.mark.asyncio
    async def test_join_is_case_insensitive(self):
        rm = RoomManager()
        alice = make_ctx(player_id="alice")
        await dispatch({"type": "room:create"}, alice, room_manager=rm)
        code = alice.websocket.last_ack()["room_id"]

        bob = make_ctx(player_id="bob")
        await dispatch({"type": "room:join", "room_id": code.lower()}, bob, room_manager=rm)

        assert bob.websocket.last_ack()["ok"] is True
        assert bob.websocket.last_state()["players"][1]["name"] == "Player 2"

    @pytest.mark.asyncio
    async def test_join_nonexistent_room(self):
        rm = RoomManager()
        ctx = make_ctx()

        await dispatch({"type": "room:join", "room_id": "ZZZZZ"}, ctx, room_manager=rm)

        ack = ctx.websocket.last_ack()
        assert ack["ok"] is False
        assert ack["error"] == "Room not found"
        assert ack["category"] == "not_found"
        assert ctx.current_room is None

    @pytest.mark.asyncio
    async def test_join_full_room(self):
        rm = RoomManager()
        alice, _ = await seat_two(rm)
        carol = make_ctx(player_id="carol")

        await dispatch(
            {"type": "room:join", "room_id": alice.current_room.code, "name": "Carol"},
            carol,
            room_manager=rm,
        )

        ack = carol.websocket.last_ack()
        assert ack["error"] == "Room full"
        assert ack["category"] == "resource_exhausted"
        assert carol.current_room is None
        assert carol.websocket.messages_of_type("room_state") == []


class TestLeaveRoom:

    @pytest.mark.asyncio
    async def test_leave_mid_round_resets_lobby(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)

        await dispatch({"type": "room:leave"}, bob, room_manager=rm)

        assert bob.websocket.last_ack()["ok"] is True
        assert bob.current_room is None
        left = alice.websocket.messages_of_type("player_left")
        assert left == [{"type": "player_left", "player_id": "bob", "player_name": "Bob"}]
        state = alice.websocket.last_state()
        assert state["phase"] == "LOBBY"
        assert state["log"][-2:] == ["Bob disconnected.", "Back to lobby."]

    @pytest.mark.asyncio
    async def test_last_player_out_removes_room(self):
        rm = RoomManager()
        alice = make_ctx(player_id="alice")
        await dispatch({"type": "room:create"}, alice, room_manager=rm)

        await dispatch({"type": "room:leave"}, alice, room_manager=rm)

        assert rm.rooms == {}

    @pytest.mark.asyncio
    async def test_disconnect_path(self):
        rm = RoomManager()
        alice, bob = await seat_two(rm)
        room = alice.current_room

        await handle_player_leave(room, "alice", room_manager=rm)

        assert room.game.is_host("bob")
        assert bob.websocket.messages_of_type("player_left")[-1]["player_name"] == "Alice"
        assert room.code in rm.rooms

    @pytest.mark.asyncio
    async def test_leave_without_room(self):
        rm = RoomManager()
        ctx = make_ctx()
        await dispatch({"type": "room:leave"}, ctx, room_manager=rm)
        assert ctx.websocket.last_ack()["error"] == "Not in a room"


# =============================================================================
# Game handlers
# =============================================================================

class TestStartAndPeek:

    @pytest.mark.asyncio
    async def test_only_host_starts(self):
        rm = RoomManager()
        alice, bob = await seat_two(rm)

        await dispatch({"type": "game:start"}, bob, room_manager=rm)

        assert bob.websocket.last_ack()["category"] == "unauthorized"
        assert alice.current_room.game.phase == GamePhase.LOBBY

    @pytest.mark.asyncio
    async def test_start_broadcasts_peek_phase(self):
        rm = RoomManager()
        alice, bob = await seat_two(rm)

        await dispatch({"type": "game:start"}, alice, room_manager=rm)

        for ctx in (alice, bob):
            state = ctx.websocket.last_state()
            assert state["phase"] == "PEEK"
            assert hand_slots(state) == [None] * 8

    @pytest.mark.asyncio
    async def test_peek_result_private(self):
        rm = RoomManager()
        alice, bob = await seat_two(rm)
        await dispatch({"type": "game:start"}, alice, room_manager=rm)

        await dispatch({"type": "game:peek", "index": 3}, alice, room_manager=rm)

        game = alice.current_room.game
        result = alice.websocket.messages_of_type("peek_result")
        assert result == [{
            "type": "peek_result",
            "index": 3,
            "card": game.players[0].hand[3].to_dict(),
            "peeks_remaining": 1,
        }]
        assert bob.websocket.messages_of_type("peek_result") == []

    @pytest.mark.asyncio
    async def test_peek_rejects_string_index(self):
        rm = RoomManager()
        alice, _ = await seat_two(rm)
        await dispatch({"type": "game:start"}, alice, room_manager=rm)

        await dispatch({"type": "game:peek", "index": "2"}, alice, room_manager=rm)

        ack = alice.websocket.last_ack()
        assert ack["ok"] is False
        assert ack["category"] == "invalid_argument"
        assert ack["error"].startswith("Invalid index")
        assert alice.current_room.game.players[0].peeks_remaining == 2

    @pytest.mark.asyncio
    async def test_game_action_without_room(self):
        ctx = make_ctx()
        await dispatch({"type": "turn:draw"}, ctx, room_manager=RoomManager())
        ack = ctx.websocket.last_ack()
        assert ack["error"] == "Not in a room"
        assert ack["category"] == "not_found"


class TestTurnHandlers:

    @pytest.mark.asyncio
    async def test_drawn_card_only_to_drawer(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)
        bob_before = len(bob.websocket.messages)

        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)

        game = alice.current_room.game
        drawn = alice.websocket.messages_of_type("card_drawn")
        assert len(drawn) == 1
        assert drawn[0]["card"] == game.active_draw.to_dict()
        assert drawn[0]["power"] == (drawn[0]["power_kind"] is not None)

        bob_new = bob.websocket.messages[bob_before:]
        assert [m["type"] for m in bob_new] == ["room_state"]
        assert bob_new[0]["state"]["has_drawn"] is True
        assert hand_slots(bob_new[0]["state"]) == [None] * 8
        assert game.active_draw.to_dict() not in bob_new[0]["state"].values()

    @pytest.mark.asyncio
    async def test_take_alias(self):
        rm = RoomManager()
        alice, _ = await play_ready(rm)

        await dispatch({"type": "turn:take", "source": "draw"}, alice, room_manager=rm)

        assert alice.websocket.last_ack() == {
            "type": "ack", "action": "turn:take", "request_id": None, "ok": True,
        }

    @pytest.mark.asyncio
    async def test_discard_source_rejected(self):
        rm = RoomManager()
        alice, _ = await play_ready(rm)

        await dispatch({"type": "turn:draw", "source": "discard"}, alice, room_manager=rm)

        ack = alice.websocket.last_ack()
        assert ack["error"] == "Rule: draw pile only."
        assert alice.current_room.game.active_draw is None

    @pytest.mark.asyncio
    async def test_out_of_turn_rejected_without_broadcast(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)
        alice_before = len(alice.websocket.messages)

        await dispatch({"type": "turn:draw"}, bob, room_manager=rm)

        assert bob.websocket.last_ack()["error"] == "Not your turn"
        assert len(alice.websocket.messages) == alice_before

    @pytest.mark.asyncio
    async def test_swap_then_center_top_public(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)
        game = alice.current_room.game
        old = game.players[0].hand[1]

        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)
        await dispatch({"type": "turn:swap", "hand_index": 1}, alice, room_manager=rm)

        state = bob.websocket.last_state()
        assert state["center_top"] == old.to_dict()
        assert state["turn_player_id"] == "bob"

    @pytest.mark.asyncio
    async def test_discard_drawn(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)

        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)
        await dispatch({"type": "turn:discardDrawn"}, alice, room_manager=rm)

        assert alice.websocket.last_ack()["ok"] is True
        assert bob.websocket.last_state()["discard_count"] == 1

    @pytest.mark.asyncio
    async def test_cabo_rejected_over_threshold(self):
        rm = RoomManager()
        alice, _ = await play_ready(rm)
        game = alice.current_room.game
        for slot, code in enumerate(("KS", "KC", "QS", "QC")):
            put_on_draw_pile(game, code)
            game.players[0].hand[slot], game.draw_pile[-1] = game.draw_pile[-1], game.players[0].hand[slot]

        await dispatch({"type": "turn:cabo"}, alice, room_manager=rm)

        ack = alice.websocket.last_ack()
        assert ack["error"] == "CABO not allowed (total must be < 10)."
        assert ack["category"] == "invalid_argument"


class TestPowerHandlers:

    @pytest.mark.asyncio
    async def test_peek_opponent_private(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)
        game = alice.current_room.game
        put_on_draw_pile(game, "9S")
        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)

        await dispatch({"type": "power:peekOpp", "opp_index": 2}, alice, room_manager=rm)

        reveal = alice.websocket.messages_of_type("power_reveal")
        assert reveal == [{
            "type": "power_reveal", "kind": "opp", "index": 2,
            "card": game.players[1].hand[2].to_dict(),
        }]
        assert bob.websocket.messages_of_type("power_reveal") == []

    @pytest.mark.asyncio
    async def test_wrong_power_rejected(self):
        rm = RoomManager()
        alice, _ = await play_ready(rm)
        put_on_draw_pile(alice.current_room.game, "7D")
        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)

        await dispatch({"type": "power:jackSkip"}, alice, room_manager=rm)

        assert alice.websocket.last_ack()["error"] == "Not a Jack"

    @pytest.mark.asyncio
    async def test_king_preview_then_confirm(self):
        rm = RoomManager()
        alice, bob = await play_ready(rm)
        game = alice.current_room.game
        put_on_draw_pile(game, "KC")
        mine, theirs = game.players[0].hand[0], game.players[1].hand[3]
        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)

        await dispatch({"type": "power:kingPreview", "my_index": 0, "opp_index": 3}, alice, room_manager=rm)

        preview = alice.websocket.messages_of_type("king_preview")[-1]
        assert preview["my_card"] == mine.to_dict()
        assert preview["opp_card"] == theirs.to_dict()
        assert bob.websocket.messages_of_type("king_preview") == []
        assert alice.websocket.last_state()["awaiting_confirm"] is True
        assert bob.websocket.last_state()["awaiting_confirm"] is False

        await dispatch({"type": "power:kingConfirm", "confirm": True, "request_id": "k"}, alice, room_manager=rm)

        ack = alice.websocket.last_ack()
        assert ack["ok"] is True
        assert ack["swapped"] is True
        assert ack["request_id"] == "k"
        assert game.players[0].hand[0] == theirs
        assert game.players[1].hand[3] == mine

    @pytest.mark.asyncio
    async def test_king_confirm_requires_bool(self):
        rm = RoomManager()
        alice, _ = await play_ready(rm)
        put_on_draw_pile(alice.current_room.game, "KS")
        await dispatch({"type": "turn:draw"}, alice, room_manager=rm)
        await dispatch({"type": "power:kingPreview", "my_index": 0, "opp_index": 0}, alice, room_manager=rm)

        await dispatch({"type": "power:kingConfirm", "confirm": "yes"}, alice, room_manager=rm)

        assert alice.websocket.last_ack()["category"] == "invalid_argument"
        assert alice.current_room.game.pending is not None


# =============================================================================
# Error handling
# =============================================================================

class TestDispatchErrors:

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        ctx = make_ctx()
        await dispatch({"type": "bogus", "request_id": "x"}, ctx, room_manager=RoomManager())
        ack = ctx.websocket.last_ack()
        assert ack == {
            "type": "ack",
            "action": "bogus",
            "request_id": "x",
            "ok": False,
            "error": "Unknown action: bogus",
            "category": "invalid_argument",
        }

    @pytest.mark.asyncio
    async def test_non_object_message(self):
        ctx = make_ctx()
        await dispatch(["room:create"], ctx, room_manager=RoomManager())
        ack = ctx.websocket.last_ack()
        assert ack["ok"] is False
        assert ack["error"] == "Unknown action: None"

    @pytest.mark.asyncio
    async def test_missing_field(self):
        ctx = make_ctx()
        await dispatch({"type": "room:join"}, ctx, room_manager=RoomManager())
        ack = ctx.websocket.last_ack()
        assert ack["error"].startswith("Invalid room_id")

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_generic(self, monkeypatch):
        rm = RoomManager()
        alice, _ = await seat_two(rm)

        async def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setitem(handlers.HANDLERS, StartGame, boom)
        await dispatch({"type": "game:start"}, alice, room_manager=rm)

        ack = alice.websocket.last_ack()
        assert ack["ok"] is False
        assert ack["error"] == "Internal server error"
        assert ack["category"] == "internal"
        assert "kaboom" not in str(ack)

        # The connection and room keep working
        monkeypatch.undo()
        await dispatch({"type": "game:start"}, alice, room_manager=rm)
        assert alice.websocket.last_ack()["ok"] is True
