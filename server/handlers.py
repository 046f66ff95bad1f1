"""WebSocket action handlers for the Kabo card game.

Each handler corresponds to a single action model from models.actions.
dispatch() parses the raw message, runs the handler and always answers the
caller with an ack; handlers only raise, they never send error messages
themselves.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, get_args

from fastapi import WebSocket
from pydantic import ValidationError

from errors import GameError, InvalidArgumentError, InvalidPhaseError, NotFoundError
from game import POWER_RANKS, is_power_card
from logging_config import player_id_var, room_code_var
from models.actions import (
    ACTION_TYPES,
    Action,
    CallCabo,
    CreateRoom,
    DiscardDrawn,
    Draw,
    JackSkip,
    JoinRoom,
    KingConfirm,
    KingPreview,
    LeaveRoom,
    Peek,
    PeekOpponent,
    PeekOwn,
    QueenSwap,
    StartGame,
    Swap,
    parse_action,
)
from room import Room, RoomManager

logger = logging.getLogger(__name__)

ACTION_NAMES: frozenset[str] = frozenset(
    name for model in ACTION_TYPES for name in get_args(model.model_fields["type"].annotation)
)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    player_id: str
    current_room: Optional[Room] = None


def require_room(ctx: ConnectionContext) -> Room:
    if ctx.current_room is None:
        raise NotFoundError("Not in a room")
    return ctx.current_room


async def handle_player_leave(room: Room, player_id: str, *, room_manager: RoomManager) -> None:
    """
    Remove a player after a disconnect or explicit leave.

    The last player out deletes the room; otherwise the room falls back to
    the lobby and the remaining player is told.
    """
    async with room.game_lock:
        room_player = room.remove_player(player_id)

        if room.is_empty():
            room_manager.remove_room(room.code)
            return

        if room_player:
            logger.info(f"{room_player.name} left room {room.code}, back to lobby")
            await room.broadcast({
                "type": "player_left",
                "player_id": player_id,
                "player_name": room_player.name,
            })
            await room.broadcast_state()


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(action: CreateRoom, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> dict:
    if ctx.current_room:
        raise InvalidPhaseError("Already in a room")

    room = room_manager.create_room()
    async with room.game_lock:
        room.add_player(ctx.player_id, action.name, ctx.websocket)
        ctx.current_room = room
        await room.broadcast_state()

    return {"room_id": room.code, "player_id": ctx.player_id}


async def handle_join_room(action: JoinRoom, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> dict:
    if ctx.current_room:
        raise InvalidPhaseError("Already in a room")

    room = room_manager.require_room(action.room_id)
    async with room.game_lock:
        room_player = room.add_player(ctx.player_id, action.name, ctx.websocket)
        ctx.current_room = room
        logger.info(f"{room_player.name} joined room {room.code}")
        await room.broadcast_state()

    return {"room_id": room.code, "player_id": ctx.player_id}


async def handle_leave_room(action: LeaveRoom, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    room = require_room(ctx)
    await handle_player_leave(room, ctx.player_id, room_manager=room_manager)
    ctx.current_room = None


# ---------------------------------------------------------------------------
# Game lifecycle handlers
# ---------------------------------------------------------------------------

async def handle_start_game(action: StartGame, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        room.game.start_game(ctx.player_id)
        logger.info(f"Game started in room {room.code}")
        await room.broadcast_state()


async def handle_peek(action: Peek, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        card = room.game.peek(ctx.player_id, action.index)
        player = room.game.get_player(ctx.player_id)

        await room.send_to(ctx.player_id, {
            "type": "peek_result",
            "index": action.index,
            "card": card.to_dict(),
            "peeks_remaining": player.peeks_remaining,
        })
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def handle_draw(action: Draw, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        card = room.game.draw_card(ctx.player_id, action.source)

        power = POWER_RANKS.get(card.rank)
        await room.send_to(ctx.player_id, {
            "type": "card_drawn",
            "card": card.to_dict(),
            "power": is_power_card(card),
            "power_kind": power.value if power else None,
        })
        await room.broadcast_state()


async def handle_swap(action: Swap, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        room.game.swap_card(ctx.player_id, action.hand_index)
        await room.broadcast_state()


async def handle_discard_drawn(action: DiscardDrawn, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        room.game.discard_drawn(ctx.player_id)
        await room.broadcast_state()


async def handle_call_cabo(action: CallCabo, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        total = room.game.call_cabo(ctx.player_id)
        logger.info(f"CABO called in room {room.code} with total {total}")
        await room.broadcast_state()


# ---------------------------------------------------------------------------
# Power handlers
# ---------------------------------------------------------------------------

async def handle_peek_own(action: PeekOwn, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        card = room.game.peek_own(ctx.player_id, action.hand_index)
        await room.send_to(ctx.player_id, {
            "type": "power_reveal",
            "kind": "own",
            "index": action.hand_index,
            "card": card.to_dict(),
        })
        await room.broadcast_state()


async def handle_peek_opponent(action: PeekOpponent, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        card = room.game.peek_opponent(ctx.player_id, action.opp_index)
        await room.send_to(ctx.player_id, {
            "type": "power_reveal",
            "kind": "opp",
            "index": action.opp_index,
            "card": card.to_dict(),
        })
        await room.broadcast_state()


async def handle_jack_skip(action: JackSkip, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        room.game.jack_skip(ctx.player_id)
        await room.broadcast_state()


async def handle_queen_swap(action: QueenSwap, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        room.game.queen_swap(ctx.player_id, action.my_index, action.opp_index)
        await room.broadcast_state()


async def handle_king_preview(action: KingPreview, ctx: ConnectionContext, **kw) -> None:
    room = require_room(ctx)
    async with room.game_lock:
        my_card, opp_card = room.game.king_preview(ctx.player_id, action.my_index, action.opp_index)
        await room.send_to(ctx.player_id, {
            "type": "king_preview",
            "my_index": action.my_index,
            "opp_index": action.opp_index,
            "my_card": my_card.to_dict(),
            "opp_card": opp_card.to_dict(),
        })
        await room.broadcast_state()


async def handle_king_confirm(action: KingConfirm, ctx: ConnectionContext, **kw) -> dict:
    room = require_room(ctx)
    async with room.game_lock:
        swapped = room.game.king_confirm(ctx.player_id, action.confirm)
        await room.broadcast_state()
    return {"swapped": swapped}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

Handler = Callable[..., Awaitable[Optional[dict]]]

HANDLERS: dict[type[Action], Handler] = {
    CreateRoom: handle_create_room,
    JoinRoom: handle_join_room,
    LeaveRoom: handle_leave_room,
    StartGame: handle_start_game,
    Peek: handle_peek,
    Draw: handle_draw,
    Swap: handle_swap,
    DiscardDrawn: handle_discard_drawn,
    CallCabo: handle_call_cabo,
    PeekOwn: handle_peek_own,
    PeekOpponent: handle_peek_opponent,
    JackSkip: handle_jack_skip,
    QueenSwap: handle_queen_swap,
    KingPreview: handle_king_preview,
    KingConfirm: handle_king_confirm,
}


def _validation_message(action_type, error: ValidationError) -> str:
    if not isinstance(action_type, str) or action_type not in ACTION_NAMES:
        return f"Unknown action: {action_type}"
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"][1:]) or "payload"
    return f"Invalid {location}: {first['msg']}"


async def dispatch(data, ctx: ConnectionContext, **deps) -> None:
    """
    Run one inbound message to completion and acknowledge it.

    GameErrors become {"ok": false, "error": ...}; anything unexpected is
    logged and reported generically so the connection and room survive.
    """
    raw = data if isinstance(data, dict) else {}
    action_type = raw.get("type")
    request_id = raw.get("request_id")

    room_token = room_code_var.set(ctx.current_room.code if ctx.current_room else None)
    player_token = player_id_var.set(ctx.player_id)
    ack = {"type": "ack", "action": action_type, "request_id": request_id}
    try:
        try:
            action = parse_action(data)
        except ValidationError as e:
            raise InvalidArgumentError(_validation_message(action_type, e))

        result = await HANDLERS[type(action)](action, ctx, **deps)
        ack.update(result or {})
        ack["ok"] = True
    except GameError as e:
        logger.debug(f"Rejected: {e.message}", extra={"action": action_type})
        ack.update(ok=False, error=e.message, category=e.category)
    except Exception:
        logger.exception("Unhandled error in action handler", extra={"action": action_type})
        ack.update(ok=False, error="Internal server error", category="internal")
    finally:
        room_code_var.reset(room_token)
        player_id_var.reset(player_token)

    await ctx.websocket.send_json(ack)
