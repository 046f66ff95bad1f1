"""
Room management for two-player Kabo games.

This module handles room creation, seating, and WebSocket delivery for
game sessions.

A Room contains:
    - A short shareable code for joining (e.g. "K3Z9Q")
    - Up to two RoomPlayers with their WebSocket connections
    - A Game instance holding all hidden state
    - A lock that serializes every action against the room
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from typing import Optional

from fastapi import WebSocket

from constants import MAX_NAME_LENGTH, ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH
from errors import ResourceExhaustedError, RoomNotFoundError
from game import Game
from logging_config import get_logger

logger = get_logger(__name__)


def clean_name(name: Optional[str], seat: int) -> str:
    """Trim and truncate a display name, defaulting to "Player N"."""
    name = (name or "").strip()[:MAX_NAME_LENGTH]
    return name or f"Player {seat + 1}"


@dataclass
class RoomPlayer:
    """
    A connection seated in a room.

    This is separate from game.Player - RoomPlayer tracks where to send
    messages, while game.Player tracks the hand and peeks.

    Attributes:
        id: Connection id (also the game.Player id).
        name: Display name.
        websocket: WebSocket connection, used for routing only.
    """

    id: str
    name: str
    websocket: Optional[WebSocket] = None


@dataclass
class Room:
    """
    A two-seat game room.

    Attributes:
        code: Room code for joining.
        players: Dict mapping player IDs to RoomPlayer objects.
        game: The Game instance containing actual game state.
        game_lock: asyncio.Lock serializing validate -> mutate -> broadcast.
    """

    code: str
    players: dict[str, RoomPlayer] = field(default_factory=dict)
    game: Game = field(default_factory=Game)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        self.game.room_code = self.code

    def add_player(
        self,
        player_id: str,
        name: Optional[str],
        websocket: Optional[WebSocket] = None,
    ) -> RoomPlayer:
        """
        Seat a player. The first player becomes the host.

        Raises:
            RoomFullError: Both seats are taken.
        """
        display_name = clean_name(name, len(self.game.players))
        self.game.add_player(player_id, display_name)

        room_player = RoomPlayer(id=player_id, name=display_name, websocket=websocket)
        self.players[player_id] = room_player

        if len(self.players) == 1:
            self.game.log_event(f"{display_name} created room {self.code}.")
        else:
            self.game.log_event(f"{display_name} joined.")
        return room_player

    def remove_player(self, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player; any round in progress is abandoned.

        Returns:
            The removed RoomPlayer, or None if not found.
        """
        if player_id not in self.players:
            return None

        room_player = self.players.pop(player_id)
        self.game.remove_player(player_id)
        return room_player

    def is_empty(self) -> bool:
        """Check if the room has no players."""
        return len(self.players) == 0

    async def broadcast(self, message: dict) -> None:
        """
        Send the same message to every seated player.

        Never use this for game state; state is per-viewer, see
        broadcast_state.
        """
        for player_id in list(self.players):
            await self.send_to(player_id, message)

    async def broadcast_state(self) -> None:
        """Send each seated player their own redacted view of the game."""
        for player_id in list(self.players):
            await self.send_to(player_id, {
                "type": "room_state",
                "state": self.game.get_state(player_id),
            })

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific player.

        Delivery failures are logged and dropped; the disconnect path cleans
        the player up.
        """
        player = self.players.get(player_id)
        if player and player.websocket:
            try:
                await player.websocket.send_json(message)
            except Exception as e:
                logger.with_context(room_code=self.code, player_id=player_id).debug(f"Send failed: {e}")


class RoomManager:
    """
    Registry of active rooms keyed by code.

    Instantiated once by the server and injected into handlers; tests build
    their own.
    """

    def __init__(self, code_length: int = ROOM_CODE_LENGTH) -> None:
        self.rooms: dict[str, Room] = {}
        self.code_length = code_length

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate an unused room code."""
        for _ in range(max_attempts):
            code = "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(self.code_length))
            if code not in self.rooms:
                return code
        raise ResourceExhaustedError("Could not generate unique room code")

    def create_room(self) -> Room:
        """
        Create a new empty room with a unique code.

        Returns:
            The newly created Room.
        """
        code = self._generate_code()
        room = Room(code=code)
        self.rooms[code] = room
        logger.with_context(room_code=code).info(f"Room created ({len(self.rooms)} active)")
        return room

    def get_room(self, code: Optional[str]) -> Optional[Room]:
        """Get a room by its code (case-insensitive), or None."""
        if not code:
            return None
        return self.rooms.get(code.strip().upper())

    def require_room(self, code: Optional[str]) -> Room:
        """Get a room by its code or raise RoomNotFoundError."""
        room = self.get_room(code)
        if room is None:
            raise RoomNotFoundError()
        return room

    def remove_room(self, code: str) -> None:
        """Delete a room (no-op if unknown)."""
        if code in self.rooms:
            del self.rooms[code]
            logger.with_context(room_code=code).info(f"Room removed ({len(self.rooms)} active)")
