"""Models package for the Kabo server."""

from .actions import (
    ACTION_TYPES,
    Action,
    CallCabo,
    ClientAction,
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

__all__ = [
    "ACTION_TYPES",
    "Action",
    "CallCabo",
    "ClientAction",
    "CreateRoom",
    "DiscardDrawn",
    "Draw",
    "JackSkip",
    "JoinRoom",
    "KingConfirm",
    "KingPreview",
    "LeaveRoom",
    "Peek",
    "PeekOpponent",
    "PeekOwn",
    "QueenSwap",
    "StartGame",
    "Swap",
    "parse_action",
]
