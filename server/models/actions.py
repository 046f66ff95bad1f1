"""
Inbound websocket actions.

Every message a client may send is one of the models below, selected by its
"type" field. Anything else fails validation before it reaches a handler.

Wire format:
    {"type": "power:queenUnseenSwap", "request_id": "17", "my_index": 0, "opp_index": 1}
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, TypeAdapter


class Action(BaseModel):
    """Fields shared by every action."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    request_id: Optional[str] = None
    """Echoed back in the ack so clients can correlate responses."""


# --- Room lifecycle ---

class CreateRoom(Action):
    type: Literal["room:create"]
    name: Optional[str] = None


class JoinRoom(Action):
    type: Literal["room:join"]
    room_id: str
    name: Optional[str] = None


class LeaveRoom(Action):
    type: Literal["room:leave"]


class StartGame(Action):
    type: Literal["game:start"]


class Peek(Action):
    type: Literal["game:peek"]
    index: StrictInt


# --- Turn actions ---

class Draw(Action):
    # "turn:take" is the older name for the same action
    type: Literal["turn:draw", "turn:take"]
    source: Optional[str] = None


class Swap(Action):
    type: Literal["turn:swap"]
    hand_index: StrictInt


class DiscardDrawn(Action):
    type: Literal["turn:discardDrawn"]


class CallCabo(Action):
    type: Literal["turn:cabo"]


# --- Powers ---

class PeekOwn(Action):
    type: Literal["power:peekOwn"]
    hand_index: StrictInt


class PeekOpponent(Action):
    type: Literal["power:peekOpp"]
    opp_index: StrictInt


class JackSkip(Action):
    type: Literal["power:jackSkip"]


class QueenSwap(Action):
    type: Literal["power:queenUnseenSwap"]
    my_index: StrictInt
    opp_index: StrictInt


class KingPreview(Action):
    type: Literal["power:kingPreview"]
    my_index: StrictInt
    opp_index: StrictInt


class KingConfirm(Action):
    type: Literal["power:kingConfirm"]
    confirm: StrictBool


ClientAction = Annotated[
    Union[
        CreateRoom,
        JoinRoom,
        LeaveRoom,
        StartGame,
        Peek,
        Draw,
        Swap,
        DiscardDrawn,
        CallCabo,
        PeekOwn,
        PeekOpponent,
        JackSkip,
        QueenSwap,
        KingPreview,
        KingConfirm,
    ],
    Field(discriminator="type"),
]

ACTION_TYPES: tuple[type[Action], ...] = (
    CreateRoom,
    JoinRoom,
    LeaveRoom,
    StartGame,
    Peek,
    Draw,
    Swap,
    DiscardDrawn,
    CallCabo,
    PeekOwn,
    PeekOpponent,
    JackSkip,
    QueenSwap,
    KingPreview,
    KingConfirm,
)

_action_adapter: TypeAdapter = TypeAdapter(ClientAction)


def parse_action(data: dict) -> Action:
    """
    Validate a raw message into its action model.

    Raises:
        pydantic.ValidationError: Unknown type or bad payload.
    """
    return _action_adapter.validate_python(data)
