"""
Game logic for Kabo (a.k.a. Cabo).

This module implements the core mechanics of the two-player Kabo card game:
card/deck management, player state, the round state machine, special powers,
scoring, and the per-viewer redacted state sent to clients.

Kabo Rules Summary:
    - Each player is dealt 4 face-down cards and may peek at 2 of them
    - On your turn: draw from the draw pile, then swap it into your hand,
      discard it, or (for 7-K) discard it to use its power
    - Call CABO at the start of your turn if your hand totals less than 10;
      your opponent gets one last turn, then hands are revealed
    - Lowest hand total wins

Round Flow:
    LOBBY -> PEEK -> TURN_DRAW <-> TURN_DECIDE -> LAST_TURN -> ENDED

Powers (only from the card just drawn):
    7, 8  peek one of your own cards
    9, 10 peek one of your opponent's cards
    J     skip your opponent's next turn
    Q     swap one of your cards with one of theirs, unseen
    K     look at both cards first, then confirm or cancel the swap
"""

import logging
import random
import secrets
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from constants import (
    BASE_CARD_VALUES,
    CABO_THRESHOLD,
    DRAW_SOURCE,
    HAND_SIZE,
    INITIAL_PEEKS,
    LOG_HISTORY,
    LOG_WINDOW,
    MAX_PLAYERS,
    RED_KING_SUITS,
    RED_KING_VALUE,
)
from errors import (
    InvalidArgumentError,
    InvalidPhaseError,
    NotFoundError,
    ResourceExhaustedError,
    RoomFullError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


class Suit(Enum):
    """Card suits for a standard deck."""

    SPADES = "S"
    HEARTS = "H"
    DIAMONDS = "D"
    CLUBS = "C"


class Rank(Enum):
    """
    Card ranks with their wire values.

    Base values: A=1, 2-10 face value, J=11, Q=12, K=13.
    """

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"


RANK_VALUES: dict[Rank, int] = {rank: BASE_CARD_VALUES[rank.value] for rank in Rank}


class PowerKind(str, Enum):
    """Special ability granted by a freshly drawn power card."""

    PEEK_OWN = "peek_own"
    PEEK_OPPONENT = "peek_opponent"
    SKIP = "skip"
    BLIND_SWAP = "blind_swap"
    SEEN_SWAP = "seen_swap"


POWER_RANKS: dict[Rank, PowerKind] = {
    Rank.SEVEN: PowerKind.PEEK_OWN,
    Rank.EIGHT: PowerKind.PEEK_OWN,
    Rank.NINE: PowerKind.PEEK_OPPONENT,
    Rank.TEN: PowerKind.PEEK_OPPONENT,
    Rank.JACK: PowerKind.SKIP,
    Rank.QUEEN: PowerKind.BLIND_SWAP,
    Rank.KING: PowerKind.SEEN_SWAP,
}

# Rejection message when the held card does not grant the requested power
_WRONG_POWER_MESSAGES: dict[PowerKind, str] = {
    PowerKind.PEEK_OWN: "Not 7/8",
    PowerKind.PEEK_OPPONENT: "Not 9/10",
    PowerKind.SKIP: "Not a Jack",
    PowerKind.BLIND_SWAP: "Not a Queen",
    PowerKind.SEEN_SWAP: "Not a King",
}


@dataclass(frozen=True)
class Card:
    """
    An immutable playing card.

    Attributes:
        rank: The card's rank (A, 2-10, J, Q, K).
        suit: The card's suit (S, H, D, C).
    """

    rank: Rank
    suit: Suit

    @classmethod
    def from_code(cls, code: str) -> "Card":
        """Build a card from its short code, e.g. "KD" or "10S"."""
        return cls(Rank(code[:-1]), Suit(code[-1]))

    def to_dict(self) -> dict:
        """
        Convert card to its reveal form for JSON serialization.

        Only ever sent for cards the recipient is entitled to see.
        """
        return {
            "rank": self.rank.value,
            "suit": self.suit.value,
            "base": base_value(self),
            "score": score_value(self),
        }

    def __str__(self) -> str:
        return f"{self.rank.value}{self.suit.value}"


def base_value(card: Card) -> int:
    """Face value of a card: A=1, number cards face value, J=11, Q=12, K=13."""
    return RANK_VALUES[card.rank]


def score_value(card: Card) -> int:
    """
    Value a card contributes to a hand total.

    Same as base_value, except the red Kings (K of hearts, K of diamonds)
    count -1 while held in a hand.
    """
    if card.rank == Rank.KING and card.suit.value in RED_KING_SUITS:
        return RED_KING_VALUE
    return base_value(card)


def is_power_card(card: Card) -> bool:
    """True for 7, 8, 9, 10, J, Q, K."""
    return card.rank in POWER_RANKS


def make_deck() -> list[Card]:
    """Build all 52 unique cards, suit-major."""
    return [Card(rank, suit) for suit in Suit for rank in Rank]


_system_random = secrets.SystemRandom()


def shuffle(cards: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Shuffle cards in place and return them.

    Uses the OS entropy source unless a generator is injected, so remote
    clients cannot predict deals. Tests pass a seeded random.Random.
    """
    (rng or _system_random).shuffle(cards)
    return cards


@dataclass
class Player:
    """
    A seated player.

    Attributes:
        id: Connection id of the player's websocket (routing only).
        name: Display name.
        peeks_remaining: Peeks left during the PEEK phase.
        hand: The player's 4 face-down cards.
    """

    id: str
    name: str
    peeks_remaining: int = INITIAL_PEEKS
    hand: list[Card] = field(default_factory=list)

    def hand_total(self) -> int:
        """Sum of score values over the hand (lower is better)."""
        return sum(score_value(card) for card in self.hand)

    def hand_to_dict(self, reveal: bool = False) -> list[Optional[dict]]:
        """Reveal every card, or emit one null placeholder per slot."""
        if reveal:
            return [card.to_dict() for card in self.hand]
        return [None for _ in self.hand]


class GamePhase(Enum):
    """
    Phases of a Kabo room.

    Flow: LOBBY -> PEEK -> TURN_DRAW -> TURN_DECIDE -> ... -> LAST_TURN -> ENDED
    """

    LOBBY = "LOBBY"              # Waiting for the second player / host start
    PEEK = "PEEK"                # Each player peeks at 2 of their cards
    TURN_DRAW = "TURN_DRAW"      # Current player draws or calls CABO
    TURN_DECIDE = "TURN_DECIDE"  # Current player resolves the drawn card
    LAST_TURN = "LAST_TURN"      # CABO called; opponent takes one final turn
    ENDED = "ENDED"              # Hands revealed and scored


class PendingKind(str, Enum):
    KING_CONFIRM = "KING_CONFIRM"


@dataclass
class PendingAction:
    """An in-flight two-step action. At most one exists per room."""

    kind: PendingKind
    player_id: str
    my_index: int
    opp_index: int


@dataclass
class RoundResult:
    """Final standings, lowest total first. Ties keep seat order."""

    scores: list[dict]
    winner_id: str
    winner_name: str

    def to_dict(self) -> dict:
        return {
            "scores": [dict(entry) for entry in self.scores],
            "winner_id": self.winner_id,
            "winner_name": self.winner_name,
        }


@dataclass
class Game:
    """
    Main game state and rule enforcement for one Kabo room.

    Every public action validates completely before touching state, so a
    raised GameError leaves the room exactly as it was.

    Attributes:
        room_code: Code of the owning room (for state payloads and logs).
        players: Seated players; index 0 is the host.
        draw_pile: Face-down pile, top is the last element.
        discard_pile: Face-up center pile, top is the last element.
        phase: Current phase.
        started: Whether a round has been dealt since the last lobby reset.
        turn_index: Index of the player whose turn it is.
        active_draw: Card held by the current player, not yet resolved.
        cabo_called_by: Player id that called CABO this round.
        last_turn_for: Player id granted the final turn.
        skip_next_for: Player id whose next turn is skipped (once).
        pending: In-flight King preview awaiting confirmation.
        log: Recent human-readable events.
        ended: Final result once the round is over.
        rng: Random source for shuffles (OS entropy unless injected).
    """

    room_code: str = ""
    players: list[Player] = field(default_factory=list)
    draw_pile: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    phase: GamePhase = GamePhase.LOBBY
    started: bool = False
    turn_index: int = 0
    active_draw: Optional[Card] = None
    cabo_called_by: Optional[str] = None
    last_turn_for: Optional[str] = None
    skip_next_for: Optional[str] = None
    pending: Optional[PendingAction] = None
    log: deque = field(default_factory=lambda: deque(maxlen=LOG_HISTORY))
    ended: Optional[RoundResult] = None
    rng: random.Random = field(default_factory=secrets.SystemRandom, repr=False, compare=False)

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player_id: str, name: str) -> Player:
        """
        Seat a player. The first seat is the host.

        Raises:
            RoomFullError: Both seats are taken.
            InvalidArgumentError: The player is already seated.
        """
        if len(self.players) >= MAX_PLAYERS:
            raise RoomFullError()
        if self.get_player(player_id):
            raise InvalidArgumentError("Already in room")

        player = Player(id=player_id, name=name)
        self.players.append(player)
        return player

    def remove_player(self, player_id: str) -> Optional[Player]:
        """
        Remove a player (disconnect or leave).

        If anyone remains the room drops back to the lobby with cleared
        piles and hands; the remaining player takes seat 0.
        """
        player = self.get_player(player_id)
        if player is None:
            return None

        self.players.remove(player)
        self.log_event(f"{player.name} disconnected.")
        if self.players:
            self.reset_to_lobby()
        return player

    def reset_to_lobby(self) -> None:
        """Abandon any round in progress and return to LOBBY."""
        self.started = False
        self.phase = GamePhase.LOBBY
        self.draw_pile = []
        self.discard_pile = []
        for player in self.players:
            player.hand = []
            player.peeks_remaining = INITIAL_PEEKS
        self.turn_index = 0
        self._clear_round_state()
        self.log_event("Back to lobby.")

    def get_player(self, player_id: str) -> Optional[Player]:
        """Find a player by id, or None if not seated."""
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def player_index(self, player_id: str) -> int:
        """Seat index of a player. Raises NotFoundError if not seated."""
        for idx, player in enumerate(self.players):
            if player.id == player_id:
                return idx
        raise NotFoundError("Not in room")

    def is_host(self, player_id: str) -> bool:
        return bool(self.players) and self.players[0].id == player_id

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it is (only meaningful once started)."""
        if self.started and 0 <= self.turn_index < len(self.players):
            return self.players[self.turn_index]
        return None

    def opponent_of(self, player_id: str) -> Player:
        idx = self.player_index(player_id)
        return self.players[(idx + 1) % len(self.players)]

    # -------------------------------------------------------------------------
    # Round Setup
    # -------------------------------------------------------------------------

    def start_game(self, player_id: str) -> None:
        """
        Deal a new round: shuffle, 4 cards each, rest to the draw pile.

        Allowed for the host only, with exactly two players seated, from the
        lobby or after a finished round.
        """
        idx = self.player_index(player_id)
        if idx != 0:
            raise UnauthorizedError("Only host can start")
        if len(self.players) != MAX_PLAYERS:
            raise InvalidPhaseError("Need 2 players")
        if self.phase not in (GamePhase.LOBBY, GamePhase.ENDED):
            raise InvalidPhaseError("Game already in progress")

        deck = shuffle(make_deck(), self.rng)
        for player in self.players:
            player.hand = [deck.pop() for _ in range(HAND_SIZE)]
            player.peeks_remaining = INITIAL_PEEKS

        self.draw_pile = deck
        self.discard_pile = []
        self.started = True
        self.turn_index = 0
        self.phase = GamePhase.PEEK
        self._clear_round_state()
        self.log.clear()
        self.log_event(f"Game started. Each player: peek {INITIAL_PEEKS} cards.")
        logger.info(f"Round dealt in room {self.room_code}")

    def peek(self, player_id: str, index: int) -> Card:
        """
        Spend one initial peek on one of your own cards.

        When every player has used all peeks, play begins with the host.

        Returns:
            The peeked card (to be revealed to this player only).
        """
        if self.phase != GamePhase.PEEK:
            raise InvalidPhaseError("Not in peek phase")
        player = self.players[self.player_index(player_id)]
        if player.peeks_remaining <= 0:
            raise ResourceExhaustedError("No peeks left")
        self._check_index(index)

        player.peeks_remaining -= 1
        self.log_event(f"{player.name} peeked.")

        if all(p.peeks_remaining == 0 for p in self.players):
            self.phase = GamePhase.TURN_DRAW
            self.log_event(f"Peeks done. {self.players[self.turn_index].name}'s turn.")

        return player.hand[index]

    # -------------------------------------------------------------------------
    # Turn Actions
    # -------------------------------------------------------------------------

    def draw_card(self, player_id: str, source: Optional[str] = None) -> Card:
        """
        Draw the top of the draw pile into the player's hand-held slot.

        The center pile is never a draw source; it is only recycled into the
        draw pile when the draw pile runs out.

        Returns:
            The drawn card (to be revealed to the drawing player only).
        """
        player = self._require_turn(
            player_id, (GamePhase.TURN_DRAW, GamePhase.LAST_TURN), "Not in draw phase",
        )
        if self.active_draw is not None:
            raise InvalidPhaseError("Already drew a card")
        self._require_no_pending()
        if source is not None and source != DRAW_SOURCE:
            raise InvalidArgumentError("Rule: draw pile only.")

        self._refill_draw_pile_if_needed()
        card = self.draw_pile.pop()

        self.active_draw = card
        self.phase = GamePhase.TURN_DECIDE
        self.log_event(f"{player.name} drew a card.")
        return card

    def _refill_draw_pile_if_needed(self) -> None:
        """Reshuffle the whole center pile into an empty draw pile."""
        if self.draw_pile:
            return
        if not self.discard_pile:
            raise ResourceExhaustedError("No cards left to draw")

        self.draw_pile = shuffle(self.discard_pile, self.rng)
        self.discard_pile = []
        self.log_event("Draw pile refilled from center pile (reshuffled).")
        logger.debug(f"Draw pile refilled with {len(self.draw_pile)} cards in room {self.room_code}")

    def swap_card(self, player_id: str, hand_index: int) -> Card:
        """
        Put the drawn card into the hand; the displaced card goes face up
        on the center pile. Ends the turn.

        Returns:
            The card that was replaced.
        """
        player = self._require_decide(player_id)
        self._check_index(hand_index)
        self._require_no_pending()

        old_card = player.hand[hand_index]
        player.hand[hand_index] = self.active_draw
        self.discard_pile.append(old_card)
        self.active_draw = None

        self.log_event(f"{player.name} swapped and placed a card in center.")
        self._advance_turn()
        return old_card

    def discard_drawn(self, player_id: str) -> Card:
        """Place the drawn card straight on the center pile. Ends the turn."""
        player = self._require_decide(player_id)
        self._require_no_pending()

        card = self.active_draw
        self.discard_pile.append(card)
        self.active_draw = None

        self.log_event(f"{player.name} placed drawn card in center ({card}).")
        self._advance_turn()
        return card

    def call_cabo(self, player_id: str) -> int:
        """
        Declare the end of the round before drawing.

        Requires a hand total strictly below CABO_THRESHOLD. The opponent
        takes the turn immediately as the last turn of the round.

        Returns:
            The caller's hand total.
        """
        player = self._require_turn(
            player_id, (GamePhase.TURN_DRAW,), "Call CABO at start of your turn",
        )
        total = player.hand_total()
        if total >= CABO_THRESHOLD:
            raise InvalidArgumentError(f"CABO not allowed (total must be < {CABO_THRESHOLD}).")

        opponent = self.opponent_of(player_id)
        self.cabo_called_by = player.id
        self.last_turn_for = opponent.id

        self.log_event(f"{player.name} called CABO! {opponent.name} gets last turn.")
        self.turn_index = self.player_index(opponent.id)
        self.phase = GamePhase.LAST_TURN
        self.active_draw = None
        self.pending = None
        return total

    # -------------------------------------------------------------------------
    # Powers (each consumes the drawn card onto the center pile)
    # -------------------------------------------------------------------------

    def peek_own(self, player_id: str, hand_index: int) -> Card:
        """7/8: look at one of your own cards."""
        player = self._require_power(player_id, PowerKind.PEEK_OWN)
        self._check_index(hand_index)

        card = player.hand[hand_index]
        self._consume_drawn()
        self.log_event(f"{player.name} used 7/8 to peek own.")
        self._advance_turn()
        return card

    def peek_opponent(self, player_id: str, opp_index: int) -> Card:
        """9/10: look at one of the opponent's cards."""
        player = self._require_power(player_id, PowerKind.PEEK_OPPONENT)
        self._check_index(opp_index)

        card = self.opponent_of(player_id).hand[opp_index]
        self._consume_drawn()
        self.log_event(f"{player.name} used 9/10 to peek opponent.")
        self._advance_turn()
        return card

    def jack_skip(self, player_id: str) -> Player:
        """J: the opponent loses their next turn. Returns the opponent."""
        player = self._require_power(player_id, PowerKind.SKIP)

        opponent = self.opponent_of(player_id)
        self.skip_next_for = opponent.id
        self._consume_drawn()
        self.log_event(f"{player.name} used Jack: {opponent.name} skipped.")
        self._advance_turn()
        return opponent

    def queen_swap(self, player_id: str, my_index: int, opp_index: int) -> None:
        """Q: exchange one of your cards with one of theirs, nobody sees either."""
        player = self._require_power(player_id, PowerKind.BLIND_SWAP)
        self._check_index(my_index)
        self._check_index(opp_index)

        self._exchange(player, my_index, self.opponent_of(player_id), opp_index)
        self._consume_drawn()
        self.log_event(f"{player.name} used Queen: unseen swap.")
        self._advance_turn()

    def king_preview(self, player_id: str, my_index: int, opp_index: int) -> tuple[Card, Card]:
        """
        K, step one: look at one of your cards and one of the opponent's.

        Opens a pending confirmation owned by this player. The turn does not
        end until king_confirm is called.

        Returns:
            (my_card, opp_card) to be revealed to this player only.
        """
        player = self._require_decide(player_id)
        if self.pending is not None:
            raise InvalidPhaseError("Already pending")
        self._require_power_rank(PowerKind.SEEN_SWAP)
        self._check_index(my_index)
        self._check_index(opp_index)

        self.pending = PendingAction(
            kind=PendingKind.KING_CONFIRM,
            player_id=player.id,
            my_index=my_index,
            opp_index=opp_index,
        )
        opponent = self.opponent_of(player_id)
        return player.hand[my_index], opponent.hand[opp_index]

    def king_confirm(self, player_id: str, confirm: bool) -> bool:
        """
        K, step two: perform the previewed swap or cancel it.

        Either way the King is discarded and the turn ends.

        Returns:
            Whether the swap was performed.
        """
        player = self._require_decide(player_id)
        pending = self.pending
        if pending is None or pending.kind != PendingKind.KING_CONFIRM:
            raise InvalidPhaseError("No pending king action")
        if pending.player_id != player_id:
            raise UnauthorizedError("Not your pending action")

        if confirm:
            self._exchange(player, pending.my_index, self.opponent_of(player_id), pending.opp_index)
            self.log_event(f"{player.name} used King: swap confirmed.")
        else:
            self.log_event(f"{player.name} used King: swap cancelled.")

        self._consume_drawn()
        self.pending = None
        self._advance_turn()
        return confirm

    # -------------------------------------------------------------------------
    # Validation Helpers
    # -------------------------------------------------------------------------

    def _require_turn(self, player_id: str, phases: tuple, phase_message: str) -> Player:
        """Player must be seated, the phase must match, and it must be their turn."""
        player = self.players[self.player_index(player_id)]
        if self.phase not in phases:
            raise InvalidPhaseError(phase_message)
        current = self.current_player()
        if current is None or current.id != player_id:
            raise UnauthorizedError("Not your turn")
        return player

    def _require_decide(self, player_id: str) -> Player:
        player = self._require_turn(player_id, (GamePhase.TURN_DECIDE,), "Not in decide phase")
        if self.active_draw is None:
            raise InvalidPhaseError("No drawn card")
        return player

    def _require_no_pending(self) -> None:
        if self.pending is not None:
            raise InvalidPhaseError("Resolve pending action first")

    def _require_power_rank(self, kind: PowerKind) -> None:
        if POWER_RANKS.get(self.active_draw.rank) != kind:
            raise InvalidArgumentError(_WRONG_POWER_MESSAGES[kind])

    def _require_power(self, player_id: str, kind: PowerKind) -> Player:
        player = self._require_decide(player_id)
        self._require_no_pending()
        self._require_power_rank(kind)
        return player

    @staticmethod
    def _check_index(index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < HAND_SIZE:
            raise InvalidArgumentError("Bad index")

    # -------------------------------------------------------------------------
    # Turn & Round Flow (Internal)
    # -------------------------------------------------------------------------

    @staticmethod
    def _exchange(me: Player, my_index: int, opponent: Player, opp_index: int) -> None:
        me.hand[my_index], opponent.hand[opp_index] = opponent.hand[opp_index], me.hand[my_index]

    def _consume_drawn(self) -> None:
        self.discard_pile.append(self.active_draw)
        self.active_draw = None

    def _advance_turn(self) -> None:
        """
        Pass the turn after a resolved action.

        Ends the round instead if the player who just acted held the last
        turn. A pending skip is applied once and then cleared.
        """
        current = self.current_player()
        if self.last_turn_for and current and current.id == self.last_turn_for:
            self._end_round()
            return

        self.turn_index = (self.turn_index + 1) % len(self.players)

        upcoming = self.players[self.turn_index]
        if self.skip_next_for and self.skip_next_for == upcoming.id:
            self.log_event(f"{upcoming.name} was skipped.")
            self.skip_next_for = None
            self.turn_index = (self.turn_index + 1) % len(self.players)

        self.phase = GamePhase.TURN_DRAW
        self.active_draw = None
        self.pending = None
        self.log_event(f"{self.players[self.turn_index].name}'s turn.")

    def _end_round(self) -> None:
        self.phase = GamePhase.ENDED
        self.active_draw = None
        self.pending = None
        self.ended = self.scores()
        self.log_event(f"Round ended. Winner: {self.ended.winner_name}")
        logger.info(f"Round ended in room {self.room_code}, winner {self.ended.winner_name}")

    def _clear_round_state(self) -> None:
        self.active_draw = None
        self.cabo_called_by = None
        self.last_turn_for = None
        self.skip_next_for = None
        self.pending = None
        self.ended = None

    def log_event(self, message: str) -> None:
        self.log.append(message)

    # -------------------------------------------------------------------------
    # Scoring & State Queries
    # -------------------------------------------------------------------------

    def scores(self) -> RoundResult:
        """
        Score every hand, lowest first.

        sorted() is stable, so on a tie the earlier seat wins.
        """
        entries = [
            {"player_id": p.id, "name": p.name, "score": p.hand_total()}
            for p in self.players
        ]
        entries.sort(key=lambda entry: entry["score"])
        return RoundResult(
            scores=entries,
            winner_id=entries[0]["player_id"],
            winner_name=entries[0]["name"],
        )

    def discard_top(self) -> Optional[Card]:
        """Get the top card of the center pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def card_count(self) -> int:
        """Cards on the table: piles, hands and the card in hand (52 once dealt)."""
        in_hands = sum(len(p.hand) for p in self.players)
        held = 1 if self.active_draw is not None else 0
        return len(self.draw_pile) + len(self.discard_pile) + in_hands + held

    def get_state(self, for_player_id: Optional[str]) -> dict:
        """
        Get the room state as seen by one player.

        Never includes: any hand card before ENDED (own hand included; the
        owner learns cards only through private reveals), the held drawn
        card, or peek results. At ENDED every hand is revealed for audit.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        reveal = self.phase == GamePhase.ENDED
        current = self.current_player()
        top = self.discard_top()

        players_data = []
        for idx, player in enumerate(self.players):
            players_data.append({
                "id": player.id,
                "name": player.name,
                "is_host": idx == 0,
                "is_me": player.id == for_player_id,
                "peeks_remaining": player.peeks_remaining,
                "hand": player.hand_to_dict(reveal=reveal),
            })

        return {
            "room_id": self.room_code,
            "started": self.started,
            "phase": self.phase.value,
            "players": players_data,
            "turn_player_id": current.id if current else None,
            "draw_count": len(self.draw_pile),
            "discard_count": len(self.discard_pile),
            "center_top": top.to_dict() if top else None,
            "has_drawn": self.active_draw is not None,
            "awaiting_confirm": (
                self.pending is not None and self.pending.player_id == for_player_id
            ),
            "cabo_called_by": self.cabo_called_by,
            "last_turn_for": self.last_turn_for,
            "skip_next_for": self.skip_next_for,
            "log": list(self.log)[-LOG_WINDOW:],
            "ended": self.ended.to_dict() if self.ended else None,
            "rules": {
                "cabo_threshold": CABO_THRESHOLD,
                "draw_source": "draw_pile",
                "hand_size": HAND_SIZE,
                "peeks": INITIAL_PEEKS,
            },
        }
