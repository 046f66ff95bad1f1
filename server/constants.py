"""
Card and table constants for Kabo.

This module is the single source of truth for card point values and the
power table. Rule thresholds that operators may tune live in config.py and
are re-exported here so game code has one import site.

Kabo Scoring:
    - Ace: 1 point
    - 2-10: Face value
    - Jack: 11, Queen: 12, King: 13
    - Red Kings (K of hearts, K of diamonds): -1 while held in a hand
"""

from config import config


# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

BASE_CARD_VALUES: dict[str, int] = {
    'A': 1,
    '2': 2,
    '3': 3,
    '4': 4,
    '5': 5,
    '6': 6,
    '7': 7,
    '8': 8,
    '9': 9,
    '10': 10,
    'J': 11,
    'Q': 12,
    'K': 13,
}

RED_KING_VALUE: int = -1
RED_KING_SUITS: frozenset[str] = frozenset({'H', 'D'})


# =============================================================================
# Table Constants
# =============================================================================

MAX_PLAYERS = 2
HAND_SIZE = config.rules.HAND_SIZE
INITIAL_PEEKS = config.rules.INITIAL_PEEKS
CABO_THRESHOLD = config.rules.CABO_THRESHOLD
LOG_WINDOW = config.rules.LOG_WINDOW
LOG_HISTORY = config.rules.LOG_HISTORY

ROOM_CODE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH
MAX_NAME_LENGTH = config.MAX_NAME_LENGTH

DRAW_SOURCE = "draw"
