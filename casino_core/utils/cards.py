import secrets
from dataclasses import dataclass, field
from typing import List

from casino_core.exceptions import ShoeExhaustedError

# --- Card Constants ---
SUITS = ['hearts', 'diamonds', 'clubs', 'spades']
RANKS = ['A', '2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K']
FACE_RANKS = ('J', 'Q', 'K')

SUIT_GLYPHS = {'hearts': '♥', 'diamonds': '♦', 'clubs': '♣', 'spades': '♠'}
SUIT_LETTERS = {'H': 'hearts', 'D': 'diamonds', 'C': 'clubs', 'S': 'spades'}


def _blackjack_value(rank):
    """A -> 11, J/Q/K -> 10, pips -> face value."""
    if rank == 'A':
        return 11
    if rank in FACE_RANKS:
        return 10
    return int(rank)


@dataclass(frozen=True)
class PlayingCard:
    suit: str
    rank: str
    value: int = field(init=False)
    unicode: str = field(init=False)
    color: str = field(init=False)

    def __post_init__(self):
        if self.suit not in SUIT_GLYPHS:
            raise ValueError(f"Unknown suit '{self.suit}'")
        if self.rank not in RANKS:
            raise ValueError(f"Unknown rank '{self.rank}'")
        object.__setattr__(self, 'value', _blackjack_value(self.rank))
        object.__setattr__(self, 'unicode', f"{self.rank}{SUIT_GLYPHS[self.suit]}")
        object.__setattr__(self, 'color', 'red' if self.suit in ('hearts', 'diamonds') else 'black')

    @property
    def baccarat_value(self):
        if self.rank == 'A':
            return 1
        if self.rank == '10' or self.rank in FACE_RANKS:
            return 0
        return int(self.rank)

    def to_dict(self):
        return {'suit': self.suit, 'rank': self.rank, 'value': self.value,
                'unicode': self.unicode, 'color': self.color}

    def __str__(self):
        return self.unicode


def card_from_code(code):
    """
    Builds a card from a short code: rank followed by suit letter.
    Example: "AH" -> ace of hearts, "10S" / "TS" -> ten of spades.
    """
    code = code.strip().upper()
    rank, suit_letter = code[:-1], code[-1]
    if rank == 'T':
        rank = '10'
    if suit_letter not in SUIT_LETTERS:
        raise ValueError(f"Unknown suit letter in card code '{code}'")
    return PlayingCard(SUIT_LETTERS[suit_letter], rank)


def cards_from_codes(codes):
    return [card_from_code(code) for code in codes]


def create_standard_deck() -> List[PlayingCard]:
    """52 cards, suit-major order."""
    return [PlayingCard(suit, rank) for suit in SUITS for rank in RANKS]


def shuffle_deck(cards, rng=None):
    """Returns a shuffled copy using a cryptographically secure RNG unless one is injected."""
    shuffled = list(cards)
    (rng or secrets.SystemRandom()).shuffle(shuffled)
    return shuffled


class Shoe:
    """Ordered cards plus a dealing cursor. Never wraps around."""

    def __init__(self, cards, shuffled=False):
        self.cards = list(cards)
        self.position = 0
        self.shuffled = shuffled

    @property
    def remaining(self):
        return len(self.cards) - self.position

    def deal(self) -> PlayingCard:
        if self.position >= len(self.cards):
            raise ShoeExhaustedError(
                status_message="Shoe exhausted. Cannot deal card.",
                details={'cards': len(self.cards), 'position': self.position}
            )
        card = self.cards[self.position]
        self.position += 1
        return card

    def __len__(self):
        return len(self.cards)


def create_shoe(deck_count=6, rng=None) -> Shoe:
    if deck_count < 1:
        raise ValueError("A shoe needs at least one deck")
    cards = []
    for _ in range(deck_count):
        cards.extend(create_standard_deck())
    return Shoe(shuffle_deck(cards, rng), shuffled=True)


def stacked_shoe(codes) -> Shoe:
    """Unshuffled shoe dealing `codes` in order."""
    return Shoe(cards_from_codes(codes), shuffled=False)
