import math
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from casino_core.exceptions import IllegalActionError, InvalidBetError
from casino_core.utils.money import ZERO, parse_bet_amount

# European Roulette: single zero, pockets in wheel order
EUROPEAN_WHEEL_ORDER = [
    0, 32, 15, 19, 4, 21, 2, 25, 17, 34, 6, 27, 13, 36, 11, 30, 8, 23, 10, 5,
    24, 16, 33, 1, 20, 14, 31, 9, 22, 18, 29, 7, 28, 12, 35, 3, 26,
]
ROULETTE_NUMBERS = list(range(37))

RED_NUMBERS = {1, 3, 5, 7, 9, 12, 14, 16, 18, 19, 21, 23, 25, 27, 30, 32, 34, 36}

# Payout odds (x:1)
BET_ODDS = {
    "straight": 35,     # Single number
    "split": 17,        # Two adjacent numbers
    "street": 11,       # Row of three numbers
    "corner": 8,        # Four numbers forming a square
    "line": 5,          # Two adjacent rows (six numbers)
    "column": 2,        # One of the three columns
    "dozen": 2,         # 1-12, 13-24, 25-36
    "red": 1,
    "black": 1,
    "odd": 1,
    "even": 1,
    "low": 1,           # 1-18
    "high": 1,          # 19-36
    "zero": 35,
}
OUTSIDE_BETS = ("red", "black", "odd", "even", "low", "high")

# currency -> (min bet, max bet, table limit)
TABLE_LIMITS = {
    'GC': (Decimal('5'), Decimal('5000'), Decimal('25000')),
    'SC': (Decimal('0.05'), Decimal('50'), Decimal('250')),
}


@dataclass
class RouletteBet:
    id: str
    type: str
    numbers: List[int]
    amount: Decimal
    odds: int
    payout: Decimal = ZERO
    description: str = ''


@dataclass
class RouletteResult:
    number: int
    color: str
    winning_bets: List[RouletteBet]
    total_win: Decimal
    ball_path: List[int]


@dataclass
class RouletteGameState:
    game_id: str
    user_id: str
    currency: str
    min_bet: Decimal
    max_bet: Decimal
    table_limit: Decimal
    wheel: list = field(default_factory=lambda: get_european_wheel())
    wheel_type: str = 'european'
    bets: List[RouletteBet] = field(default_factory=list)
    game_phase: str = 'betting'  # betting -> spinning -> finished
    result: Optional[RouletteResult] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_bet(self) -> Decimal:
        return sum((b.amount for b in self.bets), ZERO)


def get_number_color(number):
    if number == 0:
        return "green"
    return "red" if number in RED_NUMBERS else "black"


def get_european_wheel():
    return [
        {"number": number, "color": get_number_color(number), "position": position}
        for position, number in enumerate(EUROPEAN_WHEEL_ORDER)
    ]


def new_game_state(game_id, user_id, currency):
    if currency not in TABLE_LIMITS:
        raise InvalidBetError(status_message=f"Unsupported currency {currency}", details={'currency': currency})
    min_bet, max_bet, table_limit = TABLE_LIMITS[currency]
    return RouletteGameState(game_id=game_id, user_id=user_id, currency=currency,
                             min_bet=min_bet, max_bet=max_bet, table_limit=table_limit)


# --- Layout geometry ---

def _row(number):
    return (number - 1) // 3


def _is_split(a, b):
    if a == b:
        return False
    low, high = sorted((a, b))
    if low == 0:
        return high in (1, 2, 3)
    if high - low == 3:
        return True
    return high - low == 1 and _row(low) == _row(high)


def _is_street(numbers):
    first = numbers[0]
    return first % 3 == 1 and numbers == [first, first + 1, first + 2]


def _is_corner(numbers):
    first = numbers[0]
    return first % 3 != 0 and numbers == [first, first + 1, first + 3, first + 4]


def _is_line(numbers):
    first = numbers[0]
    return first % 3 == 1 and numbers == list(range(first, first + 6))


def normalize_bet_numbers(bet_type, numbers):
    """
    Validates the numbers a bet covers against the table layout and returns
    them sorted. Column and dozen bets name any number inside the group;
    outside bets ignore numbers.
    """
    if bet_type not in BET_ODDS:
        raise InvalidBetError(status_message=f"Unknown bet type '{bet_type}'", details={'bet_type': bet_type})

    if bet_type in OUTSIDE_BETS:
        return []
    if bet_type == "zero":
        if numbers and list(numbers) != [0]:
            raise InvalidBetError(status_message="Zero bet covers only 0")
        return [0]

    try:
        cleaned = sorted({int(n) for n in numbers or []})
    except (TypeError, ValueError):
        raise InvalidBetError(status_message="Bet numbers must be integers", details={'numbers': numbers})
    if any(n < 0 or n > 36 for n in cleaned):
        raise InvalidBetError(status_message="Bet numbers must be between 0 and 36", details={'numbers': cleaned})

    valid = False
    if bet_type == "straight":
        valid = len(cleaned) == 1
    elif bet_type == "split":
        valid = len(cleaned) == 2 and _is_split(*cleaned)
    elif bet_type == "street":
        valid = len(cleaned) == 3 and 0 not in cleaned and _is_street(cleaned)
    elif bet_type == "corner":
        valid = len(cleaned) == 4 and 0 not in cleaned and _is_corner(cleaned)
    elif bet_type == "line":
        valid = len(cleaned) == 6 and 0 not in cleaned and _is_line(cleaned)
    elif bet_type in ("column", "dozen"):
        valid = len(cleaned) == 1 and cleaned[0] != 0

    if not valid:
        raise InvalidBetError(status_message=f"Numbers {cleaned} do not form a valid {bet_type} bet",
                              details={'bet_type': bet_type, 'numbers': cleaned})
    return cleaned


def get_bet_description(bet_type, numbers):
    if bet_type == "straight":
        return f"Straight {numbers[0]}"
    if bet_type == "split":
        return "Split " + "/".join(str(n) for n in numbers)
    if bet_type in ("street", "corner", "line"):
        return f"{bet_type.capitalize()} " + ",".join(str(n) for n in numbers)
    if bet_type == "column":
        return f"Column {(numbers[0] - 1) % 3 + 1}"
    if bet_type == "dozen":
        return ("First Dozen", "Second Dozen", "Third Dozen")[math.ceil(numbers[0] / 12) - 1]
    return {
        "red": "Red", "black": "Black", "odd": "Odd", "even": "Even",
        "low": "1-18", "high": "19-36", "zero": "Zero",
    }.get(bet_type, "Unknown bet")


def validate_bet(state, bet_type, numbers, amount):
    """All checks that must pass before the stake is debited. Returns (numbers, amount)."""
    if state.game_phase != 'betting':
        raise IllegalActionError(status_message="Bets are closed", details={'phase': state.game_phase})
    amount = parse_bet_amount(amount)
    if amount < state.min_bet or amount > state.max_bet:
        raise InvalidBetError(
            status_message=f"Bet must be between {state.min_bet} and {state.max_bet} {state.currency}",
            details={'amount': str(amount)}
        )
    if state.total_bet + amount > state.table_limit:
        raise InvalidBetError(status_message="Table limit exceeded",
                              details={'table_limit': str(state.table_limit), 'total_bet': str(state.total_bet)})
    return normalize_bet_numbers(bet_type, numbers), amount


# --- Spin ---

def spin_wheel(rng=None):
    """Uniform draw over the 37 pockets."""
    return (rng or secrets.SystemRandom()).randrange(37)


def is_bet_winning(bet_type, numbers, winning_number):
    """Pure membership test for a bet against the winning pocket."""
    if bet_type in ("straight", "zero", "split", "street", "corner", "line"):
        return winning_number in numbers
    if winning_number == 0:
        return False
    if bet_type == "column":
        return winning_number % 3 == numbers[0] % 3
    if bet_type == "dozen":
        return math.ceil(numbers[0] / 12) == math.ceil(winning_number / 12)
    if bet_type == "red":
        return winning_number in RED_NUMBERS
    if bet_type == "black":
        return winning_number not in RED_NUMBERS
    if bet_type == "odd":
        return winning_number % 2 == 1
    if bet_type == "even":
        return winning_number % 2 == 0
    if bet_type == "low":
        return 1 <= winning_number <= 18
    if bet_type == "high":
        return 19 <= winning_number <= 36
    return False


def calculate_payout(amount, odds):
    """Total returned for a winning bet, stake included."""
    return amount + amount * odds


def generate_ball_path(final_number, rng=None):
    """15-24 pockets of travel followed by the five pockets leading into the winner."""
    rng = rng or secrets.SystemRandom()
    final_position = EUROPEAN_WHEEL_ORDER.index(final_number)
    position = rng.randrange(37)
    path = []
    for _ in range(15 + rng.randrange(10)):
        path.append(EUROPEAN_WHEEL_ORDER[position])
        position = (position + 1) % 37
    for i in range(5):
        path.append(EUROPEAN_WHEEL_ORDER[(final_position - 4 + i) % 37])
    return path


def resolve_spin(state, winning_number, rng=None):
    """Settles every bet against ``winning_number`` and finishes the state."""
    winning_bets = []
    total_win = ZERO
    for bet in state.bets:
        if is_bet_winning(bet.type, bet.numbers, winning_number):
            bet.payout = calculate_payout(bet.amount, bet.odds)
            winning_bets.append(bet)
            total_win += bet.payout
    state.result = RouletteResult(
        number=winning_number,
        color=get_number_color(winning_number),
        winning_bets=winning_bets,
        total_win=total_win,
        ball_path=generate_ball_path(winning_number, rng),
    )
    state.game_phase = 'finished'
    return state.result
