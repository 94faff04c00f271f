from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from casino_core.exceptions import IllegalActionError, InvalidBetError
from casino_core.utils.cards import create_shoe
from casino_core.utils.money import ZERO, parse_bet_amount, to_decimal

DEFAULT_DECKS = 8
DEFAULT_COMMISSION = Decimal("0.05")

TABLE_LIMITS = {
    'GC': (Decimal('50'), Decimal('25000')),
    'SC': (Decimal('0.5'), Decimal('250')),
}

# Payout odds (x:1). Banker commission is deducted separately.
BET_ODDS = {
    "player": 1,
    "banker": 1,
    "tie": 8,
    "player_pair": 11,
    "banker_pair": 11,
    "perfect_pair": 25,
}
MAIN_BETS = ("player", "banker")


@dataclass
class BaccaratBet:
    id: str
    type: str
    amount: Decimal
    odds: int
    payout: Decimal = ZERO
    commission: Decimal = ZERO
    result: str = 'pending'  # win, lose, push


@dataclass
class BaccaratResult:
    player_cards: list
    banker_cards: list
    player_value: int
    banker_value: int
    winner: str
    natural_win: bool
    total_win: Decimal
    commission: Decimal
    player_third_card: Optional[object] = None


@dataclass
class BaccaratGameState:
    game_id: str
    user_id: str
    currency: str
    shoe: object
    min_bet: Decimal
    max_bet: Decimal
    commission: Decimal = DEFAULT_COMMISSION
    push_on_tie: bool = False
    player_hand: list = field(default_factory=list)
    banker_hand: list = field(default_factory=list)
    bets: List[BaccaratBet] = field(default_factory=list)
    game_phase: str = 'betting'  # betting -> dealing -> drawing -> finished
    result: Optional[BaccaratResult] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_bet(self) -> Decimal:
        return sum((b.amount for b in self.bets), ZERO)


def new_game_state(game_id, user_id, currency, deck_count=DEFAULT_DECKS, commission=DEFAULT_COMMISSION,
                   push_on_tie=False, rng=None, shoe=None):
    if currency not in TABLE_LIMITS:
        raise InvalidBetError(status_message=f"Unsupported currency {currency}", details={'currency': currency})
    min_bet, max_bet = TABLE_LIMITS[currency]
    return BaccaratGameState(
        game_id=game_id,
        user_id=user_id,
        currency=currency,
        shoe=shoe if shoe is not None else create_shoe(deck_count, rng),
        min_bet=min_bet,
        max_bet=max_bet,
        commission=to_decimal(commission),
        push_on_tie=push_on_tie,
    )


def validate_bet(state, bet_type, amount):
    if state.game_phase != 'betting':
        raise IllegalActionError(status_message="Bets are closed", details={'phase': state.game_phase})
    if bet_type not in BET_ODDS:
        raise InvalidBetError(status_message=f"Unknown bet type '{bet_type}'", details={'bet_type': bet_type})
    amount = parse_bet_amount(amount)
    if amount < state.min_bet or amount > state.max_bet:
        raise InvalidBetError(
            status_message=f"Bet must be between {state.min_bet} and {state.max_bet} {state.currency}",
            details={'amount': str(amount)}
        )
    return amount


# --- Card Value Calculation ---

def calculate_baccarat_value(cards):
    """Sum of card values modulo 10 (A=1, 10/J/Q/K=0)."""
    return sum(card.baccarat_value for card in cards) % 10


def is_natural(value):
    return value in (8, 9)


def should_player_draw(player_value):
    return player_value <= 5


def should_banker_draw(banker_value, player_third_card=None):
    """
    Banker third-card rule. With no player third card the banker draws on 0-5.
    Otherwise: 0-2 always draw, 7+ never; 3 draws unless the player's third card
    is 8; 4 on 2-7; 5 on 4-7; 6 on 6-7.
    """
    if banker_value >= 7:
        return False
    if banker_value <= 2:
        return True
    if player_third_card is None:
        return banker_value <= 5

    third = player_third_card.baccarat_value
    if banker_value == 3:
        return third != 8
    if banker_value == 4:
        return 2 <= third <= 7
    if banker_value == 5:
        return 4 <= third <= 7
    if banker_value == 6:
        return third in (6, 7)
    return False


def is_pair(cards):
    return len(cards) >= 2 and cards[0].rank == cards[1].rank


def is_perfect_pair(player_cards, banker_cards):
    return is_pair(player_cards) and is_pair(banker_cards)


def determine_winner(player_value, banker_value):
    if player_value > banker_value:
        return "player"
    if banker_value > player_value:
        return "banker"
    return "tie"


def play_coup(state):
    """Deals P, B, P, B then applies the drawing rules. Returns (natural_win, player_third_card)."""
    shoe = state.shoe
    state.game_phase = 'dealing'
    state.player_hand.append(shoe.deal())
    state.banker_hand.append(shoe.deal())
    state.player_hand.append(shoe.deal())
    state.banker_hand.append(shoe.deal())

    player_value = calculate_baccarat_value(state.player_hand)
    banker_value = calculate_baccarat_value(state.banker_hand)
    natural = is_natural(player_value) or is_natural(banker_value)
    player_third_card = None

    if not natural:
        state.game_phase = 'drawing'
        if should_player_draw(player_value):
            player_third_card = shoe.deal()
            state.player_hand.append(player_third_card)
        if should_banker_draw(banker_value, player_third_card):
            state.banker_hand.append(shoe.deal())

    return natural, player_third_card


# --- Payout Calculation ---

def calculate_bet_payout(bet, winner, player_cards, banker_cards, commission_rate, push_on_tie=False):
    """
    Returns (payout, commission, result) for one bet. Payout includes the stake.
    Commission applies to this bet's winnings only.
    """
    amount = bet.amount
    if bet.type in MAIN_BETS:
        if winner == "tie" and push_on_tie:
            return amount, ZERO, 'push'
        if bet.type != winner:
            return ZERO, ZERO, 'lose'
        payout = amount + amount * bet.odds
        commission = ZERO
        if bet.type == "banker":
            commission = amount * commission_rate
            payout -= commission
        return payout, commission, 'win'

    won = (
        (bet.type == "tie" and winner == "tie")
        or (bet.type == "player_pair" and is_pair(player_cards))
        or (bet.type == "banker_pair" and is_pair(banker_cards))
        or (bet.type == "perfect_pair" and is_perfect_pair(player_cards, banker_cards))
    )
    if won:
        return amount + amount * bet.odds, ZERO, 'win'
    return ZERO, ZERO, 'lose'


def resolve_coup(state):
    """Deals the coup and settles every bet on the table."""
    natural, player_third_card = play_coup(state)
    player_value = calculate_baccarat_value(state.player_hand)
    banker_value = calculate_baccarat_value(state.banker_hand)
    winner = determine_winner(player_value, banker_value)

    total_win = ZERO
    total_commission = ZERO
    for bet in state.bets:
        bet.payout, bet.commission, bet.result = calculate_bet_payout(
            bet, winner, state.player_hand, state.banker_hand, state.commission, state.push_on_tie)
        total_win += bet.payout
        total_commission += bet.commission

    state.result = BaccaratResult(
        player_cards=list(state.player_hand),
        banker_cards=list(state.banker_hand),
        player_value=player_value,
        banker_value=banker_value,
        winner=winner,
        natural_win=natural,
        total_win=total_win,
        commission=total_commission,
        player_third_card=player_third_card,
    )
    state.game_phase = 'finished'
    return state.result
