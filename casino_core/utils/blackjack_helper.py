from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from casino_core.exceptions import IllegalActionError, InvalidBetError
from casino_core.utils.cards import create_shoe
from casino_core.utils.money import ZERO, parse_bet_amount, to_decimal

# --- Table Constants ---
TABLE_LIMITS = {
    'GC': (Decimal('25'), Decimal('10000')),
    'SC': (Decimal('0.25'), Decimal('100')),
}
DEFAULT_DECKS = 6

PHASES = ('betting', 'dealing', 'playing', 'dealer_play', 'finished')
ACTIONS = ('hit', 'stand', 'double', 'split', 'surrender', 'insurance')


@dataclass
class BlackjackRules:
    dealer_stands_on_soft17: bool = True
    blackjack_pays: Decimal = Decimal('1.5')  # 3:2
    double_after_split: bool = True
    resplit_aces: bool = False
    surrender_allowed: bool = True
    insurance_allowed: bool = True
    max_split_hands: int = 4
    double_on_any_two: bool = True


@dataclass
class BlackjackHand:
    cards: list = field(default_factory=list)
    bet: Decimal = ZERO
    value: int = 0
    soft_ace: bool = False
    is_blackjack: bool = False
    is_busted: bool = False
    is_stood: bool = False
    is_doubled: bool = False
    is_surrendered: bool = False
    is_split: bool = False
    can_split: bool = False
    can_double: bool = False
    can_insure: bool = False
    result: str = 'pending'  # win, lose, push, blackjack, surrender
    payout: Decimal = ZERO
    description: str = ''


@dataclass
class BlackjackGameState:
    game_id: str
    user_id: str
    currency: str
    shoe: object
    rules: BlackjackRules
    min_bet: Decimal
    max_bet: Decimal
    player_hands: List[BlackjackHand] = field(default_factory=list)
    dealer_hand: BlackjackHand = field(default_factory=BlackjackHand)
    current_hand_index: int = 0
    game_phase: str = 'betting'
    insurance: Decimal = ZERO
    insurance_payout: Decimal = ZERO
    insurance_open: bool = False
    surrender: bool = False
    surrender_refund: Decimal = ZERO
    total_bet: Decimal = ZERO
    total_win: Decimal = ZERO
    actions_taken: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def current_hand(self) -> Optional[BlackjackHand]:
        if 0 <= self.current_hand_index < len(self.player_hands):
            return self.player_hands[self.current_hand_index]
        return None

    @property
    def dealer_up_card(self):
        return self.dealer_hand.cards[0] if self.dealer_hand.cards else None


# --- Core Helper Functions ---

def calculate_hand_value(cards):
    """
    Value of a list of cards with aces counted as 11 until the hand would bust.
    Returns a tuple: (total_value, is_soft), where is_soft is True if an Ace is still counted as 11.
    """
    total = 0
    num_aces = 0
    for card in cards:
        if card.rank == 'A':
            num_aces += 1
        total += card.value

    while total > 21 and num_aces > 0:
        total -= 10
        num_aces -= 1

    return total, (num_aces > 0 and total <= 21)


def refresh_hand(hand):
    hand.value, hand.soft_ace = calculate_hand_value(hand.cards)
    hand.is_busted = hand.value > 21
    return hand


def is_natural(hand):
    """Two-card 21 on a hand that did not come from a split."""
    return len(hand.cards) == 2 and hand.value == 21 and not hand.is_split


def setup_player_options(hand, rules, hand_count):
    two_cards = len(hand.cards) == 2 and not hand.is_stood
    if not two_cards:
        hand.can_double = False
        hand.can_split = False
        return hand

    can_double = True
    if hand.is_split and not rules.double_after_split:
        can_double = False
    if not rules.double_on_any_two and (hand.soft_ace or hand.value not in (9, 10, 11)):
        can_double = False
    hand.can_double = can_double

    paired = hand.cards[0].rank == hand.cards[1].rank
    split_aces_locked = hand.is_split and hand.cards[0].rank == 'A' and not rules.resplit_aces
    hand.can_split = paired and hand_count < rules.max_split_hands and not split_aces_locked
    return hand


def new_game_state(game_id, user_id, currency, rules=None, deck_count=DEFAULT_DECKS, rng=None, shoe=None):
    if currency not in TABLE_LIMITS:
        raise InvalidBetError(status_message=f"Unsupported currency {currency}", details={'currency': currency})
    min_bet, max_bet = TABLE_LIMITS[currency]
    return BlackjackGameState(
        game_id=game_id,
        user_id=user_id,
        currency=currency,
        shoe=shoe if shoe is not None else create_shoe(deck_count, rng),
        rules=rules or BlackjackRules(),
        min_bet=min_bet,
        max_bet=max_bet,
    )


def validate_bet(state, bet_amount):
    if state.game_phase != 'betting':
        raise IllegalActionError(status_message=f"Bets are closed (phase: {state.game_phase})",
                                 details={'game_id': state.game_id, 'phase': state.game_phase})
    amount = parse_bet_amount(bet_amount)
    if amount < state.min_bet or amount > state.max_bet:
        raise InvalidBetError(
            status_message=f"Bet must be between {state.min_bet} and {state.max_bet} {state.currency}",
            details={'bet_amount': str(amount), 'min_bet': str(state.min_bet), 'max_bet': str(state.max_bet)}
        )
    return amount


def deal_initial_cards(state, bet_amount):
    """Player, player, dealer, dealer. Returns True if the round is already settled by a natural."""
    hand = BlackjackHand(bet=bet_amount)
    state.player_hands = [hand]
    state.total_bet = bet_amount
    state.game_phase = 'dealing'

    hand.cards.append(state.shoe.deal())
    hand.cards.append(state.shoe.deal())
    state.dealer_hand.cards.append(state.shoe.deal())
    state.dealer_hand.cards.append(state.shoe.deal())  # hole card

    refresh_hand(hand)
    refresh_hand(state.dealer_hand)
    hand.is_blackjack = is_natural(hand)
    state.dealer_hand.is_blackjack = is_natural(state.dealer_hand)

    if hand.is_blackjack:
        settle_round(state)
        return True

    if state.dealer_up_card.rank == 'A' and state.rules.insurance_allowed:
        hand.can_insure = True
        state.insurance_open = True
    elif state.dealer_hand.is_blackjack:
        # Dealer peeks on a ten up-card; no insurance window to wait for.
        settle_round(state)
        return True

    setup_player_options(hand, state.rules, 1)
    state.game_phase = 'playing'
    return False


def close_insurance_window(state):
    """Ends the insurance offer. Returns True if a dealer natural settled the round."""
    if not state.insurance_open:
        return False
    state.insurance_open = False
    for hand in state.player_hands:
        hand.can_insure = False
    if state.dealer_hand.is_blackjack:
        settle_round(state)
        return True
    return False


def validate_action(state, action, insurance_amount=None):
    """Raises before any wallet call or card deal if the action is not legal right now."""
    if action not in ACTIONS:
        raise IllegalActionError(status_message=f"Unknown action '{action}'", details={'action': action})
    if state.game_phase != 'playing':
        raise IllegalActionError(status_message="Invalid game state for player action",
                                 details={'game_id': state.game_id, 'phase': state.game_phase})
    hand = state.current_hand
    if hand is None or hand.is_stood:
        raise IllegalActionError(status_message="No active hand", details={'game_id': state.game_id})

    if action == 'double' and not hand.can_double:
        raise IllegalActionError(status_message="Cannot double this hand")
    if action == 'split':
        if not hand.can_split or len(state.player_hands) >= state.rules.max_split_hands:
            raise IllegalActionError(status_message="Cannot split this hand",
                                     details={'hands': len(state.player_hands),
                                              'max_split_hands': state.rules.max_split_hands})
    if action == 'surrender':
        if not state.rules.surrender_allowed or len(hand.cards) != 2 or hand.is_split:
            raise IllegalActionError(status_message="Cannot surrender this hand")
    if action == 'insurance':
        if not state.insurance_open or not hand.can_insure:
            raise IllegalActionError(status_message="Insurance is not offered")
        if insurance_amount is None:
            raise InvalidBetError(status_message="Insurance amount is required")
        amount = parse_bet_amount(insurance_amount)
        cap = state.player_hands[0].bet / 2
        if amount <= 0 or amount > cap:
            raise InvalidBetError(status_message="Insurance cannot exceed half the original bet",
                                  details={'insurance_amount': str(amount), 'max_insurance': str(cap)})
    return hand


def advance_to_next_hand(state):
    """Moves to the next unfinished hand, or plays the dealer once every hand is done."""
    index = state.current_hand_index + 1
    while index < len(state.player_hands) and state.player_hands[index].is_stood:
        index += 1
    state.current_hand_index = index
    if index >= len(state.player_hands):
        play_dealer_hand(state)
    else:
        setup_player_options(state.player_hands[index], state.rules, len(state.player_hands))


def apply_hit(state, hand):
    hand.cards.append(state.shoe.deal())
    refresh_hand(hand)
    hand.can_double = False
    hand.can_split = False
    if hand.is_busted:
        hand.is_stood = True
        advance_to_next_hand(state)


def apply_stand(state, hand):
    hand.is_stood = True
    advance_to_next_hand(state)


def apply_double(state, hand):
    """Caller has already debited the extra stake."""
    state.total_bet += hand.bet
    hand.bet *= 2
    hand.is_doubled = True
    hand.cards.append(state.shoe.deal())
    refresh_hand(hand)
    hand.is_stood = True
    advance_to_next_hand(state)


def apply_split(state, hand):
    """Caller has already debited the stake for the new hand."""
    state.total_bet += hand.bet
    moved = hand.cards.pop()
    new_hand = BlackjackHand(cards=[moved], bet=hand.bet, is_split=True)
    hand.is_split = True

    hand.cards.append(state.shoe.deal())
    new_hand.cards.append(state.shoe.deal())
    refresh_hand(hand)
    refresh_hand(new_hand)

    state.player_hands.insert(state.current_hand_index + 1, new_hand)

    if hand.cards[0].rank == 'A' and not state.rules.resplit_aces:
        # Split aces get one card each and no further action.
        for h in (hand, new_hand):
            h.is_stood = True
            h.can_double = False
            h.can_split = False
        advance_to_next_hand(state)
    else:
        setup_player_options(hand, state.rules, len(state.player_hands))
    return new_hand


def apply_surrender(state, hand):
    """Returns the refund the caller must credit (half the stake)."""
    refund = hand.bet / 2
    hand.is_surrendered = True
    hand.is_stood = True
    state.surrender = True
    state.surrender_refund = refund
    state.total_win += refund
    advance_to_next_hand(state)
    return refund


def apply_insurance(state, amount):
    """Returns the insurance payout the caller must credit (0 unless the dealer has 21)."""
    amount = to_decimal(amount)
    state.insurance = amount
    state.total_bet += amount
    dealer_value, _ = calculate_hand_value(state.dealer_hand.cards)
    payout = amount * 3 if dealer_value == 21 else ZERO
    state.insurance_payout = payout
    state.total_win += payout
    return payout


# --- Dealer ---

def should_dealer_hit(dealer_hand, rules):
    if dealer_hand.value < 17:
        return True
    if dealer_hand.value == 17 and dealer_hand.soft_ace and not rules.dealer_stands_on_soft17:
        return True
    return False


def play_dealer_hand(state):
    state.game_phase = 'dealer_play'
    dealer = refresh_hand(state.dealer_hand)

    playable = [h for h in state.player_hands if not h.is_busted and not h.is_surrendered]
    if playable:
        while should_dealer_hit(dealer, state.rules):
            dealer.cards.append(state.shoe.deal())
            refresh_hand(dealer)
    dealer.is_stood = True
    settle_round(state)


# --- Settlement ---

def determine_hand_result(hand, dealer_hand, rules):
    """
    Returns (result, payout, description). Payout is the total amount returned
    to the player for this hand, stake included.
    """
    if hand.is_surrendered:
        return 'surrender', ZERO, "Player surrendered"
    if hand.is_busted:
        return 'lose', ZERO, "Player busted"
    if hand.is_blackjack:
        if dealer_hand.is_blackjack:
            return 'push', hand.bet, "Both blackjack - push"
        return 'blackjack', hand.bet + hand.bet * to_decimal(rules.blackjack_pays), "Player blackjack"
    if dealer_hand.is_blackjack:
        return 'lose', ZERO, "Dealer blackjack"
    if dealer_hand.is_busted:
        return 'win', hand.bet * 2, "Dealer busted"
    if hand.value > dealer_hand.value:
        return 'win', hand.bet * 2, "Player wins"
    if hand.value < dealer_hand.value:
        return 'lose', ZERO, "Dealer wins"
    return 'push', hand.bet, "Push"


def settle_round(state):
    """Fills in each hand's result and payout; returns the settlement total to credit."""
    refresh_hand(state.dealer_hand)
    state.insurance_open = False
    settled = ZERO
    for hand in state.player_hands:
        hand.result, hand.payout, hand.description = determine_hand_result(hand, state.dealer_hand, state.rules)
        hand.is_stood = True
        hand.can_double = hand.can_split = hand.can_insure = False
        settled += hand.payout
    state.total_win += settled
    state.game_phase = 'finished'
    return settled


def settlement_total(state):
    return sum((h.payout for h in state.player_hands), ZERO)


# --- Decision analysis ---

def describe_situation(hand, dealer_hand):
    up = dealer_hand.cards[0].rank
    if hand.soft_ace:
        return f"Soft {hand.value} vs {up}"
    if len(hand.cards) == 2 and hand.cards[0].rank == hand.cards[1].rank:
        return f"Pair of {hand.cards[0].rank}s vs {up}"
    return f"Hard {hand.value} vs {up}"


def is_optimal_decision(hand, dealer_hand, action):
    """Simplified basic strategy; anything other than hit/stand/double counts as not optimal."""
    up_value = dealer_hand.cards[0].value
    value = hand.value
    if action == 'hit':
        return value <= 16 and up_value >= 7
    if action == 'stand':
        return value >= 17 or (value >= 12 and up_value <= 6)
    if action == 'double':
        return len(hand.cards) == 2 and (
            value == 11
            or (value == 10 and up_value <= 9)
            or (value == 9 and 3 <= up_value <= 6)
        )
    return False
