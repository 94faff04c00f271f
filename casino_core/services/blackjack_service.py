"""
Blackjack table service.

Game states live in memory keyed by game id and every call on a state holds
that state's lock. Validation always runs before the wallet is touched; the
wallet is debited before cards are dealt and credited only after settlement.
A settled game is recorded and then released from memory.
"""
import logging
import secrets
import threading

from ..exceptions import InternalServerErrorException, NotFoundException
from ..schemas import BlackjackGameStateSchema, BlackjackRulesSchema
from ..utils import blackjack_helper as bj
from ..utils.game_logger import GameEventLogger
from ..utils.ids import generate_game_id
from ..utils.locking import KeyedLocks
from ..utils.money import to_decimal
from .session_service import GameDecision

logger = logging.getLogger(__name__)

GAME_CATEGORY = 'blackjack'


class BlackjackService:

    def __init__(self, wallet, sessions, records, rng=None, deck_count=bj.DEFAULT_DECKS):
        self.wallet = wallet
        self.sessions = sessions
        self.records = records
        self.rng = rng or secrets.SystemRandom()
        self.deck_count = deck_count
        self._games = {}
        self._games_lock = threading.Lock()
        self._locks = KeyedLocks()

    def _resolve_rules(self, rules):
        if rules is None:
            return bj.BlackjackRules()
        if isinstance(rules, bj.BlackjackRules):
            return rules
        return BlackjackRulesSchema().load(rules)

    def start_game(self, user_id, currency, rules=None, shoe=None):
        """Opens a table in the betting phase. ``rules`` may be a BlackjackRules or a camelCase dict."""
        state = bj.new_game_state(generate_game_id('blackjack'), user_id, currency,
                                  rules=self._resolve_rules(rules), deck_count=self.deck_count,
                                  rng=self.rng, shoe=shoe)
        with self._games_lock:
            self._games[state.game_id] = state
        logger.info("Blackjack game %s started for user %s (%s)", state.game_id, user_id, currency)
        return state

    def get_game(self, game_id):
        with self._games_lock:
            state = self._games.get(game_id)
        if state is None:
            raise NotFoundException(status_message=f"Game {game_id} not found", details={'game_id': game_id})
        return state

    def place_bet(self, game_id, bet_amount):
        state = self.get_game(game_id)
        with self._locks.hold(game_id):
            amount = bj.validate_bet(state, bet_amount)
            self.wallet.place_bet(state.user_id, amount, state.currency, state.game_id, GAME_CATEGORY)
            self.sessions.ensure_session(state.user_id, GAME_CATEGORY, GAME_CATEGORY, state.currency)
            if bj.deal_initial_cards(state, amount):
                self._finish(state)
            return state

    def player_action(self, game_id, action, insurance_amount=None):
        state = self.get_game(game_id)
        with self._locks.hold(game_id):
            hand = bj.validate_action(state, action, insurance_amount)
            decision = self._build_decision(state, hand, action)

            if action == 'insurance':
                self._take_insurance(state, insurance_amount)
                state.actions_taken += 1
                self.sessions.record_decision(state.user_id, GAME_CATEGORY, decision)
                if bj.close_insurance_window(state):
                    self._finish(state)
                return state

            # Any other first action declines insurance; a dealer natural ends the round here.
            if state.insurance_open and state.dealer_hand.is_blackjack:
                bj.close_insurance_window(state)
                self._finish(state)
                return state

            # The window stays open until the extra stake for a double or split is covered.
            if action in ('double', 'split'):
                self.wallet.place_bet(state.user_id, hand.bet, state.currency, state.game_id, GAME_CATEGORY)
            bj.close_insurance_window(state)

            if action == 'hit':
                bj.apply_hit(state, hand)
            elif action == 'stand':
                bj.apply_stand(state, hand)
            elif action == 'double':
                bj.apply_double(state, hand)
            elif action == 'split':
                bj.apply_split(state, hand)
            elif action == 'surrender':
                refund = bj.apply_surrender(state, hand)
                self.wallet.record_win(state.user_id, refund, state.currency, state.game_id, GAME_CATEGORY)

            state.actions_taken += 1
            self.sessions.record_decision(state.user_id, GAME_CATEGORY, decision)
            if state.game_phase == 'finished':
                self._finish(state)
            return state

    def _take_insurance(self, state, amount):
        amount = to_decimal(amount)
        self.wallet.place_bet(state.user_id, amount, state.currency, state.game_id, GAME_CATEGORY)
        payout = bj.apply_insurance(state, amount)
        if payout > 0:
            self.wallet.record_win(state.user_id, payout, state.currency, state.game_id, GAME_CATEGORY)

    def _build_decision(self, state, hand, action):
        # Captured before the action changes the hand.
        return GameDecision(
            hand=state.current_hand_index,
            situation=bj.describe_situation(hand, state.dealer_hand),
            decision=action,
            amount=hand.bet,
            optimal=bj.is_optimal_decision(hand, state.dealer_hand, action),
        )

    def _finish(self, state):
        if state.game_phase != 'finished':
            raise InternalServerErrorException(status_message="Round is not settled",
                                               details={'game_id': state.game_id})
        settlement = bj.settlement_total(state)
        if settlement > 0:
            self.wallet.record_win(state.user_id, settlement, state.currency, state.game_id, GAME_CATEGORY)

        self.sessions.record_outcome(state.user_id, GAME_CATEGORY, GAME_CATEGORY, state.currency,
                                     state.total_bet, state.total_win)
        self.records.insert(state.game_id, GAME_CATEGORY, state.user_id, state.game_id,
                            BlackjackGameStateSchema().dump(state))
        GameEventLogger.log_game_event('hand_settled', state.user_id, GAME_CATEGORY, state.game_id,
                                       state.total_bet, state.total_win,
                                       {'results': [h.result for h in state.player_hands],
                                        'dealer_value': state.dealer_hand.value})
        self._release(state)

    def _release(self, state):
        """Drops a settled game and its lock; the settled state lives on in the record store."""
        with self._games_lock:
            self._games.pop(state.game_id, None)
        self._locks.discard(state.game_id)
