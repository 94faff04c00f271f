import logging
import secrets
import threading

from ..exceptions import IllegalActionError, NotFoundException
from ..schemas import BaccaratGameStateSchema
from ..utils import baccarat_helper as bc
from ..utils.game_logger import GameEventLogger
from ..utils.ids import generate_game_id
from ..utils.locking import KeyedLocks

logger = logging.getLogger(__name__)

GAME_CATEGORY = 'baccarat'


class BaccaratService:
    """Punto banco with player/banker/tie main bets and pair side bets."""

    def __init__(self, wallet, sessions, records, rng=None, deck_count=bc.DEFAULT_DECKS,
                 commission=bc.DEFAULT_COMMISSION, push_on_tie=False):
        self.wallet = wallet
        self.sessions = sessions
        self.records = records
        self.rng = rng or secrets.SystemRandom()
        self.deck_count = deck_count
        self.commission = commission
        self.push_on_tie = push_on_tie
        self._games = {}
        self._games_lock = threading.Lock()
        self._locks = KeyedLocks()

    def start_game(self, user_id, currency, shoe=None):
        state = bc.new_game_state(generate_game_id('baccarat'), user_id, currency,
                                  deck_count=self.deck_count, commission=self.commission,
                                  push_on_tie=self.push_on_tie, rng=self.rng, shoe=shoe)
        with self._games_lock:
            self._games[state.game_id] = state
        logger.info("Baccarat game %s started for user %s (%s)", state.game_id, user_id, currency)
        return state

    def get_game(self, game_id):
        with self._games_lock:
            state = self._games.get(game_id)
        if state is None:
            raise NotFoundException(status_message=f"Game {game_id} not found", details={'game_id': game_id})
        return state

    def place_bet(self, game_id, bet_type, amount):
        state = self.get_game(game_id)
        with self._locks.hold(game_id):
            amount = bc.validate_bet(state, bet_type, amount)
            self.wallet.place_bet(state.user_id, amount, state.currency, state.game_id, GAME_CATEGORY)
            bet = bc.BaccaratBet(id=f"bet-{len(state.bets) + 1}", type=bet_type, amount=amount,
                                 odds=bc.BET_ODDS[bet_type])
            state.bets.append(bet)
            return bet

    def deal(self, game_id):
        state = self.get_game(game_id)
        with self._locks.hold(game_id):
            if state.game_phase != 'betting':
                raise IllegalActionError(status_message="Coup already dealt", details={'phase': state.game_phase})
            if not state.bets:
                raise IllegalActionError(status_message="Place at least one bet before dealing")

            result = bc.resolve_coup(state)

            if result.total_win > 0:
                self.wallet.record_win(state.user_id, result.total_win, state.currency, state.game_id, GAME_CATEGORY)
            self.sessions.record_outcome(state.user_id, GAME_CATEGORY, GAME_CATEGORY, state.currency,
                                         state.total_bet, result.total_win)
            self.records.insert(state.game_id, GAME_CATEGORY, state.user_id, state.game_id,
                                BaccaratGameStateSchema().dump(state))
            GameEventLogger.log_game_event('coup_dealt', state.user_id, GAME_CATEGORY, state.game_id,
                                           state.total_bet, result.total_win,
                                           {'winner': result.winner, 'natural': result.natural_win,
                                            'player_value': result.player_value,
                                            'banker_value': result.banker_value,
                                            'commission': result.commission})
            self._release(state)
            return result

    def _release(self, state):
        with self._games_lock:
            self._games.pop(state.game_id, None)
        self._locks.discard(state.game_id)
