import logging
import secrets
import threading

from ..exceptions import IllegalActionError, NotFoundException
from ..schemas import RouletteGameStateSchema
from ..utils import roulette_helper as rl
from ..utils.game_logger import GameEventLogger
from ..utils.ids import generate_game_id
from ..utils.locking import KeyedLocks

logger = logging.getLogger(__name__)

GAME_CATEGORY = 'roulette'


class RouletteService:
    """European single-zero table. Each bet is debited as it is placed; a spin settles them all at once."""

    def __init__(self, wallet, sessions, records, rng=None):
        self.wallet = wallet
        self.sessions = sessions
        self.records = records
        self.rng = rng or secrets.SystemRandom()
        self._games = {}
        self._games_lock = threading.Lock()
        self._locks = KeyedLocks()

    def start_game(self, user_id, currency):
        state = rl.new_game_state(generate_game_id('roulette'), user_id, currency)
        with self._games_lock:
            self._games[state.game_id] = state
        logger.info("Roulette game %s started for user %s (%s)", state.game_id, user_id, currency)
        return state

    def get_game(self, game_id):
        with self._games_lock:
            state = self._games.get(game_id)
        if state is None:
            raise NotFoundException(status_message=f"Game {game_id} not found", details={'game_id': game_id})
        return state

    def place_bet(self, game_id, bet_type, numbers, amount):
        state = self.get_game(game_id)
        with self._locks.hold(game_id):
            numbers, amount = rl.validate_bet(state, bet_type, numbers, amount)
            self.wallet.place_bet(state.user_id, amount, state.currency, state.game_id, GAME_CATEGORY)
            bet = rl.RouletteBet(
                id=f"bet-{len(state.bets) + 1}",
                type=bet_type,
                numbers=numbers,
                amount=amount,
                odds=rl.BET_ODDS[bet_type],
                description=rl.get_bet_description(bet_type, numbers),
            )
            state.bets.append(bet)
            return bet

    def spin(self, game_id):
        state = self.get_game(game_id)
        with self._locks.hold(game_id):
            if state.game_phase != 'betting':
                raise IllegalActionError(status_message="Wheel already spun", details={'phase': state.game_phase})
            if not state.bets:
                raise IllegalActionError(status_message="Place at least one bet before spinning")

            state.game_phase = 'spinning'
            result = rl.resolve_spin(state, rl.spin_wheel(self.rng), self.rng)

            if result.total_win > 0:
                self.wallet.record_win(state.user_id, result.total_win, state.currency, state.game_id, GAME_CATEGORY)
            self.sessions.record_outcome(state.user_id, GAME_CATEGORY, GAME_CATEGORY, state.currency,
                                         state.total_bet, result.total_win)
            self.records.insert(state.game_id, GAME_CATEGORY, state.user_id, state.game_id,
                                RouletteGameStateSchema().dump(state))
            GameEventLogger.log_game_event('wheel_spun', state.user_id, GAME_CATEGORY, state.game_id,
                                           state.total_bet, result.total_win,
                                           {'number': result.number, 'color': result.color,
                                            'winning_bets': [b.id for b in result.winning_bets]})
            self._release(state)
            return result

    def _release(self, state):
        with self._games_lock:
            self._games.pop(state.game_id, None)
        self._locks.discard(state.game_id)
