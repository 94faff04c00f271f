"""
Slot engine service.

Owns the order of side effects for a spin: validate, debit, contribute to the
progressive pools, resolve, credit, account, persist. Outcome logic itself
lives in ``utils.spin_handler``.
"""
import logging
import secrets

from ..exceptions import InvalidBetError
from ..schemas import SpinResultSchema
from ..utils.game_logger import GameEventLogger
from ..utils.ids import generate_spin_id
from ..utils.money import parse_bet_amount
from ..utils.spin_handler import DEFAULT_CASCADE_LIMIT, resolve_spin

logger = logging.getLogger(__name__)

GAME_CATEGORY = 'slots'


class SlotGameService:

    def __init__(self, registry, wallet, jackpot_store, sessions, records, rng=None,
                 cascade_limit=DEFAULT_CASCADE_LIMIT):
        self.registry = registry
        self.wallet = wallet
        self.jackpot_store = jackpot_store
        self.sessions = sessions
        self.records = records
        self.rng = rng or secrets.SystemRandom()
        self.cascade_limit = cascade_limit
        self._registered_pools = set()
        for config in registry.all():
            self.register_jackpots(config)

    def register_jackpots(self, config):
        """Seeds the shared store with every progressive pool a game declares."""
        for jackpot in config.jackpots:
            if jackpot.type == 'progressive' and jackpot.id not in self._registered_pools:
                self.jackpot_store.register(jackpot.id, jackpot.currency, jackpot.current_amount,
                                            jackpot.seed_amount, jackpot.contribution_rate)
                self._registered_pools.add(jackpot.id)

    def start_session(self, user_id, game_id, currency):
        config = self.registry.get(game_id)
        if currency not in config.min_bet:
            raise InvalidBetError(status_message=f"Unsupported currency {currency}", details={'currency': currency})
        return self.sessions.start_session(user_id, game_id, GAME_CATEGORY, currency)

    def end_session(self, session_id):
        session = self.sessions.end_session(session_id)
        if session is not None:
            self.records.insert(session.session_id, 'session', session.user_id, session.game_id,
                                self.sessions.dump(session))
        return session

    def validate_bet(self, config, bet_amount, currency):
        amount = parse_bet_amount(bet_amount)
        if currency not in config.min_bet or currency not in config.max_bet:
            raise InvalidBetError(status_message=f"Unsupported currency {currency}",
                                  details={'currency': currency, 'game_id': config.id})
        min_bet = config.min_bet[currency]
        max_bet = config.max_bet[currency]
        if amount < min_bet or amount > max_bet:
            raise InvalidBetError(
                status_message=f"Bet must be between {min_bet} and {max_bet} {currency}",
                details={'bet_amount': str(amount), 'min_bet': str(min_bet), 'max_bet': str(max_bet)}
            )
        return amount

    def contribute_to_jackpots(self, config, bet_amount, currency):
        for jackpot in config.jackpots:
            if jackpot.type != 'progressive' or jackpot.currency != currency:
                continue
            contribution = bet_amount * jackpot.contribution_rate
            if contribution > 0:
                self.jackpot_store.contribute(jackpot.id, contribution)

    def spin(self, user_id, game_id, bet_amount, currency, selected_paylines=None):
        config = self.registry.get(game_id)
        bet = self.validate_bet(config, bet_amount, currency)
        # Pools of games registered after construction must exist before the debit.
        self.register_jackpots(config)

        self.wallet.place_bet(user_id, bet, currency, game_id, GAME_CATEGORY)
        self.contribute_to_jackpots(config, bet, currency)

        result = resolve_spin(config, bet, self.rng, self.jackpot_store, selected_paylines, self.cascade_limit,
                              currency=currency)

        if result.total_win > 0:
            self.wallet.record_win(user_id, result.total_win, currency, game_id, GAME_CATEGORY)

        self.sessions.record_outcome(user_id, game_id, GAME_CATEGORY, currency, bet, result.total_win,
                                     feature_id=result.bonus_triggered,
                                     free_spins=result.free_spins_awarded)

        payload = SpinResultSchema().dump(result)
        payload.update({'user_id': user_id, 'currency': currency})
        spin_id = self.records.insert(generate_spin_id(user_id, game_id), 'spin', user_id, game_id, payload)

        GameEventLogger.log_game_event('spin', user_id, GAME_CATEGORY, game_id, bet, result.total_win,
                                       {'spin_id': spin_id, 'wins': len(result.wins),
                                        'bonus': result.bonus_triggered,
                                        'jackpot': result.jackpot_win.id if result.jackpot_win else None,
                                        'cascades': len(result.cascades)})
        return result

    def get_jackpot_status(self):
        return self.jackpot_store.snapshot()

    def get_game_statistics(self, game_id):
        self.registry.get(game_id)
        return self.sessions.get_statistics(game_id=game_id)
