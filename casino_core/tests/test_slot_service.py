import unittest
from decimal import Decimal
from unittest.mock import patch

from casino_core.exceptions import GameNotFoundError, InsufficientFundsError, InvalidBetError
from casino_core.services.jackpot_service import InMemoryJackpotStore
from casino_core.services.record_store import InMemoryRecordStore
from casino_core.services.session_service import SessionTracker
from casino_core.services.slot_service import SlotGameService
from casino_core.services.wallet_service import InMemoryWallet
from casino_core.utils.slot_config import Jackpot, SlotGameRegistry, TriggerCondition, build_default_registry
from casino_core.tests.fakes import ScriptedRng, grid_indexes, line_game, symbol

SEVENS_GRID = [['B', '7', 'C'] for _ in range(5)]
CHERRY_GRID = [['C'] * 3 for _ in range(5)]
LOSING_GRID = [['B', 'C', '7'], ['7', 'B', 'C'], ['C', '7', 'B'], ['B', 'C', '7'], ['7', 'B', 'C']]
SEVENS_SCREEN = [['7'] * 3 for _ in range(5)]


def _test_game():
    jackpots = (
        Jackpot('gc-pool', 'progressive', 'GC Pool', Decimal('1000'), Decimal('500'), Decimal('0.01'),
                TriggerCondition('symbol_combination', ('C',), 15), 'GC'),
        Jackpot('sc-pool', 'progressive', 'SC Pool', Decimal('20'), Decimal('10'), Decimal('0.01'),
                TriggerCondition('symbol_combination', ('7',), 15), 'SC'),
    )
    return line_game([symbol('7', 100), symbol('B', 10), symbol('C', 5)], jackpots=jackpots)


class SlotServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.game = _test_game()
        self.wallet = InMemoryWallet({('alice', 'GC'): '100000', ('bob', 'GC'): '10'})
        self.jackpots = InMemoryJackpotStore()
        self.sessions = SessionTracker()
        self.records = InMemoryRecordStore()
        self.rng = ScriptedRng()
        self.service = SlotGameService(SlotGameRegistry([self.game]), self.wallet, self.jackpots,
                                       self.sessions, self.records, rng=self.rng)

    def script(self, *grids):
        self.rng.indexes = [i for grid in grids for i in grid_indexes(self.game, grid)]


class TestSpin(SlotServiceTestCase):

    def test_progressive_pools_are_registered(self):
        self.assertEqual(self.jackpots.get('gc-pool'), Decimal('1000'))
        self.assertEqual(set(self.service.get_jackpot_status()), {'gc-pool', 'sc-pool'})

    def test_winning_spin_debits_then_credits(self):
        self.script(SEVENS_GRID)
        result = self.service.spin('alice', 'test-lines', '100', 'GC')
        self.assertEqual(result.total_win, Decimal('1000'))
        self.assertEqual(self.wallet.get_balance('alice', 'GC'), Decimal('100900'))
        self.assertEqual([t[0] for t in self.wallet.transactions], ['bet', 'win'])

    def test_losing_spin_only_debits(self):
        self.script(LOSING_GRID)
        result = self.service.spin('alice', 'test-lines', 100, 'GC')
        self.assertEqual(result.total_win, Decimal('0'))
        self.assertEqual([t[0] for t in self.wallet.transactions], ['bet'])

    def test_contributions_follow_the_bet_currency(self):
        self.script(SEVENS_GRID)
        self.service.spin('alice', 'test-lines', 100, 'GC')
        self.assertEqual(self.jackpots.get('gc-pool'), Decimal('1001'))
        self.assertEqual(self.jackpots.get('sc-pool'), Decimal('20'))

    def test_jackpot_claim_pays_the_live_pool(self):
        self.script(CHERRY_GRID)
        result = self.service.spin('alice', 'test-lines', 100, 'GC')
        self.assertEqual(result.jackpot_win.id, 'gc-pool')
        self.assertEqual(result.jackpot_win.amount, Decimal('1001'))
        self.assertEqual(result.line_win, Decimal('50'))
        self.assertEqual(result.total_win, Decimal('1051'))
        self.assertEqual(self.jackpots.get('gc-pool'), Decimal('500'))
        self.assertEqual(self.wallet.get_balance('alice', 'GC'), Decimal('100951'))

    def test_spin_is_recorded(self):
        self.script(SEVENS_GRID)
        self.service.spin('alice', 'test-lines', 100, 'GC')
        history = self.records.history('alice', 'spin')
        self.assertEqual(len(history), 1)
        self.assertTrue(history[0]['id'].startswith('spin_'))
        self.assertTrue(history[0]['id'].endswith('_alice_test-lines'))
        payload = history[0]['payload']
        self.assertEqual(payload['total_win'], '1000')
        self.assertEqual(payload['currency'], 'GC')
        self.assertEqual(payload['reels'], SEVENS_GRID)

    def test_spin_updates_the_session(self):
        self.script(SEVENS_GRID, LOSING_GRID)
        self.service.spin('alice', 'test-lines', 100, 'GC')
        self.service.spin('alice', 'test-lines', 50, 'GC')
        session = self.sessions.find_open_session('alice', 'test-lines')
        self.assertEqual(session.game_type, 'slots')
        self.assertEqual(session.rounds_played, 2)
        self.assertEqual(session.total_bet, Decimal('150'))
        self.assertEqual(session.total_win, Decimal('1000'))
        stats = self.service.get_game_statistics('test-lines')
        self.assertEqual(stats['total_rounds'], 2)

    def test_spin_is_logged(self):
        self.script(SEVENS_GRID)
        with patch('casino_core.services.slot_service.GameEventLogger.log_game_event') as mock_log:
            self.service.spin('alice', 'test-lines', 100, 'GC')
        mock_log.assert_called_once()
        self.assertEqual(mock_log.call_args[0][0], 'spin')

    def test_pools_in_another_currency_cannot_be_won(self):
        self.script(SEVENS_SCREEN)
        result = self.service.spin('alice', 'test-lines', 100, 'GC')
        self.assertIsNone(result.jackpot_win)
        self.assertEqual(result.total_win, Decimal('1000'))
        self.assertEqual(self.jackpots.get('sc-pool'), Decimal('20'))

        self.wallet.deposit('alice', Decimal('50'), 'SC')
        self.script(SEVENS_SCREEN)
        result = self.service.spin('alice', 'test-lines', 10, 'SC')
        self.assertEqual(result.jackpot_win.id, 'sc-pool')
        self.assertEqual(result.jackpot_win.amount, Decimal('20.1'))
        self.assertEqual(self.jackpots.get('sc-pool'), Decimal('10'))


class TestRuntimeRegistration(unittest.TestCase):

    def setUp(self):
        self.wallet = InMemoryWallet({('alice', 'GC'): '100'})
        self.jackpots = InMemoryJackpotStore()
        self.registry = SlotGameRegistry()
        self.rng = ScriptedRng()
        self.service = SlotGameService(self.registry, self.wallet, self.jackpots, SessionTracker(),
                                       InMemoryRecordStore(), rng=self.rng)

    def test_spin_on_a_game_registered_later(self):
        game = self.registry.register(_test_game())
        self.rng.indexes = grid_indexes(game, LOSING_GRID)
        result = self.service.spin('alice', 'test-lines', 10, 'GC')
        self.assertEqual(result.total_win, Decimal('0'))
        self.assertEqual(self.jackpots.get('gc-pool'), Decimal('1000.1'))
        self.assertEqual(self.jackpots.get('sc-pool'), Decimal('20'))
        self.assertEqual(self.wallet.get_balance('alice', 'GC'), Decimal('90'))

    def test_pool_added_by_an_update(self):
        game = self.registry.register(_test_game())
        late = Jackpot('late-pool', 'progressive', 'Late Pool', Decimal('300'), Decimal('300'),
                       Decimal('0.1'), TriggerCondition('symbol_combination', ('B',), 15), 'GC')
        self.registry.update('test-lines', jackpots=game.jackpots + (late,))
        self.rng.indexes = grid_indexes(game, LOSING_GRID)
        self.service.spin('alice', 'test-lines', 10, 'GC')
        self.assertEqual(self.jackpots.get('late-pool'), Decimal('301.0'))

    def test_rejected_spin_registers_nothing(self):
        self.registry.register(_test_game())
        with self.assertRaises(InvalidBetError):
            self.service.spin('alice', 'test-lines', 'NaN', 'GC')
        with self.assertRaises(InvalidBetError):
            self.service.spin('alice', 'test-lines', 'abc', 'GC')
        self.assertEqual(self.jackpots.snapshot(), {})
        self.assertEqual(self.wallet.transactions, [])


class TestRejectedSpins(SlotServiceTestCase):

    def assertUntouched(self):
        self.assertEqual(self.wallet.transactions, [])
        self.assertEqual(self.jackpots.get('gc-pool'), Decimal('1000'))
        self.assertEqual(len(self.records), 0)

    def test_bet_below_minimum(self):
        with self.assertRaises(InvalidBetError):
            self.service.spin('alice', 'test-lines', '0.99', 'GC')
        self.assertUntouched()

    def test_bet_above_maximum(self):
        with self.assertRaises(InvalidBetError):
            self.service.spin('alice', 'test-lines', '1000.01', 'GC')
        self.assertUntouched()

    def test_unknown_currency(self):
        with self.assertRaises(InvalidBetError):
            self.service.spin('alice', 'test-lines', 10, 'BTC')
        self.assertUntouched()

    def test_unknown_game(self):
        with self.assertRaises(GameNotFoundError):
            self.service.spin('alice', 'no-such-game', 10, 'GC')
        self.assertUntouched()

    def test_insufficient_funds_propagates(self):
        with self.assertRaises(InsufficientFundsError):
            self.service.spin('bob', 'test-lines', 50, 'GC')
        self.assertUntouched()
        self.assertIsNone(self.sessions.find_open_session('bob', 'test-lines'))


class TestSessions(SlotServiceTestCase):

    def test_start_and_end_session(self):
        session = self.service.start_session('alice', 'test-lines', 'GC')
        self.script(SEVENS_GRID)
        self.service.spin('alice', 'test-lines', 100, 'GC')
        closed = self.service.end_session(session.session_id)
        self.assertIs(closed, session)
        self.assertEqual(closed.rounds_played, 1)
        record = self.records.get(session.session_id)
        self.assertEqual(record['record_type'], 'session')
        self.assertEqual(record['payload']['total_win'], '1000')

    def test_session_currency_must_be_offered(self):
        game = line_game([symbol('7', 100)], id='gc-only', min_bet={'GC': Decimal('1')},
                         max_bet={'GC': Decimal('10')})
        service = SlotGameService(SlotGameRegistry([game]), self.wallet, self.jackpots,
                                  self.sessions, self.records)
        with self.assertRaises(InvalidBetError):
            service.start_session('alice', 'gc-only', 'SC')

    def test_ending_an_unknown_session(self):
        self.assertIsNone(self.service.end_session('session-unknown'))
        self.assertEqual(len(self.records), 0)


class TestDefaultGames(unittest.TestCase):

    def test_diamond_screen_claims_the_mega_jackpot(self):
        wallet = InMemoryWallet({('alice', 'SC'): '1000'})
        jackpots = InMemoryJackpotStore()
        service = SlotGameService(build_default_registry(), wallet, jackpots, SessionTracker(),
                                  InMemoryRecordStore(), rng=ScriptedRng())
        self.assertEqual(set(jackpots.snapshot()), {'mega-jackpot', 'major-jackpot', 'minor-jackpot'})

        # Index 0 everywhere fills the grid with the first symbol of the table.
        result = service.spin('alice', 'coinfrazy-special', 1, 'SC')
        self.assertEqual(len(result.wins), 10)
        self.assertEqual(result.line_win, Decimal('500'))
        self.assertEqual(result.jackpot_win.id, 'mega-jackpot')
        self.assertEqual(result.jackpot_win.amount, Decimal('125847.93'))
        self.assertEqual(result.total_win, Decimal('126347.93'))
        self.assertEqual(jackpots.get('mega-jackpot'), Decimal('50000'))
        self.assertEqual(jackpots.get('major-jackpot'), Decimal('15247.505'))
        self.assertEqual(jackpots.get('minor-jackpot'), Decimal('2847.252'))
        self.assertEqual(wallet.get_balance('alice', 'SC'), Decimal('127346.93'))


if __name__ == '__main__':
    unittest.main()
