import unittest
from decimal import Decimal

import pytest

from casino_core.exceptions import IllegalActionError, InvalidBetError, NotFoundException, ShoeExhaustedError
from casino_core.services.baccarat_service import BaccaratService
from casino_core.services.record_store import InMemoryRecordStore
from casino_core.services.session_service import SessionTracker
from casino_core.services.wallet_service import InMemoryWallet
from casino_core.utils import baccarat_helper as bc
from casino_core.utils.cards import card_from_code, cards_from_codes, stacked_shoe


@pytest.mark.parametrize('banker_value,third,draws', [
    (2, '9H', True),
    (3, '8H', False),
    (3, '9H', True),
    (4, 'AH', False),
    (4, '2H', True),
    (4, '7H', True),
    (4, '8H', False),
    (5, '3H', False),
    (5, '4H', True),
    (6, '5H', False),
    (6, '6H', True),
    (6, '7H', True),
    (7, '6H', False),
])
def test_banker_drawing_rule(banker_value, third, draws):
    assert bc.should_banker_draw(banker_value, card_from_code(third)) is draws


def test_banker_without_player_third_card():
    assert bc.should_banker_draw(5) is True
    assert bc.should_banker_draw(6) is False


def test_hand_value_is_modulo_ten():
    assert bc.calculate_baccarat_value(cards_from_codes(['KH', '10S'])) == 0
    assert bc.calculate_baccarat_value(cards_from_codes(['9H', '8S'])) == 7
    assert bc.calculate_baccarat_value(cards_from_codes(['AH', '5S', '3D'])) == 9


class TestCoup(unittest.TestCase):
    """Deal order is player, banker, player, banker."""

    def state(self, codes, push_on_tie=False, bets=()):
        state = bc.new_game_state('baccarat-test', 'alice', 'GC', push_on_tie=push_on_tie, shoe=stacked_shoe(codes))
        for n, (bet_type, amount) in enumerate(bets):
            state.bets.append(bc.BaccaratBet(f"bet-{n}", bet_type, Decimal(amount), bc.BET_ODDS[bet_type]))
        return state

    def test_natural_stops_drawing(self):
        state = self.state(['9H', '5C', 'KD', '2S'], bets=[('player', '100')])
        result = bc.resolve_coup(state)
        self.assertTrue(result.natural_win)
        self.assertEqual((result.player_value, result.banker_value), (9, 7))
        self.assertEqual(len(result.player_cards), 2)
        self.assertEqual(len(result.banker_cards), 2)
        self.assertEqual(result.winner, 'player')
        self.assertEqual(result.total_win, Decimal('200'))

    def test_banker_six_draws_on_player_six(self):
        state = self.state(['2H', '4C', '3D', '2S', '6H', '3C'], bets=[('banker', '100')])
        result = bc.resolve_coup(state)
        self.assertFalse(result.natural_win)
        self.assertEqual(result.player_third_card.rank, '6')
        self.assertEqual((result.player_value, result.banker_value), (1, 9))
        self.assertEqual(result.winner, 'banker')
        self.assertEqual(result.commission, Decimal('5.00'))
        self.assertEqual(result.total_win, Decimal('195.00'))

    def test_banker_six_stands_on_player_five(self):
        state = self.state(['2H', '4C', '3D', '2S', '5H'], bets=[('banker', '100')])
        result = bc.resolve_coup(state)
        self.assertEqual(len(result.banker_cards), 2)
        self.assertEqual((result.player_value, result.banker_value), (0, 6))
        self.assertEqual(result.winner, 'banker')

    def test_player_stands_on_seven(self):
        state = self.state(['4H', '2C', '3D', '3S', 'KC'], bets=[('player', '100')])
        result = bc.resolve_coup(state)
        self.assertIsNone(result.player_third_card)
        self.assertEqual(len(result.banker_cards), 3)
        self.assertEqual((result.player_value, result.banker_value), (7, 5))
        self.assertEqual(result.total_win, Decimal('200'))

    def test_tie_loses_main_bets(self):
        state = self.state(['9H', '9C', 'KD', 'KS'], bets=[('player', '100'), ('banker', '100'), ('tie', '100')])
        result = bc.resolve_coup(state)
        self.assertEqual(result.winner, 'tie')
        self.assertEqual([b.result for b in state.bets], ['lose', 'lose', 'win'])
        self.assertEqual(result.total_win, Decimal('900'))

    def test_tie_pushes_main_bets_when_configured(self):
        state = self.state(['9H', '9C', 'KD', 'KS'], push_on_tie=True,
                           bets=[('player', '100'), ('banker', '100')])
        result = bc.resolve_coup(state)
        self.assertEqual([b.result for b in state.bets], ['push', 'push'])
        self.assertEqual(result.total_win, Decimal('200'))
        self.assertEqual(result.commission, Decimal('0'))

    def test_pair_side_bets(self):
        state = self.state(['8H', '3C', '8D', '3S'], bets=[
            ('player_pair', '100'), ('banker_pair', '100'), ('perfect_pair', '100'), ('player', '100'),
        ])
        result = bc.resolve_coup(state)
        self.assertEqual((result.player_value, result.banker_value), (6, 6))
        self.assertEqual([b.payout for b in state.bets],
                         [Decimal('1200'), Decimal('1200'), Decimal('2600'), Decimal('0')])

    def test_empty_shoe_raises(self):
        state = self.state(['2H', '4C', '3D'])
        with self.assertRaises(ShoeExhaustedError):
            bc.resolve_coup(state)


class TestBaccaratService(unittest.TestCase):

    def setUp(self):
        self.wallet = InMemoryWallet({('alice', 'GC'): '10000'})
        self.sessions = SessionTracker()
        self.records = InMemoryRecordStore()
        self.service = BaccaratService(self.wallet, self.sessions, self.records)

    def test_banker_win_pays_less_commission(self):
        state = self.service.start_game('alice', 'GC', shoe=stacked_shoe(['2H', '4C', '3D', '2S', '6H', '3C']))
        self.service.place_bet(state.game_id, 'banker', '1000')
        result = self.service.deal(state.game_id)
        self.assertEqual(result.total_win, Decimal('1950.00'))
        self.assertEqual(self.wallet.get_balance('alice', 'GC'), Decimal('10950.00'))
        record = self.records.get(state.game_id)
        self.assertEqual(record['payload']['result']['winner'], 'banker')
        session = self.sessions.find_open_session('alice', 'baccarat')
        self.assertEqual(session.total_win, Decimal('1950.00'))

    def test_custom_commission(self):
        service = BaccaratService(self.wallet, self.sessions, self.records, commission=Decimal('0.04'))
        state = service.start_game('alice', 'GC', shoe=stacked_shoe(['2H', '4C', '3D', '2S', '6H', '3C']))
        service.place_bet(state.game_id, 'banker', '100')
        self.assertEqual(service.deal(state.game_id).commission, Decimal('4.00'))

    def test_bets_are_validated_before_debit(self):
        state = self.service.start_game('alice', 'GC', shoe=stacked_shoe([]))
        with self.assertRaises(InvalidBetError):
            self.service.place_bet(state.game_id, 'player', '49')
        with self.assertRaises(InvalidBetError):
            self.service.place_bet(state.game_id, 'dragon', '100')
        for amount in (float('nan'), 'lots'):
            with self.assertRaises(InvalidBetError):
                self.service.place_bet(state.game_id, 'tie', amount)
        self.assertEqual(self.wallet.transactions, [])

    def test_deal_requires_a_bet(self):
        state = self.service.start_game('alice', 'GC', shoe=stacked_shoe(['9H', '5C', 'KD', '2S']))
        with self.assertRaises(IllegalActionError):
            self.service.deal(state.game_id)
        self.assertEqual(state.shoe.position, 0)

    def test_coup_is_dealt_once(self):
        state = self.service.start_game('alice', 'GC', shoe=stacked_shoe(['9H', '5C', 'KD', '2S']))
        self.service.place_bet(state.game_id, 'banker', '100')
        result = self.service.deal(state.game_id)
        self.assertEqual(result.total_win, Decimal('0'))
        with self.assertRaises(NotFoundException):
            self.service.deal(state.game_id)
        with self.assertRaises(NotFoundException):
            self.service.place_bet(state.game_id, 'player', '100')
        self.assertNotIn(state.game_id, self.service._games)
        self.assertNotIn(state.game_id, self.service._locks._locks)
        self.assertEqual(self.wallet.get_balance('alice', 'GC'), Decimal('9900'))


if __name__ == '__main__':
    unittest.main()
