import random
import unittest

from casino_core.exceptions import ShoeExhaustedError
from casino_core.utils.cards import (
    PlayingCard, Shoe, card_from_code, cards_from_codes, create_shoe, create_standard_deck,
    shuffle_deck, stacked_shoe,
)


class TestPlayingCard(unittest.TestCase):

    def test_values_and_display(self):
        ace = PlayingCard('hearts', 'A')
        self.assertEqual(ace.value, 11)
        self.assertEqual(ace.baccarat_value, 1)
        self.assertEqual(ace.unicode, 'A♥')
        self.assertEqual(ace.color, 'red')

        king = PlayingCard('spades', 'K')
        self.assertEqual(king.value, 10)
        self.assertEqual(king.baccarat_value, 0)
        self.assertEqual(king.color, 'black')

        ten = PlayingCard('clubs', '10')
        self.assertEqual(ten.value, 10)
        self.assertEqual(ten.baccarat_value, 0)
        self.assertEqual(str(ten), '10♣')

        seven = PlayingCard('diamonds', '7')
        self.assertEqual(seven.value, 7)
        self.assertEqual(seven.baccarat_value, 7)

    def test_invalid_card_rejected(self):
        with self.assertRaises(ValueError):
            PlayingCard('stars', 'A')
        with self.assertRaises(ValueError):
            PlayingCard('hearts', '1')

    def test_card_codes(self):
        self.assertEqual(card_from_code('AH'), PlayingCard('hearts', 'A'))
        self.assertEqual(card_from_code('TS'), PlayingCard('spades', '10'))
        self.assertEqual(card_from_code('10d'), PlayingCard('diamonds', '10'))
        self.assertEqual([c.rank for c in cards_from_codes(['KC', '2H'])], ['K', '2'])
        with self.assertRaises(ValueError):
            card_from_code('AX')


class TestDeckAndShoe(unittest.TestCase):

    def test_standard_deck(self):
        deck = create_standard_deck()
        self.assertEqual(len(deck), 52)
        self.assertEqual(len(set(deck)), 52)
        self.assertEqual(deck[0], PlayingCard('hearts', 'A'))
        self.assertEqual(deck[-1], PlayingCard('spades', 'K'))

    def test_shuffle_returns_copy(self):
        deck = create_standard_deck()
        shuffled = shuffle_deck(deck, random.Random(7))
        self.assertEqual(len(shuffled), 52)
        self.assertCountEqual(shuffled, deck)
        self.assertEqual(deck, create_standard_deck())

    def test_shuffle_is_reproducible_with_seeded_rng(self):
        deck = create_standard_deck()
        self.assertEqual(shuffle_deck(deck, random.Random(42)), shuffle_deck(deck, random.Random(42)))

    def test_create_shoe(self):
        shoe = create_shoe(6, random.Random(1))
        self.assertEqual(len(shoe), 312)
        self.assertEqual(shoe.remaining, 312)
        self.assertTrue(shoe.shuffled)
        self.assertEqual(shoe.cards.count(PlayingCard('hearts', 'A')), 6)

    def test_create_shoe_needs_a_deck(self):
        with self.assertRaises(ValueError):
            create_shoe(0)

    def test_deal_advances_cursor_and_never_wraps(self):
        shoe = stacked_shoe(['AH', 'KS'])
        self.assertFalse(shoe.shuffled)
        self.assertEqual(shoe.deal(), PlayingCard('hearts', 'A'))
        self.assertEqual(shoe.position, 1)
        self.assertEqual(shoe.deal(), PlayingCard('spades', 'K'))
        self.assertEqual(shoe.remaining, 0)
        with self.assertRaises(ShoeExhaustedError):
            shoe.deal()
        self.assertEqual(shoe.position, 2)

    def test_empty_shoe(self):
        with self.assertRaises(ShoeExhaustedError):
            Shoe([]).deal()


if __name__ == '__main__':
    unittest.main()
