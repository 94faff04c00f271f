import threading
import unittest
from decimal import Decimal

import pytest

from casino_core.exceptions import NotFoundException
from casino_core.models import init_db
from casino_core.services.jackpot_service import InMemoryJackpotStore, SqlJackpotStore


def _hammer(store, jackpot_id, threads, per_thread, amount):
    def worker():
        for _ in range(per_thread):
            store.contribute(jackpot_id, amount)

    pool = [threading.Thread(target=worker) for _ in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join()


class JackpotStoreContract:
    """Behaviour shared by every jackpot store implementation."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.store.register('mega', 'SC', Decimal('1000'), Decimal('500'), Decimal('0.01'))

    def test_register_keeps_existing_pool(self):
        self.store.contribute('mega', Decimal('5'))
        self.assertEqual(self.store.register('mega', 'SC', Decimal('1'), Decimal('1')), Decimal('1005'))
        self.assertEqual(self.store.get('mega'), Decimal('1005'))

    def test_contribute_is_additive(self):
        self.assertEqual(self.store.contribute('mega', Decimal('0.25')), Decimal('1000.25'))
        self.assertEqual(self.store.contribute('mega', '0.75'), Decimal('1001'))

    def test_claim_pays_pool_and_resets_to_seed(self):
        self.store.contribute('mega', Decimal('20'))
        self.assertEqual(self.store.claim('mega'), Decimal('1020'))
        self.assertEqual(self.store.get('mega'), Decimal('500'))
        self.store.contribute('mega', Decimal('1'))
        self.assertEqual(self.store.get('mega'), Decimal('501'))

    def test_unknown_pool(self):
        with self.assertRaises(NotFoundException):
            self.store.contribute('nope', Decimal('1'))
        with self.assertRaises(NotFoundException):
            self.store.claim('nope')
        with self.assertRaises(NotFoundException):
            self.store.get('nope')

    def test_snapshot(self):
        self.store.claim('mega')
        snapshot = self.store.snapshot()
        self.assertEqual(list(snapshot), ['mega'])
        self.assertEqual(Decimal(snapshot['mega']['current_amount']), Decimal('500'))
        self.assertEqual(snapshot['mega']['times_won'], 1)
        self.assertEqual(snapshot['mega']['currency'], 'SC')

    def test_concurrent_contributions_are_not_lost(self):
        _hammer(self.store, 'mega', threads=8, per_thread=50, amount=Decimal('0.01'))
        self.assertEqual(self.store.get('mega'), Decimal('1000') + 400 * Decimal('0.01'))

    def test_claim_racing_with_contributions_loses_nothing(self):
        claimed = []
        contributor = threading.Thread(
            target=_hammer, args=(self.store, 'mega', 4, 50, Decimal('1')))
        contributor.start()
        claimed.append(self.store.claim('mega'))
        contributor.join()
        # Every unit either went out with the claim or is still in the pool.
        total_in = Decimal('1000') + 200 + Decimal('500')
        self.assertEqual(sum(claimed) + self.store.get('mega'), total_in)


class TestInMemoryJackpotStore(JackpotStoreContract, unittest.TestCase):

    def make_store(self):
        return InMemoryJackpotStore()


class TestSqlJackpotStore(JackpotStoreContract, unittest.TestCase):

    def make_store(self):
        self.engine, session_factory = init_db('sqlite://')
        return SqlJackpotStore(session_factory, serialize_writes=True)

    def tearDown(self):
        self.engine.dispose()


@pytest.mark.parametrize('threads,per_thread', [(2, 100), (10, 20)])
def test_in_memory_pool_equals_initial_plus_contributions(threads, per_thread):
    store = InMemoryJackpotStore()
    store.register('minor', 'SC', Decimal('2847.25'), Decimal('1000'))
    _hammer(store, 'minor', threads, per_thread, Decimal('0.002'))
    assert store.get('minor') == Decimal('2847.25') + threads * per_thread * Decimal('0.002')
