"""Scripted collaborators for forcing outcomes in tests."""
from decimal import Decimal

from casino_core.utils.slot_config import PaylineConfig, SlotGameConfig, SlotSymbol


class ScriptedRng:
    """
    Replays fixed values. ``randrange`` pops from ``indexes`` (falling back to
    0), ``random`` pops from ``rolls`` (falling back to 0.999999 so random
    triggers stay off).
    """

    def __init__(self, indexes=None, rolls=None):
        self.indexes = list(indexes or [])
        self.rolls = list(rolls or [])

    def randrange(self, stop):
        value = self.indexes.pop(0) if self.indexes else 0
        return value % stop

    def random(self):
        return self.rolls.pop(0) if self.rolls else 0.999999

    def shuffle(self, items):
        return None


def symbol(symbol_id, value, rarity=100, **flags):
    return SlotSymbol(symbol_id, symbol_id, Decimal(str(value)), rarity, **flags)


def line_game(symbols, paylines=((1, 1, 1, 1, 1),), reels=5, rows=3, **overrides):
    """A payline game with limits GC 1-1000 / SC 0.01-10 unless overridden."""
    params = dict(
        id='test-lines', name='Test Lines', theme='test', reels=reels, rows=rows,
        paylines=tuple(PaylineConfig(i + 1, tuple(p)) for i, p in enumerate(paylines)),
        symbols=tuple(symbols), rtp=96.0, volatility='medium',
        min_bet={'GC': Decimal('1'), 'SC': Decimal('0.01')},
        max_bet={'GC': Decimal('1000'), 'SC': Decimal('10')},
        max_win=Decimal('100000'),
    )
    params.update(overrides)
    return SlotGameConfig(**params)


def cluster_game(symbols, reels=6, rows=5, **overrides):
    params = dict(
        id='test-cluster', name='Test Cluster', theme='test', reels=reels, rows=rows, paylines=(),
        symbols=tuple(symbols), rtp=96.0, volatility='high',
        min_bet={'GC': Decimal('1')}, max_bet={'GC': Decimal('1000')}, max_win=Decimal('100000'),
        win_style='cluster',
    )
    params.update(overrides)
    return SlotGameConfig(**params)


def grid_indexes(config, grid):
    """
    randrange indexes that make ``generate_reels`` produce ``grid``
    (reel-major). Every symbol must have rarity 100 so each holds exactly one
    pool entry, in declared order.
    """
    order = [s.id for s in config.symbols]
    return [order.index(cell) for reel in grid for cell in reel]
