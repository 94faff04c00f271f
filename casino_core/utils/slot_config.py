"""
Slot paytable registry.

Static per-game configuration: reel geometry, symbol tables, paylines, bonus
feature triggers and jackpot definitions. Feature and jackpot tuples are
evaluated top-to-bottom by the spin resolver, so their order is significant.
"""
import json
import logging
import threading
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Optional, Tuple

from casino_core.exceptions import GameNotFoundError, InvalidGameConfigError

logger = logging.getLogger(__name__)

TRIGGER_TYPES = ('symbol_combination', 'random', 'consecutive_wins', 'special_symbol')
REWARD_TYPES = ('free_spins', 'multiplier', 'coin_prize', 'jackpot_trigger')
FEATURE_TYPES = ('free_spins', 'bonus_game', 'multiplier', 'expanding_wilds', 'cascading_reels', 'pick_bonus')
JACKPOT_TYPES = ('progressive', 'fixed', 'local')
WIN_STYLES = ('paylines', 'cluster')


@dataclass(frozen=True)
class SlotSymbol:
    id: str
    name: str
    value: Decimal
    rarity: int
    is_wild: bool = False
    is_scatter: bool = False
    is_bonus: bool = False
    multiplier: Optional[Decimal] = None

    @property
    def sampling_weight(self) -> int:
        # Rarer symbols (higher rarity) get fewer pool entries.
        return max(1, 101 - self.rarity)


@dataclass(frozen=True)
class PaylineConfig:
    id: int
    pattern: Tuple[int, ...]  # pattern[reel] -> row
    is_active: bool = True


@dataclass(frozen=True)
class TriggerCondition:
    type: str
    symbols: Tuple[str, ...] = ()
    count: Optional[int] = None
    probability: Optional[float] = None


@dataclass(frozen=True)
class BonusReward:
    type: str
    value: Decimal
    duration: Optional[int] = None
    applies_to: Optional[str] = None


@dataclass(frozen=True)
class BonusFeature:
    id: str
    type: str
    name: str
    description: str
    trigger_condition: TriggerCondition
    rewards: Tuple[BonusReward, ...]
    is_active: bool = True


@dataclass(frozen=True)
class Jackpot:
    id: str
    type: str
    name: str
    current_amount: Decimal  # initial pool; the jackpot store owns the live value
    seed_amount: Decimal
    contribution_rate: Decimal
    trigger_condition: TriggerCondition
    currency: str


@dataclass(frozen=True)
class SlotGameConfig:
    id: str
    name: str
    theme: str
    reels: int
    rows: int
    paylines: Tuple[PaylineConfig, ...]
    symbols: Tuple[SlotSymbol, ...]
    rtp: float
    volatility: str
    min_bet: Dict[str, Decimal]
    max_bet: Dict[str, Decimal]
    max_win: Decimal
    bonus_features: Tuple[BonusFeature, ...] = ()
    jackpots: Tuple[Jackpot, ...] = ()
    win_style: str = 'paylines'
    auto_play_options: Tuple[int, ...] = (10, 25, 50, 100)
    turbo_mode: bool = True
    mobile_optimized: bool = True
    _symbol_index: Dict[str, SlotSymbol] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, '_symbol_index', {s.id: s for s in self.symbols})

    def symbol(self, symbol_id) -> Optional[SlotSymbol]:
        return self._symbol_index.get(symbol_id)

    def payline(self, payline_id) -> Optional[PaylineConfig]:
        for payline in self.paylines:
            if payline.id == payline_id:
                return payline
        return None

    @property
    def active_payline_ids(self):
        return [p.id for p in self.paylines if p.is_active]

    @property
    def has_cascades(self) -> bool:
        return any(f.type == 'cascading_reels' for f in self.bonus_features)


def validate_game_config(config: SlotGameConfig):
    """Geometry and reference checks the schema cannot express on its own."""
    errors = {}
    if config.reels < 1 or config.rows < 1:
        errors['geometry'] = 'reels and rows must be positive'
    if not config.symbols:
        errors['symbols'] = 'at least one symbol is required'
    if len(config._symbol_index) != len(config.symbols):
        errors['symbols'] = 'symbol ids must be unique'
    if config.win_style not in WIN_STYLES:
        errors['win_style'] = f"must be one of {WIN_STYLES}"
    for payline in config.paylines:
        if config.win_style == 'paylines' and len(payline.pattern) != config.reels:
            errors[f'payline_{payline.id}'] = 'pattern length must equal reel count'
        if any(row < 0 or row >= config.rows for row in payline.pattern):
            errors[f'payline_{payline.id}'] = 'pattern row out of range'
    for currency, minimum in config.min_bet.items():
        maximum = config.max_bet.get(currency)
        if maximum is None or minimum > maximum:
            errors[f'bet_limits_{currency}'] = 'min_bet must not exceed max_bet'
    if errors:
        raise InvalidGameConfigError(status_message=f"Invalid configuration for game '{config.id}'", details=errors)


class SlotGameRegistry:
    """Ordered, thread-safe map of game id -> SlotGameConfig."""

    def __init__(self, games=()):
        self._games: Dict[str, SlotGameConfig] = {}
        self._lock = threading.Lock()
        for game in games:
            self.register(game)

    def get(self, game_id) -> SlotGameConfig:
        game = self._games.get(game_id)
        if game is None:
            raise GameNotFoundError(status_message=f"Game {game_id} not found", details={'game_id': game_id})
        return game

    def all(self):
        return list(self._games.values())

    def __contains__(self, game_id):
        return game_id in self._games

    def register(self, config: SlotGameConfig) -> SlotGameConfig:
        validate_game_config(config)
        with self._lock:
            if config.id in self._games:
                raise InvalidGameConfigError(status_message=f"Game {config.id} already exists",
                                             details={'game_id': config.id})
            self._games[config.id] = config
        logger.info("Registered slot game %s (%s, %dx%d)", config.id, config.win_style, config.reels, config.rows)
        return config

    def update(self, game_id, **changes) -> SlotGameConfig:
        with self._lock:
            current = self.get(game_id)
            updated = replace(current, **changes)
            if updated.id != game_id:
                raise InvalidGameConfigError(status_message="Game id cannot be changed")
            validate_game_config(updated)
            self._games[game_id] = updated
        logger.info("Updated slot game %s: %s", game_id, sorted(changes))
        return updated

    def load_from_file(self, path):
        """Registers every game in a JSON list validated by SlotGameConfigSchema."""
        from casino_core.schemas import SlotGameConfigSchema

        with open(path, encoding='utf-8') as fh:
            payload = json.load(fh)
        games = SlotGameConfigSchema(many=True).load(payload)
        for game in games:
            self.register(game)
        return games


# --- Built-in games ---

def _d(value):
    return Decimal(str(value))


def _symbol(symbol_id, name, value, rarity, **flags):
    if 'multiplier' in flags:
        flags['multiplier'] = _d(flags['multiplier'])
    return SlotSymbol(symbol_id, name, _d(value), rarity, **flags)


def _reward(reward_type, value, applies_to=None):
    return BonusReward(reward_type, _d(value), applies_to=applies_to)


def _combo(symbol_id, count, probability=None):
    return TriggerCondition('symbol_combination', (symbol_id,), count, probability)


def _limits(gc, sc):
    return {'GC': _d(gc), 'SC': _d(sc)}


STANDARD_PAYLINE_PATTERNS = [
    (1, 1, 1, 1, 1),  # middle row
    (0, 0, 0, 0, 0),  # top row
    (2, 2, 2, 2, 2),  # bottom row
    (0, 1, 2, 1, 0),  # V
    (2, 1, 0, 1, 2),  # inverse V
    (0, 0, 1, 2, 2),
    (2, 2, 1, 0, 0),
    (1, 0, 1, 2, 1),  # W
    (1, 2, 1, 0, 1),  # M
    (0, 1, 0, 1, 0),
]

CLASSIC_PAYLINE_PATTERNS = [
    (1, 1, 1),
    (0, 0, 0),
    (2, 2, 2),
    (0, 1, 2),
    (2, 1, 0),
]


def _paylines(patterns):
    return tuple(PaylineConfig(index + 1, pattern) for index, pattern in enumerate(patterns))


def _coinkrazy_symbols():
    return (
        _symbol('💎', 'Diamond', 500, 5, multiplier=1),
        _symbol('🎰', 'Slot Machine', 250, 8),
        _symbol('🍀', 'Lucky Clover', 100, 12, is_wild=True),
        _symbol('⭐', 'Star', 75, 15, is_scatter=True),
        _symbol('🎯', 'Target', 50, 20, is_bonus=True),
        _symbol('🔔', 'Bell', 40, 25),
        _symbol('🍒', 'Cherry', 25, 30),
        _symbol('🍋', 'Lemon', 20, 35),
        _symbol('🍊', 'Orange', 15, 40),
        _symbol('🍇', 'Grape', 10, 45),
        _symbol('A', 'Ace', 8, 50),
        _symbol('K', 'King', 6, 55),
        _symbol('Q', 'Queen', 5, 60),
        _symbol('J', 'Jack', 4, 65),
        _symbol('10', 'Ten', 3, 70),
        _symbol('9', 'Nine', 2, 75),
    )


def _sweet_symbols():
    return (
        _symbol('🍭', 'Lollipop', 100, 8, is_scatter=True),
        _symbol('🍬', 'Candy', 50, 12),
        _symbol('🧁', 'Cupcake', 40, 15),
        _symbol('🍪', 'Cookie', 30, 18),
        _symbol('🎂', 'Cake', 25, 20),
        _symbol('🍩', 'Donut', 20, 25),
        _symbol('🍰', 'Cake Slice', 15, 30),
        _symbol('🧊', 'Ice', 10, 35),
        _symbol('🟣', 'Purple Gem', 8, 40),
        _symbol('🔵', 'Blue Gem', 6, 45),
        _symbol('🟢', 'Green Gem', 4, 50),
        _symbol('🟡', 'Yellow Gem', 3, 55),
        _symbol('🔴', 'Red Gem', 2, 60),
    )


def _olympus_symbols():
    return (
        _symbol('⚡', 'Zeus Lightning', 200, 5, multiplier=2),
        _symbol('🏛️', 'Temple', 100, 8),
        _symbol('👑', 'Crown', 75, 12),
        _symbol('⚖️', 'Scales', 50, 15),
        _symbol('🗲', 'Thunder', 40, 18, is_scatter=True),
        _symbol('💍', 'Ring', 30, 22),
        _symbol('🏺', 'Urn', 25, 25),
        _symbol('🍇', 'Grapes', 20, 30),
        _symbol('🟣', 'Purple Orb', 15, 35),
        _symbol('🔵', 'Blue Orb', 12, 40),
        _symbol('🟢', 'Green Orb', 10, 45),
        _symbol('🟡', 'Yellow Orb', 8, 50),
        _symbol('🔴', 'Red Orb', 6, 55),
    )


def _classic_symbols():
    return (
        _symbol('7️⃣', 'Lucky Seven', 777, 2),
        _symbol('💎', 'Diamond', 500, 5),
        _symbol('⭐', 'Star', 250, 8),
        _symbol('🔔', 'Bell', 100, 12),
        _symbol('🍒', 'Cherry', 50, 20),
        _symbol('🍋', 'Lemon', 30, 25),
        _symbol('🍊', 'Orange', 20, 30),
        _symbol('🍇', 'Grape', 15, 35),
        _symbol('BAR', 'Bar', 10, 40),
    )


def _cosmic_symbols():
    return (
        _symbol('🚀', 'Rocket', 1000, 3, is_wild=True),
        _symbol('🛸', 'UFO', 500, 6, is_scatter=True),
        _symbol('🌌', 'Galaxy', 300, 8),
        _symbol('⭐', 'Star', 200, 12),
        _symbol('🌟', 'Bright Star', 150, 15),
        _symbol('🪐', 'Saturn', 100, 18),
        _symbol('🌙', 'Moon', 75, 22),
        _symbol('☄️', 'Comet', 50, 25),
        _symbol('🔮', 'Crystal', 40, 30),
        _symbol('💫', 'Shooting Star', 30, 35),
        _symbol('A', 'Ace', 20, 40),
        _symbol('K', 'King', 15, 45),
        _symbol('Q', 'Queen', 12, 50),
        _symbol('J', 'Jack', 10, 55),
    )


def _coinkrazy_features():
    return (
        BonusFeature('free-spins', 'free_spins', 'Lucky Free Spins',
                     'Get 10-25 free spins with multipliers up to 5x',
                     _combo('⭐', 3),
                     (_reward('free_spins', 15, 'free_spins'), _reward('multiplier', 3, 'free_spins'))),
        BonusFeature('coin-bonus', 'pick_bonus', 'Coin Collector Bonus',
                     'Pick coins to reveal instant prizes',
                     _combo('🎯', 3),
                     (_reward('coin_prize', 500), _reward('multiplier', 10))),
        BonusFeature('expanding-wilds', 'expanding_wilds', 'Lucky Clover Expansion',
                     'Wild symbols expand to cover entire reels',
                     _combo('🍀', 1, probability=0.25),
                     (_reward('multiplier', 2, 'next_spin'),)),
    )


def _sweet_features():
    return (
        BonusFeature('tumble-feature', 'cascading_reels', 'Tumble Feature',
                     'Winning symbols disappear and new ones fall down',
                     TriggerCondition('symbol_combination', (), 1),
                     (_reward('free_spins', 1, 'next_spin'),)),
        BonusFeature('ante-bet', 'multiplier', 'Ante Bet',
                     'Double your bet for better bonus chances',
                     TriggerCondition('random', probability=1.0),
                     (_reward('multiplier', 2, 'session'),)),
        BonusFeature('free-spins-sweet', 'free_spins', 'Sweet Free Spins',
                     'Get 10 free spins with multiplier bombs',
                     _combo('🍭', 4),
                     (_reward('free_spins', 10, 'free_spins'), _reward('multiplier', 5, 'free_spins'))),
    )


def _olympus_features():
    return (
        BonusFeature('divine-multipliers', 'multiplier', 'Divine Multipliers',
                     'Random multipliers up to 500x can appear',
                     TriggerCondition('random', probability=0.15),
                     (_reward('multiplier', 500, 'next_spin'),)),
        BonusFeature('olympus-free-spins', 'free_spins', 'Gates of Olympus Free Spins',
                     '15 free spins with persistent multipliers',
                     _combo('🗲', 4),
                     (_reward('free_spins', 15, 'free_spins'), _reward('multiplier', 15, 'free_spins'))),
    )


def _classic_features():
    return (
        BonusFeature('classic-jackpot', 'bonus_game', 'Lucky Seven Jackpot',
                     'Three 7s triggers the jackpot',
                     _combo('7️⃣', 3),
                     (_reward('jackpot_trigger', 1),)),
    )


def _cosmic_features():
    return (
        BonusFeature('megaways-multiplier', 'multiplier', 'Cosmic Multiplier',
                     'Win multiplier increases with each cascade',
                     TriggerCondition('consecutive_wins', count=1),
                     (_reward('multiplier', 2, 'session'),)),
        BonusFeature('megaways-free-spins', 'free_spins', 'Cosmic Free Spins',
                     'Unlimited retriggers with increasing multipliers',
                     _combo('🛸', 4),
                     (_reward('free_spins', 12, 'free_spins'), _reward('multiplier', 1, 'free_spins'))),
    )


def _progressive_jackpots():
    return (
        Jackpot('mega-jackpot', 'progressive', 'Mega Jackpot', _d('125847.92'), _d(50000), _d('0.01'),
                _combo('💎', 5), 'SC'),
        Jackpot('major-jackpot', 'progressive', 'Major Jackpot', _d('15247.50'), _d(5000), _d('0.005'),
                TriggerCondition('random', probability=0.0001), 'SC'),
        Jackpot('minor-jackpot', 'progressive', 'Minor Jackpot', _d('2847.25'), _d(1000), _d('0.002'),
                TriggerCondition('random', probability=0.001), 'SC'),
    )


def _fixed_jackpots():
    return (
        Jackpot('classic-jackpot', 'fixed', 'Classic Jackpot', _d(1000), _d(1000), _d(0),
                _combo('7️⃣', 3), 'GC'),
    )


def default_games():
    return [
        SlotGameConfig(
            id='coinfrazy-special', name='CoinKrazy Special', theme='classic_casino',
            reels=5, rows=3, paylines=_paylines(STANDARD_PAYLINE_PATTERNS),
            symbols=_coinkrazy_symbols(), rtp=97.2, volatility='medium',
            min_bet=_limits(5, '0.05'), max_bet=_limits(10000, 100), max_win=_d(10000),
            bonus_features=_coinkrazy_features(), jackpots=_progressive_jackpots(),
            auto_play_options=(10, 25, 50, 100, 250, 500),
        ),
        SlotGameConfig(
            id='sweet-bonanza-pro', name='Sweet Bonanza Pro', theme='candy',
            reels=6, rows=5, paylines=(), symbols=_sweet_symbols(), rtp=96.48, volatility='high',
            min_bet=_limits(10, '0.1'), max_bet=_limits(5000, 50), max_win=_d(21100),
            bonus_features=_sweet_features(), win_style='cluster',
        ),
        SlotGameConfig(
            id='gates-olympus-pro', name='Gates of Olympus Pro', theme='mythology',
            reels=6, rows=5, paylines=(), symbols=_olympus_symbols(), rtp=96.5, volatility='high',
            min_bet=_limits(10, '0.1'), max_bet=_limits(5000, 50), max_win=_d(5000),
            bonus_features=_olympus_features(), win_style='cluster',
        ),
        SlotGameConfig(
            id='classic-777-deluxe', name='Classic 777 Deluxe', theme='classic',
            reels=3, rows=3, paylines=_paylines(CLASSIC_PAYLINE_PATTERNS),
            symbols=_classic_symbols(), rtp=96.8, volatility='low',
            min_bet=_limits(1, '0.01'), max_bet=_limits(100, 1), max_win=_d(1000),
            bonus_features=_classic_features(), jackpots=_fixed_jackpots(),
            auto_play_options=(10, 25, 50),
        ),
        SlotGameConfig(
            id='cosmic-megaways', name='Cosmic Megaways', theme='space',
            reels=6, rows=7, paylines=(), symbols=_cosmic_symbols(), rtp=96.1, volatility='high',
            min_bet=_limits(20, '0.2'), max_bet=_limits(10000, 100), max_win=_d(50000),
            bonus_features=_cosmic_features(), win_style='cluster',
        ),
    ]


def build_default_registry() -> SlotGameRegistry:
    return SlotGameRegistry(default_games())
