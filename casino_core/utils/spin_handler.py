"""
Slot spin resolution.

Pure functions: every source of randomness is the injected ``rng`` (anything
with ``random()`` and ``randrange()``, e.g. ``secrets.SystemRandom()`` or a
seeded ``random.Random``). Grids are indexed ``reels[reel][row]``.
"""
import logging
import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from typing import List, Optional, Tuple

from casino_core.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

MIN_PAYLINE_LENGTH = 3
MIN_CLUSTER_SIZE = 8
DEFAULT_CASCADE_LIMIT = 10
WILD_MULTIPLIER = 2


@dataclass
class WinLine:
    kind: str  # 'payline' or 'cluster'
    symbol: str
    symbols: List[str]
    count: int
    multiplier: int
    payout: Decimal
    positions: List[Tuple[int, int]]  # (reel, row)
    payline_id: Optional[int] = None
    is_wild: bool = False


@dataclass
class BonusOutcome:
    triggered: bool
    feature: Optional[object] = None
    reward: Decimal = ZERO
    free_spins: int = 0
    multiplier: Optional[Decimal] = None


@dataclass
class JackpotWin:
    id: str
    name: str
    type: str
    amount: Decimal
    currency: str


@dataclass
class CascadeResult:
    iteration: int
    symbols_removed: List[Tuple[int, int]]
    symbols_added: List[Tuple[int, int]]
    reels: List[List[str]]
    wins: List[WinLine]
    total_win: Decimal


@dataclass
class SpinResult:
    game_id: str
    bet_amount: Decimal
    reels: List[List[str]]
    final_reels: List[List[str]]
    wins: List[WinLine]
    line_win: Decimal
    bonus_triggered: Optional[str] = None
    bonus_reward: Decimal = ZERO
    free_spins_awarded: int = 0
    multiplier: Optional[Decimal] = None
    jackpot_win: Optional[JackpotWin] = None
    cascades: List[CascadeResult] = field(default_factory=list)
    is_complete_screen_win: bool = False
    winning_symbols: List[Tuple[int, int]] = field(default_factory=list)
    total_win: Decimal = ZERO

    @property
    def cascade_win(self) -> Decimal:
        return sum((c.total_win for c in self.cascades), ZERO)

    @property
    def jackpot_amount(self) -> Decimal:
        return self.jackpot_win.amount if self.jackpot_win else ZERO


# --- Reel generation ---

@lru_cache(maxsize=64)
def _weighted_pool(symbols):
    pool = []
    for symbol in symbols:
        pool.extend([symbol] * symbol.sampling_weight)
    return tuple(pool)


def select_weighted_symbol(symbols, rng):
    """Uniform draw from a flattened pool holding max(1, 101 - rarity) copies of each symbol."""
    pool = _weighted_pool(tuple(symbols))
    return pool[rng.randrange(len(pool))]


def generate_reels(config, rng):
    return [
        [select_weighted_symbol(config.symbols, rng).id for _ in range(config.rows)]
        for _ in range(config.reels)
    ]


# --- Payline wins ---

def get_payline_symbols(reels, pattern):
    symbols = []
    for reel_index, row in enumerate(pattern):
        if reel_index < len(reels) and row < len(reels[reel_index]):
            symbols.append(reels[reel_index][row])
    return symbols


def _is_wild(config, symbol_id):
    symbol = config.symbol(symbol_id)
    return bool(symbol and symbol.is_wild)


def _length_multiplier(count):
    if count == 5:
        return 10
    if count == 4:
        return 5
    return 1


def calculate_payline_win(line_symbols, pattern, config, bet_amount, payline_id) -> Optional[WinLine]:
    """
    Left-to-right run from reel 0. A leading wild takes the first non-wild
    symbol on the line as its anchor (or stays the anchor if the line is all
    wild) and doubles the payout.
    """
    if not line_symbols:
        return None

    anchor = line_symbols[0]
    starts_wild = _is_wild(config, anchor)
    if starts_wild:
        for symbol_id in line_symbols[1:]:
            if not _is_wild(config, symbol_id):
                anchor = symbol_id
                break

    count = 0
    for symbol_id in line_symbols:
        if symbol_id == anchor or _is_wild(config, symbol_id):
            count += 1
        else:
            break

    if count < MIN_PAYLINE_LENGTH:
        return None
    symbol = config.symbol(anchor)
    if symbol is None:
        return None

    wild_multiplier = WILD_MULTIPLIER if starts_wild else 1
    payout = symbol.value * _length_multiplier(count) * wild_multiplier * to_decimal(bet_amount) / 100
    return WinLine(
        kind='payline',
        symbol=anchor,
        symbols=list(line_symbols[:count]),
        count=count,
        multiplier=wild_multiplier,
        payout=payout,
        positions=[(reel, pattern[reel]) for reel in range(count)],
        payline_id=payline_id,
        is_wild=starts_wild,
    )


def calculate_payline_wins(reels, config, bet_amount, selected_paylines=None) -> List[WinLine]:
    payline_ids = selected_paylines if selected_paylines is not None else config.active_payline_ids
    wins = []
    for payline_id in payline_ids:
        payline = config.payline(payline_id)
        if payline is None:
            continue
        win = calculate_payline_win(get_payline_symbols(reels, payline.pattern), payline.pattern,
                                    config, bet_amount, payline_id)
        if win and win.payout > 0:
            wins.append(win)
    return wins


# --- Cluster wins ---

def find_cluster(reels, reel, row, symbol_id, visited):
    """4-directional flood fill; marks every reached cell in ``visited``."""
    cluster = []
    stack = [(reel, row)]
    while stack:
        r, c = stack.pop()
        if (r, c) in visited:
            continue
        if r < 0 or r >= len(reels) or c < 0 or c >= len(reels[r]):
            continue
        if reels[r][c] != symbol_id:
            continue
        visited.add((r, c))
        cluster.append((r, c))
        stack.extend([(r + 1, c), (r - 1, c), (r, c + 1), (r, c - 1)])
    return cluster


def get_cluster_multiplier(size):
    if size >= 15:
        return 150
    if size >= 12:
        return 25
    if size >= 10:
        return 10
    if size >= MIN_CLUSTER_SIZE:
        return 5
    return 1


def calculate_cluster_wins(reels, config, bet_amount) -> List[WinLine]:
    wins = []
    visited = set()
    bet = to_decimal(bet_amount)
    for reel in range(len(reels)):
        for row in range(len(reels[reel])):
            if (reel, row) in visited:
                continue
            symbol_id = reels[reel][row]
            cluster = find_cluster(reels, reel, row, symbol_id, visited)
            if len(cluster) < MIN_CLUSTER_SIZE:
                continue
            symbol = config.symbol(symbol_id)
            if symbol is None:
                continue
            multiplier = get_cluster_multiplier(len(cluster))
            wins.append(WinLine(
                kind='cluster',
                symbol=symbol_id,
                symbols=[symbol_id] * len(cluster),
                count=len(cluster),
                multiplier=multiplier,
                payout=symbol.value * multiplier * bet / 100,
                positions=sorted(cluster),
            ))
    return wins


def evaluate_wins(reels, config, bet_amount, selected_paylines=None) -> List[WinLine]:
    if config.win_style == 'cluster':
        return calculate_cluster_wins(reels, config, bet_amount)
    return calculate_payline_wins(reels, config, bet_amount, selected_paylines)


def total_payout(wins) -> Decimal:
    return sum((w.payout for w in wins), ZERO)


# --- Bonus features ---

def count_symbol_occurrences(reels, symbol_id):
    return sum(1 for reel in reels for cell in reel if cell == symbol_id)


def is_trigger_matched(reels, condition, rng):
    if condition.type == 'symbol_combination':
        if not condition.symbols:
            return False
        return count_symbol_occurrences(reels, condition.symbols[0]) >= (condition.count or 3)
    if condition.type == 'random':
        probability = condition.probability if condition.probability is not None else 0.05
        return rng.random() < probability
    return False


def calculate_bonus_reward(feature, bet_amount):
    """Returns (coin_reward, free_spins, multiplier)."""
    coin_reward = ZERO
    free_spins = 0
    multiplier = Decimal('1')
    for reward in feature.rewards:
        if reward.type == 'coin_prize':
            coin_reward += reward.value * to_decimal(bet_amount)
        elif reward.type == 'free_spins':
            free_spins += int(reward.value)
        elif reward.type == 'multiplier':
            multiplier = reward.value
    return coin_reward, free_spins, multiplier


def check_bonus_features(reels, config, bet_amount, rng) -> BonusOutcome:
    """First active feature whose trigger matches wins; later features are not evaluated."""
    for feature in config.bonus_features:
        if not feature.is_active:
            continue
        if is_trigger_matched(reels, feature.trigger_condition, rng):
            coin_reward, free_spins, multiplier = calculate_bonus_reward(feature, bet_amount)
            return BonusOutcome(True, feature, coin_reward, free_spins, multiplier)
    return BonusOutcome(False)


# --- Jackpots ---

def is_jackpot_triggered(reels, condition, bet_amount, rng):
    if condition.type == 'random':
        probability = condition.probability if condition.probability is not None else 0.0001
        # Higher bets scale the chance, capped at 10x.
        adjusted = probability * min(float(bet_amount) / 100, 10)
        return rng.random() < adjusted
    if condition.type == 'symbol_combination':
        if not condition.symbols:
            return False
        return count_symbol_occurrences(reels, condition.symbols[0]) >= (condition.count or 5)
    return False


def check_jackpots(reels, config, bet_amount, rng, jackpot_store=None, currency=None) -> Optional[JackpotWin]:
    """
    First triggered jackpot wins. Progressive pools are claimed through the
    store, which pays the live amount and resets to seed atomically.

    When a bet currency is given only pools held in that currency are eligible.
    """
    for jackpot in config.jackpots:
        if currency is not None and jackpot.currency != currency:
            continue
        if not is_jackpot_triggered(reels, jackpot.trigger_condition, bet_amount, rng):
            continue
        if jackpot.type == 'progressive' and jackpot_store is not None:
            amount = jackpot_store.claim(jackpot.id)
        else:
            amount = jackpot.current_amount
        logger.info("Jackpot %s triggered on %s for %s %s", jackpot.id, config.id, amount, jackpot.currency)
        return JackpotWin(jackpot.id, jackpot.name, jackpot.type, amount, jackpot.currency)
    return None


# --- Cascades ---

def remove_winning_symbols(reels, wins):
    """Returns a copy of the grid with winning cells set to None, plus the removed positions."""
    cleared = [list(reel) for reel in reels]
    removed = []
    for win in wins:
        for reel, row in win.positions:
            if cleared[reel][row] is not None:
                cleared[reel][row] = None
                removed.append((reel, row))
    return cleared, removed


def refill_reels(reels, config, rng):
    """Survivors drop to the bottom of each reel; new weighted symbols fill from the top."""
    refilled = []
    added = []
    for reel_index, reel in enumerate(reels):
        survivors = [cell for cell in reel if cell is not None]
        missing = len(reel) - len(survivors)
        fresh = [select_weighted_symbol(config.symbols, rng).id for _ in range(missing)]
        added.extend((reel_index, row) for row in range(missing))
        refilled.append(fresh + survivors)
    return refilled, added


def process_cascades(reels, initial_wins, config, bet_amount, rng, selected_paylines=None,
                     limit=DEFAULT_CASCADE_LIMIT):
    """
    Tumbles the grid while it keeps producing wins. Each recorded iteration
    holds only the wins of its refilled grid. Returns (cascades, final_reels).
    """
    cascades = []
    current = [list(reel) for reel in reels]
    wins = initial_wins
    while wins and len(cascades) < limit:
        cleared, removed = remove_winning_symbols(current, wins)
        current, added = refill_reels(cleared, config, rng)
        wins = evaluate_wins(current, config, bet_amount, selected_paylines)
        if not wins:
            break
        cascades.append(CascadeResult(
            iteration=len(cascades),
            symbols_removed=removed,
            symbols_added=added,
            reels=[list(reel) for reel in current],
            wins=wins,
            total_win=total_payout(wins),
        ))
    return cascades, current


# --- Misc ---

def is_complete_screen_win(reels):
    if not reels or not reels[0]:
        return False
    first = reels[0][0]
    return all(cell == first for reel in reels for cell in reel)


def get_winning_symbol_positions(wins):
    positions = []
    for win in wins:
        positions.extend(win.positions)
    return positions


def resolve_spin(config, bet_amount, rng=None, jackpot_store=None, selected_paylines=None,
                 cascade_limit=DEFAULT_CASCADE_LIMIT, currency=None) -> SpinResult:
    """Generates a grid and resolves wins, bonus, jackpot and cascades. No wallet interaction."""
    rng = rng or secrets.SystemRandom()
    bet = to_decimal(bet_amount)

    reels = generate_reels(config, rng)
    wins = evaluate_wins(reels, config, bet, selected_paylines)
    line_win = total_payout(wins)

    bonus = check_bonus_features(reels, config, bet, rng)
    jackpot_win = check_jackpots(reels, config, bet, rng, jackpot_store, currency)

    cascades = []
    final_reels = [list(reel) for reel in reels]
    if config.has_cascades:
        cascades, final_reels = process_cascades(reels, wins, config, bet, rng, selected_paylines, cascade_limit)

    result = SpinResult(
        game_id=config.id,
        bet_amount=bet,
        reels=reels,
        final_reels=final_reels,
        wins=wins,
        line_win=line_win,
        bonus_triggered=bonus.feature.id if bonus.triggered else None,
        bonus_reward=bonus.reward,
        free_spins_awarded=bonus.free_spins,
        multiplier=bonus.multiplier,
        jackpot_win=jackpot_win,
        cascades=cascades,
        is_complete_screen_win=is_complete_screen_win(reels),
        winning_symbols=get_winning_symbol_positions(wins),
    )
    result.total_win = result.line_win + result.bonus_reward + result.jackpot_amount + result.cascade_win
    return result
