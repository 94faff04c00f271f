"""
Session accounting.

One open GameSession per (user, game) pair accumulates every resolved
outcome: rounds, stakes, wins, streaks and realized RTP. Closing a session is
idempotent and never touches in-flight game state.
"""
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from ..schemas import GameSessionSchema
from ..utils.game_logger import GameEventLogger
from ..utils.ids import generate_game_id
from ..utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


@dataclass
class GameDecision:
    hand: int
    situation: str
    decision: str
    amount: Decimal
    optimal: bool


@dataclass
class GameSession:
    session_id: str
    user_id: str
    game_id: str
    game_type: str
    currency: str
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    rounds_played: int = 0
    total_bet: Decimal = ZERO
    total_win: Decimal = ZERO
    net_result: Decimal = ZERO
    biggest_win: Decimal = ZERO
    winning_rounds: int = 0
    losing_rounds: int = 0
    current_streak: int = 0  # positive: wins in a row, negative: losses in a row
    longest_win_streak: int = 0
    longest_lose_streak: int = 0
    average_bet: Decimal = ZERO
    rtp: Decimal = ZERO
    house_edge: Decimal = ZERO
    bonus_rounds: int = 0
    free_spins_triggered: int = 0
    features_triggered: List[str] = field(default_factory=list)
    decisions: List[GameDecision] = field(default_factory=list)

    @property
    def is_open(self):
        return self.end_time is None

    @property
    def session_duration(self):
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


def apply_outcome(session, bet, win, feature_id=None, free_spins=0):
    """Folds one resolved round into the running aggregate."""
    session.rounds_played += 1
    session.total_bet += bet
    session.total_win += win
    session.net_result = session.total_win - session.total_bet
    session.biggest_win = max(session.biggest_win, win)

    if win > 0:
        session.winning_rounds += 1
        session.current_streak = session.current_streak + 1 if session.current_streak > 0 else 1
        session.longest_win_streak = max(session.longest_win_streak, session.current_streak)
    else:
        session.losing_rounds += 1
        session.current_streak = session.current_streak - 1 if session.current_streak < 0 else -1
        session.longest_lose_streak = max(session.longest_lose_streak, -session.current_streak)

    if feature_id:
        session.bonus_rounds += 1
        session.features_triggered.append(feature_id)
    session.free_spins_triggered += free_spins

    session.average_bet = session.total_bet / session.rounds_played
    if session.total_bet > 0:
        session.rtp = session.total_win / session.total_bet * HUNDRED
        session.house_edge = (session.total_bet - session.total_win) / session.total_bet * HUNDRED
    return session


class SessionTracker:

    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()

    def start_session(self, user_id, game_id, game_type, currency) -> GameSession:
        session = GameSession(
            session_id=generate_game_id('session'),
            user_id=user_id,
            game_id=game_id,
            game_type=game_type,
            currency=currency,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Session %s started for user %s on %s", session.session_id, user_id, game_id)
        return session

    def get(self, session_id) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def _find_open(self, user_id, game_id):
        for session in self._sessions.values():
            if session.user_id == user_id and session.game_id == game_id and session.is_open:
                return session
        return None

    def find_open_session(self, user_id, game_id) -> Optional[GameSession]:
        with self._lock:
            return self._find_open(user_id, game_id)

    def _open_or_create(self, user_id, game_id, game_type, currency):
        session = self._find_open(user_id, game_id)
        if session is None:
            session = GameSession(session_id=generate_game_id('session'), user_id=user_id,
                                  game_id=game_id, game_type=game_type, currency=currency)
            self._sessions[session.session_id] = session
        return session

    def ensure_session(self, user_id, game_id, game_type, currency) -> GameSession:
        """Returns the open session for the pair, opening one if needed."""
        with self._lock:
            return self._open_or_create(user_id, game_id, game_type, currency)

    def record_outcome(self, user_id, game_id, game_type, currency, bet, win,
                       feature_id=None, free_spins=0) -> GameSession:
        bet = to_decimal(bet)
        win = to_decimal(win)
        with self._lock:
            session = self._open_or_create(user_id, game_id, game_type, currency)
            apply_outcome(session, bet, win, feature_id, free_spins)
        return session

    def record_decision(self, user_id, game_id, decision: GameDecision):
        """Appends a player decision to the open session; ignored when no session is open."""
        with self._lock:
            session = self._find_open(user_id, game_id)
            if session is None:
                return None
            session.decisions.append(decision)
            return session

    def end_session(self, session_id) -> Optional[GameSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.end_time is None:
                session.end_time = datetime.now(timezone.utc)
                closing = True
            else:
                closing = False
        if closing:
            GameEventLogger.log_game_event('session_closed', session.user_id, session.game_type, session.game_id,
                                           session.total_bet, session.total_win,
                                           {'session_id': session.session_id,
                                            'rounds_played': session.rounds_played})
        return session

    def dump(self, session):
        return GameSessionSchema().dump(session)

    def get_statistics(self, game_id=None, game_type=None):
        """Aggregate over every session of a game id (or of a game type). None when there are none."""
        with self._lock:
            sessions = [s for s in self._sessions.values()
                        if (game_id is None or s.game_id == game_id)
                        and (game_type is None or s.game_type == game_type)]
            if not sessions:
                return None
            total_rounds = sum(s.rounds_played for s in sessions)
            total_bet = sum((s.total_bet for s in sessions), ZERO)
            total_win = sum((s.total_win for s in sessions), ZERO)
            features = Counter()
            for s in sessions:
                features.update(s.features_triggered)
            biggest_win = max(s.biggest_win for s in sessions)

        return {
            'total_sessions': len(sessions),
            'total_rounds': total_rounds,
            'total_bet': total_bet,
            'total_win': total_win,
            'rtp': total_win / total_bet * HUNDRED if total_bet > 0 else ZERO,
            'house_edge': (total_bet - total_win) / total_bet * HUNDRED if total_bet > 0 else ZERO,
            'average_rounds_per_session': Decimal(total_rounds) / len(sessions),
            'average_bet': total_bet / total_rounds if total_rounds else ZERO,
            'biggest_win': biggest_win,
            'popular_features': dict(features),
        }
