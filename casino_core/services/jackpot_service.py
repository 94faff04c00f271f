"""
Shared progressive jackpot pools.

Every spin on a game contributes to the same pool, so contributions must be
additive under concurrency and a claim (pay + reset to seed) must not lose or
double-count a contribution that races with it.
"""
import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update

from ..exceptions import NotFoundException
from ..models import JackpotPool
from ..schemas import JackpotPoolSchema
from ..utils.game_logger import GameEventLogger
from ..utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class JackpotSnapshot:
    id: str
    currency: str
    current_amount: Decimal
    seed_amount: Decimal
    contribution_rate: Decimal
    times_won: int = 0
    last_won_amount: Optional[Decimal] = None
    last_won_at: Optional[datetime] = None


def _not_found(jackpot_id):
    return NotFoundException(status_message=f"Jackpot {jackpot_id} not found", details={'jackpot_id': jackpot_id})


class InMemoryJackpotStore:
    """Pools behind a single mutex; every read-modify-write happens while holding it."""

    def __init__(self):
        self._pools = {}
        self._lock = threading.Lock()

    def register(self, jackpot_id, currency, initial_amount, seed_amount, contribution_rate=ZERO):
        """Adds a pool if it does not exist yet; an existing pool keeps its live amount."""
        with self._lock:
            pool = self._pools.get(jackpot_id)
            if pool is None:
                pool = JackpotSnapshot(jackpot_id, currency, to_decimal(initial_amount),
                                       to_decimal(seed_amount), to_decimal(contribution_rate))
                self._pools[jackpot_id] = pool
            return pool.current_amount

    def contribute(self, jackpot_id, amount) -> Decimal:
        amount = to_decimal(amount)
        with self._lock:
            pool = self._pools.get(jackpot_id)
            if pool is None:
                raise _not_found(jackpot_id)
            pool.current_amount += amount
            return pool.current_amount

    def claim(self, jackpot_id) -> Decimal:
        """Pays out the whole pool and resets it to seed in one step."""
        with self._lock:
            pool = self._pools.get(jackpot_id)
            if pool is None:
                raise _not_found(jackpot_id)
            won = pool.current_amount
            pool.current_amount = pool.seed_amount
            pool.times_won += 1
            pool.last_won_amount = won
            pool.last_won_at = datetime.now(timezone.utc)
            pool_after = pool.current_amount
        GameEventLogger.log_jackpot_event('jackpot_won', jackpot_id, won, pool_after)
        return won

    def get(self, jackpot_id) -> Decimal:
        with self._lock:
            pool = self._pools.get(jackpot_id)
            if pool is None:
                raise _not_found(jackpot_id)
            return pool.current_amount

    def snapshot(self):
        with self._lock:
            return {
                pool_id: {
                    'id': pool.id,
                    'currency': pool.currency,
                    'current_amount': str(pool.current_amount),
                    'seed_amount': str(pool.seed_amount),
                    'contribution_rate': str(pool.contribution_rate),
                    'times_won': pool.times_won,
                    'last_won_amount': str(pool.last_won_amount) if pool.last_won_amount is not None else None,
                }
                for pool_id, pool in self._pools.items()
            }


class SqlJackpotStore:
    """
    Pools in the jackpot_pool table. Contributions are a single
    ``UPDATE ... SET current_amount = current_amount + :x`` statement; a claim
    locks the row (SELECT ... FOR UPDATE where supported) before resetting it.
    """

    def __init__(self, session_factory, serialize_writes=False):
        self.session_factory = session_factory
        # SQLite has no row locks and a shared in-memory connection; writes are
        # serialized in-process there.
        self._write_lock = threading.Lock() if serialize_writes else nullcontext()

    def register(self, jackpot_id, currency, initial_amount, seed_amount, contribution_rate=ZERO):
        with self._write_lock, self.session_factory.begin() as session:
            pool = session.get(JackpotPool, jackpot_id)
            if pool is None:
                pool = JackpotPool(id=jackpot_id, currency=currency,
                                   current_amount=to_decimal(initial_amount),
                                   seed_amount=to_decimal(seed_amount),
                                   contribution_rate=to_decimal(contribution_rate))
                session.add(pool)
                logger.info("Registered jackpot pool %s (%s %s)", jackpot_id, initial_amount, currency)
            return to_decimal(pool.current_amount)

    def contribute(self, jackpot_id, amount) -> Decimal:
        amount = to_decimal(amount)
        with self._write_lock, self.session_factory.begin() as session:
            result = session.execute(
                update(JackpotPool)
                .where(JackpotPool.id == jackpot_id)
                .values(current_amount=JackpotPool.current_amount + amount)
            )
            if result.rowcount != 1:
                raise _not_found(jackpot_id)
            return to_decimal(session.execute(
                select(JackpotPool.current_amount).where(JackpotPool.id == jackpot_id)
            ).scalar_one())

    def claim(self, jackpot_id) -> Decimal:
        with self._write_lock, self.session_factory.begin() as session:
            pool = session.execute(
                select(JackpotPool).where(JackpotPool.id == jackpot_id).with_for_update()
            ).scalar_one_or_none()
            if pool is None:
                raise _not_found(jackpot_id)
            won = to_decimal(pool.current_amount)
            # Subtract what was paid rather than overwriting, so a contribution
            # committed after our read is carried into the new pool.
            session.execute(
                update(JackpotPool)
                .where(JackpotPool.id == jackpot_id)
                .values(current_amount=JackpotPool.current_amount - won + JackpotPool.seed_amount,
                        times_won=JackpotPool.times_won + 1,
                        last_won_amount=won,
                        last_won_at=datetime.now(timezone.utc))
            )
        GameEventLogger.log_jackpot_event('jackpot_won', jackpot_id, won)
        return won

    def get(self, jackpot_id) -> Decimal:
        with self.session_factory() as session:
            pool = session.get(JackpotPool, jackpot_id)
            if pool is None:
                raise _not_found(jackpot_id)
            return to_decimal(pool.current_amount)

    def snapshot(self):
        with self.session_factory() as session:
            pools = session.execute(select(JackpotPool)).scalars().all()
            return {row['id']: row for row in JackpotPoolSchema(many=True).dump(pools)}
