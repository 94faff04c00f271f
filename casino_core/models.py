from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, DateTime, Index, Integer, JSON, Numeric, String,
                        UniqueConstraint, create_engine)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

MONEY = Numeric(20, 8)


def _utcnow():
    return datetime.now(timezone.utc)


class WalletAccount(Base):
    __tablename__ = 'wallet_account'
    id = Column(Integer, primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    currency = Column(String(10), nullable=False)
    balance = Column(MONEY, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint('user_id', 'currency', name='uq_wallet_user_currency'),)

    def __repr__(self):
        return f"<WalletAccount {self.user_id} {self.balance} {self.currency}>"


class WalletTransaction(Base):
    __tablename__ = 'wallet_transaction'
    id = Column(Integer, primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    currency = Column(String(10), nullable=False)
    amount = Column(MONEY, nullable=False)
    transaction_type = Column(String(20), nullable=False)  # bet, win
    game_id = Column(String(120), nullable=True, index=True)
    game_category = Column(String(20), nullable=True)
    balance_after = Column(MONEY, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<WalletTransaction {self.transaction_type} {self.amount} {self.currency}>"


class JackpotPool(Base):
    __tablename__ = 'jackpot_pool'
    id = Column(String(100), primary_key=True)
    currency = Column(String(10), nullable=False)
    current_amount = Column(MONEY, nullable=False)
    seed_amount = Column(MONEY, nullable=False)
    contribution_rate = Column(Numeric(10, 6), nullable=False, default=0)
    is_progressive = Column(Boolean, nullable=False, default=True)
    times_won = Column(Integer, nullable=False, default=0)
    last_won_at = Column(DateTime(timezone=True), nullable=True)
    last_won_amount = Column(MONEY, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<JackpotPool {self.id} {self.current_amount}>"


class GameRecord(Base):
    __tablename__ = 'game_record'
    id = Column(String(160), primary_key=True)
    record_type = Column(String(30), nullable=False)  # spin, blackjack, roulette, baccarat, session
    user_id = Column(String(100), nullable=True)
    game_id = Column(String(120), nullable=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index('ix_game_record_user_type', 'user_id', 'record_type'),)

    def __repr__(self):
        return f"<GameRecord {self.id}>"


def create_db_engine(database_url, echo=False):
    if database_url.startswith('sqlite'):
        # In-memory SQLite needs a single shared connection across threads.
        return create_engine(database_url, echo=echo,
                             connect_args={'check_same_thread': False},
                             poolclass=StaticPool)
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_db(database_url, echo=False):
    """Creates the engine, the tables and a session factory."""
    engine = create_db_engine(database_url, echo)
    Base.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine, expire_on_commit=False)
