"""
Wallet collaborator.

The engine only ever calls ``place_bet`` (debit) and ``record_win`` (credit).
Both are atomic per call; a debit that cannot be covered raises
InsufficientFundsError and changes nothing.
"""
import logging
import threading
from decimal import Decimal
from typing import Protocol

from sqlalchemy import select, update

from ..exceptions import InsufficientFundsError, InvalidBetError
from ..models import WalletAccount, WalletTransaction
from ..schemas import WalletTransactionSchema
from ..utils.game_logger import GameEventLogger
from ..utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


class Wallet(Protocol):
    def place_bet(self, user_id, amount, currency, game_id, game_category) -> Decimal: ...

    def record_win(self, user_id, amount, currency, game_id, game_category) -> Decimal: ...


def _check_amount(amount):
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidBetError(status_message="Amount must be positive", details={'amount': str(amount)})
    return amount


class InMemoryWallet:
    """Process-local balances keyed by (user_id, currency)."""

    def __init__(self, balances=None):
        self._balances = {}
        self._lock = threading.Lock()
        self.transactions = []
        for (user_id, currency), amount in (balances or {}).items():
            self._balances[(user_id, currency)] = to_decimal(amount)

    def get_balance(self, user_id, currency) -> Decimal:
        with self._lock:
            return self._balances.get((user_id, currency), ZERO)

    def deposit(self, user_id, amount, currency):
        amount = _check_amount(amount)
        with self._lock:
            balance = self._balances.get((user_id, currency), ZERO) + amount
            self._balances[(user_id, currency)] = balance
        return balance

    def place_bet(self, user_id, amount, currency, game_id, game_category):
        amount = _check_amount(amount)
        with self._lock:
            balance = self._balances.get((user_id, currency), ZERO)
            if balance < amount:
                raise InsufficientFundsError(
                    status_message=f"Insufficient {currency} balance",
                    details={'balance': str(balance), 'required': str(amount)}
                )
            balance -= amount
            self._balances[(user_id, currency)] = balance
            self.transactions.append(('bet', user_id, amount, currency, game_id, game_category))
        GameEventLogger.log_financial_event('bet', user_id, amount, currency, balance, game_id,
                                            {'game_category': game_category})
        return balance

    def record_win(self, user_id, amount, currency, game_id, game_category):
        amount = _check_amount(amount)
        with self._lock:
            balance = self._balances.get((user_id, currency), ZERO) + amount
            self._balances[(user_id, currency)] = balance
            self.transactions.append(('win', user_id, amount, currency, game_id, game_category))
        GameEventLogger.log_financial_event('win', user_id, amount, currency, balance, game_id,
                                            {'game_category': game_category})
        return balance


class SqlWallet:
    """Balances in the wallet_account table; each call is one transaction."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _get_or_create(self, session, user_id, currency):
        account = session.execute(
            select(WalletAccount).where(WalletAccount.user_id == user_id, WalletAccount.currency == currency)
        ).scalar_one_or_none()
        if account is None:
            account = WalletAccount(user_id=user_id, currency=currency, balance=ZERO)
            session.add(account)
            session.flush()
        return account

    def get_balance(self, user_id, currency) -> Decimal:
        with self.session_factory() as session:
            account = session.execute(
                select(WalletAccount).where(WalletAccount.user_id == user_id, WalletAccount.currency == currency)
            ).scalar_one_or_none()
            return to_decimal(account.balance) if account else ZERO

    def deposit(self, user_id, amount, currency):
        amount = _check_amount(amount)
        with self.session_factory.begin() as session:
            self._get_or_create(session, user_id, currency)
            session.execute(
                update(WalletAccount)
                .where(WalletAccount.user_id == user_id, WalletAccount.currency == currency)
                .values(balance=WalletAccount.balance + amount)
            )
            return self._balance_in(session, user_id, currency)

    def _balance_in(self, session, user_id, currency):
        return to_decimal(session.execute(
            select(WalletAccount.balance)
            .where(WalletAccount.user_id == user_id, WalletAccount.currency == currency)
        ).scalar_one())

    def place_bet(self, user_id, amount, currency, game_id, game_category):
        amount = _check_amount(amount)
        with self.session_factory.begin() as session:
            self._get_or_create(session, user_id, currency)
            # Conditional decrement: the row only changes if the balance covers the stake.
            result = session.execute(
                update(WalletAccount)
                .where(WalletAccount.user_id == user_id,
                       WalletAccount.currency == currency,
                       WalletAccount.balance >= amount)
                .values(balance=WalletAccount.balance - amount)
            )
            if result.rowcount != 1:
                balance = self._balance_in(session, user_id, currency)
                raise InsufficientFundsError(
                    status_message=f"Insufficient {currency} balance",
                    details={'balance': str(balance), 'required': str(amount)}
                )
            balance = self._balance_in(session, user_id, currency)
            session.add(WalletTransaction(user_id=user_id, currency=currency, amount=amount,
                                          transaction_type='bet', game_id=game_id,
                                          game_category=game_category, balance_after=balance))
        GameEventLogger.log_financial_event('bet', user_id, amount, currency, balance, game_id,
                                            {'game_category': game_category})
        return balance

    def record_win(self, user_id, amount, currency, game_id, game_category):
        amount = _check_amount(amount)
        with self.session_factory.begin() as session:
            self._get_or_create(session, user_id, currency)
            session.execute(
                update(WalletAccount)
                .where(WalletAccount.user_id == user_id, WalletAccount.currency == currency)
                .values(balance=WalletAccount.balance + amount)
            )
            balance = self._balance_in(session, user_id, currency)
            session.add(WalletTransaction(user_id=user_id, currency=currency, amount=amount,
                                          transaction_type='win', game_id=game_id,
                                          game_category=game_category, balance_after=balance))
        GameEventLogger.log_financial_event('win', user_id, amount, currency, balance, game_id,
                                            {'game_category': game_category})
        return balance

    def get_transactions(self, user_id, limit=50):
        with self.session_factory() as session:
            rows = session.execute(
                select(WalletTransaction)
                .where(WalletTransaction.user_id == user_id)
                .order_by(WalletTransaction.id.desc())
                .limit(limit)
            ).scalars().all()
            return WalletTransactionSchema(many=True).dump(rows)
