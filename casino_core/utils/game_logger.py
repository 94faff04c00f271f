"""
Game Event Logging
Audit logging for wagers, payouts and jackpot movements
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal

audit_logger = logging.getLogger('casino_core.audit')


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class GameEventLogger:
    """Centralized game and financial event logging"""

    @staticmethod
    def log_financial_event(event_type: str, user_id, amount=None, currency: str = None,
                            balance_after=None, game_id: str = None, details: dict = None):
        """Log wallet debits and credits"""
        event_data = {
            'event_type': 'financial',
            'sub_type': event_type,
            'user_id': user_id,
            'amount': amount,
            'currency': currency,
            'balance_after': balance_after,
            'game_id': game_id,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'details': details or {}
        }
        audit_logger.info(f"FINANCIAL_EVENT: {json.dumps(event_data, default=_json_default)}")

    @staticmethod
    def log_game_event(event_type: str, user_id, game_type: str = None, game_id: str = None,
                       bet_amount=None, win_amount=None, details: dict = None):
        """Log resolved rounds and state transitions"""
        event_data = {
            'event_type': 'game',
            'sub_type': event_type,
            'user_id': user_id,
            'game_type': game_type,
            'game_id': game_id,
            'bet_amount': bet_amount,
            'win_amount': win_amount,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'details': details or {}
        }
        audit_logger.info(f"GAME_EVENT: {json.dumps(event_data, default=_json_default)}")

    @staticmethod
    def log_jackpot_event(event_type: str, jackpot_id: str, amount=None, pool_after=None, details: dict = None):
        """Log jackpot wins and resets"""
        event_data = {
            'event_type': 'jackpot',
            'sub_type': event_type,
            'jackpot_id': jackpot_id,
            'amount': amount,
            'pool_after': pool_after,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'details': details or {}
        }
        level = logging.WARNING if event_type == 'jackpot_won' else logging.INFO
        audit_logger.log(level, f"JACKPOT_EVENT: {json.dumps(event_data, default=_json_default)}")
