from decimal import Decimal, InvalidOperation

from casino_core.exceptions import InvalidBetError

ZERO = Decimal('0')


def to_decimal(amount) -> Decimal:
    """Coerce int/float/str amounts to Decimal without binary float artifacts."""
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, bool):
        raise TypeError("Boolean is not a valid amount")
    return Decimal(str(amount))


def parse_bet_amount(amount) -> Decimal:
    """Like to_decimal, but anything that is not a finite number is an InvalidBetError."""
    try:
        value = to_decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidBetError(status_message="Bet amount must be a number", details={'bet_amount': repr(amount)})
    if not value.is_finite():
        raise InvalidBetError(status_message="Bet amount must be a finite number",
                              details={'bet_amount': str(value)})
    return value
