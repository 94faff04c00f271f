"""
Engine configuration with fail-fast validation.

Values are read from the environment (and a local .env file) once at import
time and validated by config_validator.
"""
from decimal import Decimal

from dotenv import load_dotenv

from casino_core.config_validator import validate_config

load_dotenv()


class Config:
    """Configuration validated from the environment."""

    _validated_config = validate_config()

    ENVIRONMENT = _validated_config['ENVIRONMENT']
    TESTING = False

    # Persistence
    DATABASE_URL = _validated_config['DATABASE_URL']
    DATABASE_ECHO = False

    # Logging
    LOG_LEVEL = _validated_config['LOG_LEVEL']
    LOG_JSON = _validated_config['LOG_JSON']

    # Table settings
    BLACKJACK_DECKS = _validated_config['BLACKJACK_DECKS']
    BACCARAT_DECKS = _validated_config['BACCARAT_DECKS']
    BACCARAT_COMMISSION = _validated_config['BACCARAT_COMMISSION']
    BACCARAT_PUSH_ON_TIE = _validated_config['BACCARAT_PUSH_ON_TIE']

    # Slots
    CASCADE_LIMIT = _validated_config['CASCADE_LIMIT']
    SLOT_CONFIG_PATH = _validated_config['SLOT_CONFIG_PATH']

    # None means secrets.SystemRandom()
    RNG_SEED = _validated_config['RNG_SEED']

    CURRENCIES = ('GC', 'SC')


class TestingConfig(Config):
    TESTING = True
    ENVIRONMENT = 'testing'
    DATABASE_URL = 'sqlite://'
    LOG_LEVEL = 'WARNING'
    LOG_JSON = False
    BLACKJACK_DECKS = 6
    BACCARAT_DECKS = 8
    BACCARAT_COMMISSION = Decimal('0.05')
    BACCARAT_PUSH_ON_TIE = False
    CASCADE_LIMIT = 10
    SLOT_CONFIG_PATH = None
    RNG_SEED = 1234
