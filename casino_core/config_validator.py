"""
Configuration validation and startup checks for the game engine.

Fail-fast validation of the environment: table and shoe settings must be
sane numbers and production deployments must not run on a seeded RNG or an
ephemeral database.
"""

import os
import sys
import warnings
from decimal import Decimal, InvalidOperation
from typing import List, Optional


TRUTHY = ('true', '1', 't', 'yes')


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


class ConfigValidator:
    """Validates engine configuration and enforces production safety."""

    def __init__(self, environment: str = None):
        """
        Initialize the configuration validator.

        Args:
            environment: production, development or testing. If None, read from CASINO_ENV.
        """
        if environment is None:
            environment = os.getenv('CASINO_ENV', 'development')
        environment = environment.lower()
        if environment not in ('production', 'development', 'testing'):
            raise ConfigValidationError(f"CASINO_ENV must be production, development or testing, got '{environment}'")

        self.environment = environment
        self.is_production = environment == 'production'
        self.is_testing = environment == 'testing'
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def _get_bool(self, var_name: str, default: str) -> bool:
        return os.getenv(var_name, default).lower() in TRUTHY

    def _get_int(self, var_name: str, default: int, minimum: int, maximum: int) -> int:
        raw = os.getenv(var_name)
        if raw is None or raw == '':
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ConfigValidationError(f"{var_name} must be an integer, got '{raw}'")
        if not minimum <= value <= maximum:
            self.errors.append(f"CRITICAL: {var_name} must be between {minimum} and {maximum}, got {value}")
        return value

    def validate_database_config(self) -> str:
        """Validate database configuration."""
        database_url = os.getenv('DATABASE_URL')

        if database_url:
            if not database_url.startswith(('postgresql://', 'postgresql+psycopg2://', 'sqlite://')):
                self.errors.append("CRITICAL: DATABASE_URL must use a supported database driver")
            elif self.is_production and database_url.startswith('sqlite://'):
                self.warnings.append("SQLite DATABASE_URL in production does not support concurrent jackpot updates across processes")
            return database_url

        if self.is_production:
            self.errors.append("CRITICAL: DATABASE_URL must be set in production environment")
            return ''

        if not self.is_testing:
            self.warnings.append("DATABASE_URL not set - using in-memory SQLite")
        return 'sqlite://'

    def validate_logging_config(self):
        level = os.getenv('LOG_LEVEL', 'INFO').upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            self.errors.append(f"CRITICAL: LOG_LEVEL '{level}' is not a valid logging level")
        if self.is_production and level == 'DEBUG':
            self.warnings.append("LOG_LEVEL=DEBUG in production logs every dealt card")
        json_logs = self._get_bool('LOG_JSON', 'True' if self.is_production else 'False')
        return level, json_logs

    def validate_table_config(self) -> dict:
        """Validate shoe sizes and baccarat commission."""
        config = {
            'BLACKJACK_DECKS': self._get_int('BLACKJACK_DECKS', 6, 1, 8),
            'BACCARAT_DECKS': self._get_int('BACCARAT_DECKS', 8, 1, 8),
            'CASCADE_LIMIT': self._get_int('CASCADE_LIMIT', 10, 0, 50),
            'BACCARAT_PUSH_ON_TIE': self._get_bool('BACCARAT_PUSH_ON_TIE', 'False'),
        }

        raw_commission = os.getenv('BACCARAT_COMMISSION', '0.05')
        try:
            commission = Decimal(raw_commission)
        except InvalidOperation:
            raise ConfigValidationError(f"BACCARAT_COMMISSION must be a decimal, got '{raw_commission}'")
        if not Decimal('0') <= commission < Decimal('1'):
            self.errors.append("CRITICAL: BACCARAT_COMMISSION must be in [0, 1)")
        config['BACCARAT_COMMISSION'] = commission
        return config

    def validate_rng_config(self) -> Optional[int]:
        raw_seed = os.getenv('RNG_SEED')
        if not raw_seed:
            return None
        if self.is_production:
            self.errors.append("CRITICAL: RNG_SEED must not be set in production (outcomes would be predictable)")
            return None
        try:
            return int(raw_seed)
        except ValueError:
            raise ConfigValidationError(f"RNG_SEED must be an integer, got '{raw_seed}'")

    def validate_slot_config_path(self) -> Optional[str]:
        path = os.getenv('SLOT_CONFIG_PATH')
        if path and not os.path.isfile(path):
            self.errors.append(f"CRITICAL: SLOT_CONFIG_PATH '{path}' does not exist")
        return path or None

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If critical configuration is missing or invalid
        """
        config = {'ENVIRONMENT': self.environment}

        try:
            config['DATABASE_URL'] = self.validate_database_config()
            config['LOG_LEVEL'], config['LOG_JSON'] = self.validate_logging_config()
            config.update(self.validate_table_config())
            config['RNG_SEED'] = self.validate_rng_config()
            config['SLOT_CONFIG_PATH'] = self.validate_slot_config_path()

            if self.errors:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
                if self.warnings:
                    error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
                raise ConfigValidationError(error_msg)

            for warning in self.warnings:
                warnings.warn(warning, UserWarning)

            return config

        except ConfigValidationError:
            raise
        except Exception as e:
            raise ConfigValidationError(f"Configuration validation error: {str(e)}") from e


def validate_config() -> dict:
    """
    Validate configuration with fail-fast behavior.

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        validator = ConfigValidator()
        return validator.validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nEngine startup ABORTED\n", file=sys.stderr)
        sys.exit(1)
