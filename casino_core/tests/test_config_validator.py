import os
import tempfile
import unittest
import warnings
from decimal import Decimal
from unittest.mock import patch

from casino_core.config_validator import ConfigValidationError, ConfigValidator, validate_config

PRODUCTION = {'CASINO_ENV': 'production', 'DATABASE_URL': 'postgresql://casino@db/casino'}


class TestConfigValidator(unittest.TestCase):

    def validate(self, **env):
        with patch.dict(os.environ, env, clear=True):
            return ConfigValidator().validate_all()

    def test_testing_defaults(self):
        config = self.validate(CASINO_ENV='testing')
        self.assertEqual(config['ENVIRONMENT'], 'testing')
        self.assertEqual(config['DATABASE_URL'], 'sqlite://')
        self.assertEqual(config['BLACKJACK_DECKS'], 6)
        self.assertEqual(config['BACCARAT_DECKS'], 8)
        self.assertEqual(config['CASCADE_LIMIT'], 10)
        self.assertEqual(config['BACCARAT_COMMISSION'], Decimal('0.05'))
        self.assertFalse(config['BACCARAT_PUSH_ON_TIE'])
        self.assertFalse(config['LOG_JSON'])
        self.assertIsNone(config['RNG_SEED'])
        self.assertIsNone(config['SLOT_CONFIG_PATH'])

    def test_environment_defaults_to_development(self):
        with self.assertWarns(UserWarning):
            config = self.validate()
        self.assertEqual(config['ENVIRONMENT'], 'development')

    def test_unknown_environment(self):
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='staging')

    def test_production_needs_a_database(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            self.validate(CASINO_ENV='production')
        self.assertIn('DATABASE_URL', str(ctx.exception))

    def test_production_logs_json_by_default(self):
        config = self.validate(**PRODUCTION)
        self.assertTrue(config['LOG_JSON'])
        self.assertEqual(config['DATABASE_URL'], PRODUCTION['DATABASE_URL'])

    def test_production_refuses_a_seeded_rng(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            self.validate(RNG_SEED='42', **PRODUCTION)
        self.assertIn('RNG_SEED', str(ctx.exception))

    def test_seed_outside_production(self):
        self.assertEqual(self.validate(CASINO_ENV='testing', RNG_SEED='42')['RNG_SEED'], 42)
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', RNG_SEED='forty-two')

    def test_unsupported_database_driver(self):
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', DATABASE_URL='mysql://db/casino')

    def test_deck_counts_are_bounded(self):
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', BLACKJACK_DECKS='9')
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', BACCARAT_DECKS='eight')
        self.assertEqual(self.validate(CASINO_ENV='testing', BLACKJACK_DECKS='2')['BLACKJACK_DECKS'], 2)

    def test_commission_must_be_a_fraction(self):
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', BACCARAT_COMMISSION='1')
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', BACCARAT_COMMISSION='five percent')
        config = self.validate(CASINO_ENV='testing', BACCARAT_COMMISSION='0.04', BACCARAT_PUSH_ON_TIE='yes')
        self.assertEqual(config['BACCARAT_COMMISSION'], Decimal('0.04'))
        self.assertTrue(config['BACCARAT_PUSH_ON_TIE'])

    def test_log_level(self):
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', LOG_LEVEL='LOUD')
        self.assertEqual(self.validate(CASINO_ENV='testing', LOG_LEVEL='debug')['LOG_LEVEL'], 'DEBUG')

    def test_slot_config_path_must_exist(self):
        with self.assertRaises(ConfigValidationError):
            self.validate(CASINO_ENV='testing', SLOT_CONFIG_PATH='/nonexistent/games.json')
        with tempfile.NamedTemporaryFile(suffix='.json') as handle:
            config = self.validate(CASINO_ENV='testing', SLOT_CONFIG_PATH=handle.name)
        self.assertEqual(config['SLOT_CONFIG_PATH'], handle.name)

    def test_sqlite_in_production_only_warns(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            config = self.validate(CASINO_ENV='production', DATABASE_URL='sqlite:///casino.db')
        self.assertEqual(config['DATABASE_URL'], 'sqlite:///casino.db')
        self.assertTrue(any('SQLite' in str(w.message) for w in caught))


class TestValidateConfig(unittest.TestCase):

    @patch('sys.stderr')
    def test_invalid_configuration_aborts_startup(self, mock_stderr):
        with patch.dict(os.environ, {'CASINO_ENV': 'production'}, clear=True):
            with self.assertRaises(SystemExit) as ctx:
                validate_config()
        self.assertEqual(ctx.exception.code, 1)

    def test_valid_configuration(self):
        with patch.dict(os.environ, {'CASINO_ENV': 'testing'}, clear=True):
            self.assertEqual(validate_config()['ENVIRONMENT'], 'testing')


if __name__ == '__main__':
    unittest.main()
