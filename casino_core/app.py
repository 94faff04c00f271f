"""
Engine assembly.

``create_casino`` wires the paytable registry, the collaborators (wallet,
jackpot store, record store) and the four game services from a config class,
the way an application factory wires extensions into an app.
"""
import logging
import random
import secrets
from dataclasses import dataclass
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from .config import Config
from .models import init_db
from .services.baccarat_service import BaccaratService
from .services.blackjack_service import BlackjackService
from .services.jackpot_service import InMemoryJackpotStore, SqlJackpotStore
from .services.record_store import InMemoryRecordStore, SqlRecordStore
from .services.roulette_service import RouletteService
from .services.session_service import SessionTracker
from .services.slot_service import SlotGameService
from .services.wallet_service import InMemoryWallet, SqlWallet
from .utils.slot_config import build_default_registry

PACKAGE_LOGGER = 'casino_core'


class EnvironmentFilter(logging.Filter):
    """Stamps every record with the deployment environment."""

    def __init__(self, environment):
        super().__init__()
        self.environment = environment

    def filter(self, record):
        record.environment = self.environment
        return True


def configure_logging(config_class=Config):
    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = logging.StreamHandler()
    if config_class.LOG_JSON:
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(environment)s %(name)s %(funcName)s %(lineno)d %(message)s'
        )
    else:
        formatter = logging.Formatter('%(asctime)s %(levelname)s [%(environment)s] %(name)s: %(message)s')
    handler.setFormatter(formatter)
    handler.addFilter(EnvironmentFilter(config_class.ENVIRONMENT))
    if logger.hasHandlers():
        logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(config_class.LOG_LEVEL)
    return logger


def build_rng(config_class=Config):
    if config_class.RNG_SEED is not None:
        return random.Random(config_class.RNG_SEED)
    return secrets.SystemRandom()


@dataclass
class Casino:
    config: Any
    registry: Any
    wallet: Any
    jackpots: Any
    records: Any
    sessions: SessionTracker
    slots: SlotGameService
    blackjack: BlackjackService
    roulette: RouletteService
    baccarat: BaccaratService
    engine: Optional[Any] = None
    session_factory: Optional[Any] = None


def create_casino(config_class=Config, wallet=None, rng=None, in_memory=False):
    """
    Builds a fully wired engine. With ``in_memory`` the wallet, jackpot pools and
    records live in process; otherwise they are tables behind DATABASE_URL.
    """
    logger = configure_logging(config_class)
    rng = rng or build_rng(config_class)

    engine = session_factory = None
    if in_memory:
        wallet = wallet or InMemoryWallet()
        jackpots = InMemoryJackpotStore()
        records = InMemoryRecordStore()
    else:
        engine, session_factory = init_db(config_class.DATABASE_URL, config_class.DATABASE_ECHO)
        wallet = wallet or SqlWallet(session_factory)
        jackpots = SqlJackpotStore(session_factory,
                                   serialize_writes=config_class.DATABASE_URL.startswith('sqlite'))
        records = SqlRecordStore(session_factory)

    registry = build_default_registry()
    if config_class.SLOT_CONFIG_PATH:
        loaded = registry.load_from_file(config_class.SLOT_CONFIG_PATH)
        logger.info("Loaded %d slot games from %s", len(loaded), config_class.SLOT_CONFIG_PATH)

    sessions = SessionTracker()
    casino = Casino(
        config=config_class,
        registry=registry,
        wallet=wallet,
        jackpots=jackpots,
        records=records,
        sessions=sessions,
        slots=SlotGameService(registry, wallet, jackpots, sessions, records, rng=rng,
                              cascade_limit=config_class.CASCADE_LIMIT),
        blackjack=BlackjackService(wallet, sessions, records, rng=rng, deck_count=config_class.BLACKJACK_DECKS),
        roulette=RouletteService(wallet, sessions, records, rng=rng),
        baccarat=BaccaratService(wallet, sessions, records, rng=rng, deck_count=config_class.BACCARAT_DECKS,
                                 commission=config_class.BACCARAT_COMMISSION,
                                 push_on_tie=config_class.BACCARAT_PUSH_ON_TIE),
        engine=engine,
        session_factory=session_factory,
    )
    logger.info("Casino engine ready (%s, %d slot games)", config_class.ENVIRONMENT, len(registry.all()))
    return casino
