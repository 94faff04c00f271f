"""Game outcome and payout engine for slots, blackjack, roulette and baccarat."""

__version__ = "1.0.0"
