import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits


def now_ms():
    return int(time.time() * 1000)


def random_suffix(length=9):
    return ''.join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_game_id(prefix):
    """e.g. blackjack-1718000000000-k3j9x0a2b"""
    return f"{prefix}-{now_ms()}-{random_suffix()}"


def generate_spin_id(user_id, game_id):
    return f"spin_{now_ms()}_{user_id}_{game_id}"
