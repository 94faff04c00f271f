class ErrorCodes:
    """Stable machine-readable error codes carried by AppException subclasses."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    GAME_LOGIC_ERROR = "GAME_LOGIC_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    # Engine specific
    INVALID_BET = "INVALID_BET"
    ILLEGAL_ACTION = "ILLEGAL_ACTION"
    SHOE_EXHAUSTED = "SHOE_EXHAUSTED"
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    INVALID_GAME_CONFIG = "INVALID_GAME_CONFIG"
