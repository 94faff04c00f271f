from casino_core.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

    def to_dict(self):
        """Payload a route layer can return as a 4xx/5xx body."""
        payload = {
            'error_code': self.error_code,
            'status_message': self.status_message,
            'details': self.details,
        }
        if self.action_button:
            payload['action_button'] = self.action_button
        return payload

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None,
                 error_code=ErrorCodes.VALIDATION_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class NotFoundException(AppException):
    def __init__(self, status_message="Resource not found", details=None, action_button=None,
                 error_code=ErrorCodes.NOT_FOUND):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=404,
            details=details,
            action_button=action_button
        )

class InsufficientFundsException(AppException):
    def __init__(self, status_message="Insufficient funds", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INSUFFICIENT_FUNDS,
            status_message=status_message,
            status_code=400,
            details=details,
            action_button=action_button
        )

class GameLogicException(AppException):
    def __init__(self, status_message="Game logic error", details=None, action_button=None, status_code=400,
                 error_code=ErrorCodes.GAME_LOGIC_ERROR):
        super().__init__(
            error_code=error_code,
            status_message=status_message,
            status_code=status_code, # Can be 400, 409 or 500
            details=details,
            action_button=action_button
        )

class InternalServerErrorException(AppException):
    def __init__(self, status_message="Internal server error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_SERVER_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )


# --- Engine errors ---

class InvalidBetError(ValidationException):
    """Bet outside min/max, over the table limit, or an over-sized insurance stake."""
    def __init__(self, status_message="Invalid bet", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button,
            error_code=ErrorCodes.INVALID_BET
        )

class InsufficientFundsError(InsufficientFundsException):
    """Raised by wallet collaborators when a debit cannot be covered."""
    def __init__(self, status_message="Insufficient funds", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button or {"text": "Deposit", "actionType": "OPEN_WALLET"}
        )

class IllegalActionError(GameLogicException):
    def __init__(self, status_message="Action not allowed", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button,
            status_code=409,
            error_code=ErrorCodes.ILLEGAL_ACTION
        )

class ShoeExhaustedError(GameLogicException):
    def __init__(self, status_message="Shoe exhausted", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button,
            status_code=500,
            error_code=ErrorCodes.SHOE_EXHAUSTED
        )

class GameNotFoundError(NotFoundException):
    def __init__(self, status_message="Game not found", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button,
            error_code=ErrorCodes.GAME_NOT_FOUND
        )

class InvalidGameConfigError(ValidationException):
    def __init__(self, status_message="Invalid game configuration", details=None, action_button=None):
        super().__init__(
            status_message=status_message,
            details=details,
            action_button=action_button,
            error_code=ErrorCodes.INVALID_GAME_CONFIG
        )
