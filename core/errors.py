# core/errors.py
"""
Error taxonomy shared by the gateway and both conversation engines.

ValidationError     -> re-prompt, conversation stays open
NotFoundError       -> message, conversation closed
StatusConflict      -> row already processed, conversation closed
PersistenceError    -> logged, generic message, conversation closed
GenerationExhausted -> registration attempt fails
ConversationBusy    -> a flow was started while another one is open
"""


class BotError(Exception):
    """Base class for all bot errors."""


class ValidationError(BotError):
    pass


class NotFoundError(BotError):
    pass


class StatusConflict(BotError):
    def __init__(self, message: str, current_status: str = None):
        super().__init__(message)
        self.current_status = current_status


class PersistenceError(BotError):
    pass


class GenerationExhausted(BotError):
    pass


class ConversationBusy(BotError):
    pass
