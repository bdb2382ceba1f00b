"""
Error taxonomy for the chat API.

Each error carries a stable machine-readable code; the HTTP layer maps the
class to a status code.
"""


class ChatError(Exception):
    """Base class for errors reported to the caller."""

    status_code = 500

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code}


class ValidationError(ChatError):
    """Malformed, missing or oversized input."""

    status_code = 400


class NotFoundError(ChatError):
    """Referenced chat or message does not exist."""

    status_code = 404


class InvalidStateError(ChatError):
    """The chat is not in a state that allows the operation."""

    status_code = 400


def chat_not_found() -> NotFoundError:
    return NotFoundError("Chat not found", "CHAT_NOT_FOUND")


def message_not_found() -> NotFoundError:
    return NotFoundError("User message not found", "MESSAGE_NOT_FOUND")
