"""
Domain errors raised by the resolver, handlers and LLM client.

Each error carries the HTTP status it maps to. ``public_message`` is what
the caller sees; only InternalError hides its detail.
"""

GENERIC_ERROR_MESSAGE = "Sorry, an internal error occurred. Please try again later."


class ChatbotError(Exception):
    """Base class for errors that translate into a reply and HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        return self.message


class ValidationFailed(ChatbotError):
    status_code = 422


class NotFound(ChatbotError):
    status_code = 404


class Ambiguous(ChatbotError):
    status_code = 404


class MembershipRequired(ChatbotError):
    status_code = 403


class PermissionDenied(ChatbotError):
    status_code = 403


class Unauthenticated(ChatbotError):
    status_code = 401


class UpstreamUnavailable(ChatbotError):
    status_code = 503


class InternalError(ChatbotError):
    status_code = 500

    @property
    def public_message(self) -> str:
        return GENERIC_ERROR_MESSAGE
