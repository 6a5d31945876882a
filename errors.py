from typing import Optional


class ChatServiceError(Exception):
    """Base error carrying the HTTP status used in the {"error": ...} envelope."""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ChatServiceError):
    status_code = 400


class ConfigurationError(ChatServiceError):
    status_code = 500


class UpstreamError(ChatServiceError):
    def __init__(self, upstream_status: int, body: str):
        super().__init__(f"Gemini API returned {upstream_status}: {body}", upstream_status)
        self.upstream_status = upstream_status
        self.body = body


class TransportError(ChatServiceError):
    status_code = 500


class FormatError(ChatServiceError):
    status_code = 400

    def __init__(self, message: str = "Invalid file format"):
        super().__init__(message)


class ExchangeInProgressError(ChatServiceError):
    status_code = 409

    def __init__(self, message: str = "An exchange is already in progress"):
        super().__init__(message)
