"""Error taxonomy shared by the pipeline and the HTTP layer."""


class BookChatError(Exception):
    """Base class for request-scoped, recoverable errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(BookChatError):
    """Missing or invalid input (file, title, question)."""

    status_code = 400


class ExtractionFailed(BookChatError):
    """No extraction strategy produced usable text."""

    status_code = 400


class UpstreamError(BookChatError):
    """An embedding, chat or vector-store call failed."""

    status_code = 500

    def __init__(self, message: str, service: str = "upstream"):
        super().__init__(message)
        self.service = service
