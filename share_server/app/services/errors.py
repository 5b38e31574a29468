from http import HTTPStatus
from typing import Optional


class UpshareError(Exception):
    """Base class for every failure the share/upload handlers report.

    The boundary handler in main.py turns these into plain-text
    ``Error: <message>`` responses with ``status_code``.
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message: Optional[str] = None

    def __init__(self, message: Optional[str] = None):
        self.message = message if message is not None else self.default_message
        super().__init__(self.message or self.reason)

    @property
    def reason(self) -> str:
        return HTTPStatus(self.status_code).phrase

    @property
    def body(self) -> str:
        if self.message:
            return f"Error: {self.message}"
        return f"Error: {self.reason}"


class NoRootConfigured(UpshareError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "no root configured"


class Traversal(UpshareError):
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "directory backoff not allowed"


class BadRequest(UpshareError):
    status_code = HTTPStatus.BAD_REQUEST


class NotFound(UpshareError):
    status_code = HTTPStatus.NOT_FOUND


class MethodNotAllowed(UpshareError):
    status_code = HTTPStatus.METHOD_NOT_ALLOWED


class Internal(UpshareError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
