from enum import Enum

from app.services.errors import MethodNotAllowed


class RequestMethod(str, Enum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, method: str) -> "RequestMethod":
        try:
            return cls(method.upper())
        except ValueError:
            raise MethodNotAllowed()
