from __future__ import annotations


class SailError(Exception):
    pass


class InputError(SailError, ValueError):
    """Bad command-line input. Always raised before any request is sent."""


class TransportError(SailError):
    """No usable HTTP response: connection refused, timeout, undecodable body."""


class ServerError(SailError):
    """The API answered with an error, either as a status code or mid-stream."""

    def __init__(self, code: int, body: str):
        super().__init__(f"HTTP {code}: {body}")
        self.code = code
        self.body = body
