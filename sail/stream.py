"""Line-oriented decoding of streamed API responses.

Each line of a streamed body is a JSON object. Progress lines carry a
`message` or `status`; a line is an error when it carries an `error` key or
an integer `code` >= 400, e.g. `{"code": 409, "message": "service exists"}`.
The last line read is the terminal line and may carry the assigned hostname.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterable, Iterator

from .api import ApiClient, StreamedResponse
from .errors import ServerError


@dataclass(frozen=True)
class StreamError:
    code: int
    message: str
    raw: str


def read_stream_lines(response: StreamedResponse) -> Iterator[str]:
    return response.lines()


def _load(line: str) -> dict | None:
    try:
        data = json.loads(line)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def decode_stream_error(line: str) -> StreamError | None:
    data = _load(line)
    if data is None:
        # Not a status document at all.
        return StreamError(code=0, message=line, raw=line)

    code = data.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        code = 0
    err = data.get("error")
    if err is None and code < 400:
        return None

    if isinstance(err, dict):
        if isinstance(err.get("code"), int):
            code = err["code"]
        message = str(err.get("message", err))
    else:
        message = str(data.get("message") or err)
    return StreamError(code=code, message=message, raw=line)


def display_stream(lines: Iterable[str], pretty: bool = True) -> str:
    """Echo progress lines and return the terminal line.

    Stops at the first error line and raises ServerError carrying the
    decoded code and the raw line.
    """
    last = ""
    for line in lines:
        err = decode_stream_error(line)
        if err is not None:
            raise ServerError(err.code, err.raw)
        last = line
        if not pretty:
            print(line)
            continue
        data = _load(line) or {}
        text = data.get("message") or data.get("status")
        if text:
            print(text)
    return last


def extract_hostname(line: str) -> str | None:
    data = _load(line) if line else None
    if not data:
        return None
    hostname = data.get("hostname")
    return str(hostname) if hostname else None


def stream_call(client: ApiClient, method: str, path: str, body: str | None = None, pretty: bool = True) -> str:
    """Run a streamed call to completion; ServerError on any failure."""
    with client.execute(method, path, body) as resp:
        if resp.status_code >= 400:
            raise ServerError(resp.status_code, resp.read_text())
        return display_stream(read_stream_lines(resp), pretty)
