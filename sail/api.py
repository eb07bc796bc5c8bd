from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import httpx
import requests

from .errors import ServerError, TransportError
from .settings import Settings


def service_path(application: str, service: str, action: str | None = None) -> str:
    path = f"/applications/{application}/services/{service}"
    return f"{path}/{action}" if action else path


class StreamedResponse:
    """An open streamed response. Only valid inside `ApiClient.execute`."""

    def __init__(self, response: httpx.Response):
        self._response = response
        self.status_code = response.status_code

    def lines(self) -> Iterator[str]:
        for line in self._response.iter_lines():
            if line.strip():
                yield line

    def read_text(self) -> str:
        self._response.read()
        return self._response.text

    def close(self) -> None:
        self._response.close()


class ApiClient:
    """Talks to the control-plane API.

    Long-running calls (create, start, redeploy, attach, events) are streamed with
    httpx; small JSON resources (webhooks) go through a requests session.
    """

    def __init__(
        self,
        base_url: str,
        user: str | None = None,
        password: str | None = None,
        timeout_s: float = 30,
        http: httpx.Client | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        auth = (user, password) if user and password else None
        self._http = http or httpx.Client(base_url=self.base_url, auth=auth, timeout=timeout_s)
        self._session = session or requests.Session()
        self._session.auth = auth

    @classmethod
    def from_settings(cls, s: Settings, base_url: str) -> ApiClient:
        return cls(base_url, user=s.user, password=s.password, timeout_s=s.timeout_s)

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()
        self._session.close()

    @contextmanager
    def execute(self, method: str, path: str, body: str | bytes | None = None) -> Iterator[StreamedResponse]:
        """Send a request and yield its response stream, whatever the status.

        The connection is released when the block exits, including when the
        caller stops reading early or raises.
        """
        headers = {"Content-Type": "application/json"} if body is not None else {}
        try:
            with self._http.stream(method, path, content=body, headers=headers) as resp:
                yield StreamedResponse(resp)
        except httpx.RequestError as e:
            # Connection, timeout and body decoding failures alike.
            raise TransportError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

    def want_json(self, method: str, path: str, payload: Any = None, params: dict[str, str] | None = None) -> Any:
        try:
            r = self._session.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                params=params,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {type(e).__name__}: {e}") from e
        if not r.ok:
            raise ServerError(r.status_code, r.text)
        if not r.content:
            return None
        return r.json()
