from __future__ import annotations

import json
from threading import Event, Thread
from typing import Callable

import httpx

from .api import ApiClient, StreamedResponse, service_path
from .errors import SailError
from .events import log_event
from .stream import extract_hostname, stream_call

# How long a finished sequence lets the event stream drain before closing it.
STOP_GRACE_S = 0.5


class StreamFollower:
    """Echo a long-lived GET stream (console, events) from a background thread."""

    def __init__(
        self,
        client: ApiClient,
        path: str,
        render: Callable[[str], None] = print,
        open_timeout_s: float = 10.0,
    ):
        self.client = client
        self.path = path
        self.render = render
        self.open_timeout_s = open_timeout_s
        self._stop = False
        self._opened = Event()
        self._resp: StreamedResponse | None = None
        self._thr: Thread | None = None

    def start(self) -> None:
        """Return once the stream is open, so output produced afterwards is not missed."""
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()
        self._opened.wait(self.open_timeout_s)

    def wait(self) -> None:
        """Block until the server closes the stream."""
        if self._thr is None:
            return
        # Join in slices so Ctrl-C still reaches the main thread.
        while self._thr.is_alive():
            self._thr.join(0.5)

    def stop(self, grace_s: float = STOP_GRACE_S) -> None:
        if self._thr is None:
            return
        self._thr.join(grace_s)
        self._stop = True
        if self._thr.is_alive() and self._resp is not None:
            self._resp.close()

    def _loop(self) -> None:
        try:
            with self.client.execute("GET", self.path) as resp:
                if resp.status_code >= 400:
                    log_event("WARN", f"Cannot follow {self.path}: HTTP {resp.status_code}")
                    return
                self._resp = resp
                self._opened.set()
                for line in resp.lines():
                    if self._stop:
                        return
                    self.render(line)
        except (SailError, httpx.StreamError) as e:
            if not self._stop:
                log_event("WARN", f"Lost {self.path}: {e}")
        finally:
            self._opened.set()


def render_event(line: str, pretty: bool = True) -> None:
    """Print one container state change, e.g. `Container 3f2a STARTING -> STARTED`."""
    if not pretty:
        print(line)
        return
    try:
        event = json.loads(line)
    except ValueError:
        print(line)
        return
    if not isinstance(event, dict) or "state" not in event:
        print(line)
        return
    ident = str(event.get("id", ""))[:12]
    print(f"{event.get('type', 'Event')} {ident} {event.get('prev_state', '?')} -> {event['state']}")


def run_with_console(
    client: ApiClient,
    application: str,
    service: str,
    call: Callable[[], str],
    batch: bool = False,
    pretty: bool = True,
) -> str | None:
    """Run a start-like `call` with the console and event streams already open.

    The console (skipped in batch mode) and the events are opened before
    `call` runs, so the first lines the containers print are not lost. Outside
    batch mode the console is followed until the server closes it or Ctrl-C.
    Returns the hostname found in the call's terminal line, if any.
    """
    followers = []
    console = None
    if not batch:
        console = StreamFollower(client, service_path(application, service, "attach"))
        followers.append(console)
    followers.append(
        StreamFollower(client, service_path(application, service, "events"), lambda line: render_event(line, pretty))
    )
    for f in followers:
        f.start()

    try:
        hostname = show_hostname(call())
        if console is not None:
            log_event("DEBUG", "Attached console", application, service)
            try:
                console.wait()
            except KeyboardInterrupt:
                log_event("INFO", "Detached from console", application, service)
    finally:
        for f in followers:
            f.stop()
    return hostname


def start_service(client: ApiClient, application: str, service: str, batch: bool = False, pretty: bool = True) -> str | None:
    """Start a service and print its hostname, following its console unless `batch`."""
    path = service_path(application, service, "start")
    return run_with_console(
        client,
        application,
        service,
        lambda: stream_call(client, "POST", path, "{}", pretty),
        batch=batch,
        pretty=pretty,
    )


def show_hostname(terminal_line: str) -> str | None:
    hostname = extract_hostname(terminal_line)
    if hostname:
        print(f"Hostname: {hostname}")
    return hostname
