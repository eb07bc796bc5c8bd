from __future__ import annotations

from typing import Callable

import requests

from .events import log_event
from .settings import Settings

API_SUFFIX = "/v1"


def ping(base_url: str, auth: tuple[str, str] | None = None, timeout_s: float = 5) -> bool:
    url = f"{base_url}/_ping"
    log_event("DEBUG", f"Try ping on {url}")
    try:
        r = requests.get(url, auth=auth, timeout=timeout_s)
    except requests.RequestException:
        log_event("DEBUG", f"Ping KO on {url}")
        return False
    ok = r.status_code == 200
    log_event("DEBUG", f"Ping {'OK' if ok else 'KO'} on {url}")
    return ok


def expand_registry_url(host: str, ping_fn: Callable[[str], bool] = ping) -> str:
    """Turn a bare host into the API base URL.

    An explicit scheme is kept as is; otherwise https is tried first and
    http is the fallback.
    """
    host = host.rstrip("/")
    if not host.endswith(API_SUFFIX):
        host = host + API_SUFFIX
    if host.startswith(("http://", "https://")):
        return host
    if ping_fn(f"https://{host}"):
        return f"https://{host}"
    return f"http://{host}"


def resolve_base_url(s: Settings) -> str:
    auth = (s.user, s.password) if s.user and s.password else None
    return expand_registry_url(s.host, lambda url: ping(url, auth=auth, timeout_s=min(5, s.timeout_s)))
