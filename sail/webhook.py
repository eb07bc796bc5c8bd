from __future__ import annotations

from typing import Any

from .api import ApiClient


def _hook_path(application: str) -> str:
    return f"/applications/{application}/hook"


def webhook_list(client: ApiClient, application: str) -> Any:
    return client.want_json("GET", _hook_path(application))


def webhook_add(client: ApiClient, application: str, url: str) -> Any:
    """Register a URL that receives the application's container events as JSON POSTs."""
    return client.want_json("POST", _hook_path(application), payload={"url": url})


def webhook_delete(client: ApiClient, application: str, url: str) -> Any:
    return client.want_json("DELETE", _hook_path(application), params={"url": url})
