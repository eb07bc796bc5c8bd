from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import InputError


NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]{0,63}$")
TAG_RE = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9_.\-]{0,127}$")


def check_name(name: str) -> None:
    if not name:
        raise InputError("Invalid name: must not be empty.")
    if not NAME_RE.match(name):
        raise InputError(
            f"Invalid name '{name}'. Use letters, digits and -._, starting with a letter or digit (max 64 chars)."
        )


def check_tag(tag: str) -> None:
    if not TAG_RE.match(tag):
        raise InputError(f"Invalid tag '{tag}'. Use letters, digits and -._ (max 128 chars).")


@dataclass(frozen=True)
class ResourceName:
    host: str | None
    application: str
    repository: str
    tag: str | None = None


def parse_resource_name(raw: str, default_application: str | None = None) -> ResourceName:
    """Split `[host/][application/]repository[:tag]`.

    Without an application part, `default_application` (the configured user)
    is used. The tag is only looked for in the last path segment so that a
    host with a port (`registry:5000/app/repo`) is not mistaken for one.
    """
    if not raw:
        raise InputError("Empty resource name.")

    parts = raw.split("/")
    if len(parts) > 3 or any(p == "" for p in parts):
        raise InputError(f"Invalid resource name '{raw}'. Expected [host/][application/]repository[:tag].")

    last = parts[-1]
    tag: str | None = None
    if ":" in last:
        last, tag = last.split(":", 1)
        if not last or not tag:
            raise InputError(f"Invalid resource name '{raw}': empty repository or tag.")

    host: str | None = None
    if len(parts) == 3:
        host, application = parts[0], parts[1]
    elif len(parts) == 2:
        application = parts[0]
    else:
        if not default_application:
            raise InputError(f"No application in '{raw}' and no default user configured.")
        application = default_application

    return ResourceName(host=host, application=application, repository=last, tag=tag)


def check_host_consistent(host: str | None, configured_host: str) -> None:
    """A host given in a resource name must be the endpoint we talk to."""
    if host is None:
        return
    bare = re.sub(r"^https?://", "", configured_host).rstrip("/")
    if bare.endswith("/v1"):
        bare = bare[: -len("/v1")]
    if host != bare:
        raise InputError(f"Invalid host {host} for endpoint {configured_host}.")
