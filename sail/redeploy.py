from __future__ import annotations

from .api import ApiClient, service_path
from .events import log_event
from .models import RedeploySpec
from .start import run_with_console
from .stream import stream_call


def redeploy_service(
    client: ApiClient,
    spec: RedeploySpec,
    application: str,
    service: str,
    batch: bool = False,
    pretty: bool = True,
) -> str | None:
    """Push a new document to an existing service and roll its containers.

    Returns the hostname the platform assigned, if any.
    """
    log_event("INFO", "Redeploying service", application, service)
    path = service_path(application, service, "redeploy")
    return run_with_console(
        client,
        application,
        service,
        lambda: stream_call(client, "POST", path, spec.to_json(), pretty),
        batch=batch,
        pretty=pretty,
    )
