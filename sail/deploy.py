from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .api import ApiClient, service_path
from .errors import SailError, ServerError, TransportError
from .events import log_event
from .models import RedeploySpec, ServiceSpec
from .output import format_output_error
from .redeploy import redeploy_service
from .start import show_hostname, start_service
from .stream import display_stream, read_stream_lines

CONFLICT = 409

StartFn = Callable[..., object]
RedeployFn = Callable[..., object]


class DeployState(str, Enum):
    COMPILED = "compiled"
    STREAMING = "streaming"
    REDEPLOYING = "redeploying"
    STARTED = "started"
    FAILED = "failed"


@dataclass
class DeployOutcome:
    state: DeployState = DeployState.COMPILED
    hostname: str | None = None
    error: SailError | None = None
    history: list[DeployState] = field(default_factory=lambda: [DeployState.COMPILED])

    @property
    def ok(self) -> bool:
        return self.state is not DeployState.FAILED


class Deployer:
    """Create a service, falling back to a redeploy when it already exists.

    The redeploy fallback is taken on a 409, whether the API reports it as
    the response status or as an error line in the streamed body.
    """

    def __init__(
        self,
        client: ApiClient,
        start: StartFn = start_service,
        redeploy: RedeployFn = redeploy_service,
        pretty: bool = True,
    ):
        self.client = client
        self._start = start
        self._redeploy = redeploy
        self.pretty = pretty

    def deploy(self, spec: ServiceSpec, batch: bool = False, redeploy: bool = False) -> DeployOutcome:
        outcome = DeployOutcome()
        try:
            self._create(spec, outcome)
        except ServerError as e:
            if e.code == CONFLICT and redeploy:
                return self._on_conflict(spec, outcome, batch)
            format_output_error(e.body)
            return self._fail(spec, outcome, e)
        except TransportError as e:
            log_event("ERROR", str(e), spec.application, spec.service)
            return self._fail(spec, outcome, e)
        return self._on_created(spec, outcome, batch)

    def _create(self, spec: ServiceSpec, outcome: DeployOutcome) -> None:
        path = service_path(spec.application, spec.service)
        with self.client.execute("POST", path, spec.to_json()) as resp:
            if resp.status_code >= 400:
                raise ServerError(resp.status_code, resp.read_text())
            self._enter(spec, outcome, DeployState.STREAMING)
            terminal = display_stream(read_stream_lines(resp), self.pretty)
        outcome.hostname = show_hostname(terminal)

    def _on_conflict(self, spec: ServiceSpec, outcome: DeployOutcome, batch: bool) -> DeployOutcome:
        self._enter(spec, outcome, DeployState.REDEPLOYING)
        reduced: RedeploySpec = spec.reduced()
        try:
            self._redeploy(self.client, reduced, spec.application, spec.service, batch, pretty=self.pretty)
        except ServerError as e:
            format_output_error(e.body)
            return self._fail(spec, outcome, e)
        except SailError as e:
            log_event("ERROR", str(e), spec.application, spec.service)
            return self._fail(spec, outcome, e)
        return outcome

    def _on_created(self, spec: ServiceSpec, outcome: DeployOutcome, batch: bool) -> DeployOutcome:
        self._enter(spec, outcome, DeployState.STARTED)
        log_event("INFO", f"Starting service {spec.application}/{spec.service}...")
        try:
            self._start(self.client, spec.application, spec.service, batch, pretty=self.pretty)
        except ServerError as e:
            format_output_error(e.body)
            return self._fail(spec, outcome, e)
        except SailError as e:
            log_event("ERROR", str(e), spec.application, spec.service)
            return self._fail(spec, outcome, e)
        return outcome

    def _fail(self, spec: ServiceSpec, outcome: DeployOutcome, err: SailError) -> DeployOutcome:
        outcome.error = err
        self._enter(spec, outcome, DeployState.FAILED)
        return outcome

    def _enter(self, spec: ServiceSpec, outcome: DeployOutcome, state: DeployState) -> None:
        log_event("DEBUG", f"{outcome.state.value} -> {state.value}", spec.application, spec.service)
        outcome.state = state
        outcome.history.append(state)
