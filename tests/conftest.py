import json
import logging
import sys

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient


# Ensure project root is importable (so `import cli` works reliably across environments)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from sail.api import ApiClient  # noqa: E402


def ndjson(*docs):
    return [json.dumps(d) if not isinstance(d, str) else d for d in docs]


class FakeControlPlane:
    """Records every call and answers with scripted (status, lines) pairs."""

    def __init__(self):
        self.calls = []
        self.routes = {}
        self.app = FastAPI()

        @self.app.api_route("/{path:path}", methods=["GET", "POST", "DELETE"])
        async def handle(path: str, request: Request):
            raw = await request.body()
            body = json.loads(raw) if raw else None
            self.calls.append((request.method, "/" + path, body))
            status, lines = self.routes.get((request.method, "/" + path), (404, ndjson({"code": 404, "message": "not found"})))
            return StreamingResponse(
                iter([line + "\n" for line in lines]),
                status_code=status,
                media_type="application/x-ndjson",
            )

    def on(self, method, path, status=200, lines=()):
        self.routes[(method, path)] = (status, list(lines))

    def paths(self):
        return [(m, p) for m, p, _ in self.calls]

    def posted(self, path):
        """Body of the first POST to `path`."""
        return next(body for m, p, body in self.calls if (m, p) == ("POST", path))


@pytest.fixture
def plane():
    return FakeControlPlane()


@pytest.fixture
def client(plane):
    with ApiClient("http://testserver", http=TestClient(plane.app)) as c:
        yield c


@pytest.fixture(autouse=True)
def sail_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="sail")
    yield caplog
    # cli.main() binds a handler to the stderr of the test that ran it.
    logging.getLogger("sail").handlers.clear()
