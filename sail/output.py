from __future__ import annotations

import json
import sys
from typing import Any


def format_output(obj: Any, pretty: bool = True) -> None:
    if pretty:
        print(json.dumps(obj, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(obj, ensure_ascii=False))


def format_output_error(body: str) -> None:
    """Write a server error body to stderr exactly as received."""
    sys.stderr.write(body if body.endswith("\n") else body + "\n")
