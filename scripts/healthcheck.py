"""
Container health check for the onboarding API.

Exits 0 only when GET /health answers 2xx with ``{"status": "ok"}``.
"""

from __future__ import annotations

import json
import os
import sys
from urllib.error import URLError
from urllib.request import urlopen


def check(url: str, timeout: float = 2.0) -> bool:
    try:
        with urlopen(url, timeout=timeout) as response:
            if not 200 <= response.status < 300:
                return False
            body = json.loads(response.read().decode("utf-8") or "{}")
    except (URLError, TimeoutError, ValueError):
        return False
    return isinstance(body, dict) and body.get("status") == "ok"


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    port = os.getenv("PORT", "8000")
    path = os.getenv("HEALTHCHECK_PATH", "/health")
    url = args[0] if args else f"http://127.0.0.1:{port}{path}"
    return 0 if check(url) else 1


if __name__ == "__main__":
    raise SystemExit(main())
