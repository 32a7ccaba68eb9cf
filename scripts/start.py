#!/usr/bin/env python3
"""
Container entrypoint: run the release phase, then exec gunicorn on app.wsgi:app.

Environment: PORT (default 8080), WEB_CONCURRENCY (workers, default 2),
GUNICORN_TIMEOUT (seconds, default 60).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _env_int(name: str, default: int, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SystemExit(f"{name}={raw!r} is not an integer")
    if not low <= value <= high:
        raise SystemExit(f"{name}={value} must be between {low} and {high}")
    return value


def gunicorn_argv() -> list[str]:
    port = _env_int("PORT", 8080, 1, 65535)
    workers = _env_int("WEB_CONCURRENCY", 2, 1, 64)
    timeout = _env_int("GUNICORN_TIMEOUT", 60, 1, 3600)
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        # Engine is disposed per worker after fork (see create_app).
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    argv = gunicorn_argv()

    from scripts.release import run_release

    run_release()
    print("Starting: " + " ".join(argv), flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
