"""
Server commands.

- dev:   auto-reload, single worker
- start: configured worker count with uvloop and httptools
- prod:  (CPU cores * 2) + 1 workers, warning level logs

Usage:
    vaisu dev
    vaisu-dev / vaisu-start / vaisu-prod
    python -m vaisu.cli start
"""

import multiprocessing
import os
import sys

import uvicorn

from vaisu.core.config import settings

os.environ.setdefault("PYTHONIOENCODING", "utf-8")

if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8")

APP_PATH = "vaisu.main:app"


def dev():
    """Development server with auto-reload."""
    print("🚀 Starting development server with auto-reload...")
    print(f"📍 Server will be available at http://{settings.host}:{settings.port}")
    print(f"📝 API: http://localhost:{settings.port}/api")
    print()

    uvicorn.run(
        APP_PATH,
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level="info",
    )


def start():
    """Production server with the configured number of workers."""
    workers = settings.workers if settings.workers > 1 else 1

    print("🚀 Starting production server...")
    print(f"📍 Server: http://{settings.host}:{settings.port}")
    print(f"👷 Workers: {workers}")
    print()

    uvicorn.run(
        APP_PATH,
        host=settings.host,
        port=settings.port,
        workers=workers,
        loop="uvloop",
        http="httptools",
        backlog=settings.backlog,
        limit_concurrency=settings.max_connections,
        timeout_keep_alive=settings.keepalive_timeout,
        log_level="info",
    )


def prod():
    """
    High-throughput server sized to the machine.

    Rate limits are kept per worker process, so each worker counts its own
    requests.
    """
    cpu_count = multiprocessing.cpu_count()
    workers = (cpu_count * 2) + 1

    print("🚀 Starting high-performance production server...")
    print(f"📍 Server: http://{settings.host}:{settings.port}")
    print(f"🖥️  CPU cores: {cpu_count}")
    print(f"👷 Workers: {workers}")
    print()

    uvicorn.run(
        APP_PATH,
        host=settings.host,
        port=settings.port,
        workers=workers,
        loop="uvloop",
        http="httptools",
        backlog=settings.backlog,
        limit_concurrency=settings.max_connections,
        timeout_keep_alive=settings.keepalive_timeout,
        log_level="warning",
    )


COMMANDS = {"dev": dev, "start": start, "prod": prod}


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("Usage: vaisu [dev|start|prod]")
        return 1

    command = COMMANDS.get(args[0])
    if command is None:
        print(f"Unknown command: {args[0]}")
        print("Available commands: dev, start, prod")
        return 1

    command()
    return 0


if __name__ == "__main__":
    sys.exit(main())
