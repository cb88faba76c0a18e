from __future__ import annotations

import sys

from recurbill.workers.celery_app import celery_app


def worker_argv(extra: list[str] | None = None) -> list[str]:
    """Worker command line; ``--beat`` embeds the scheduler for single-process deployments."""
    argv = ["worker", "--loglevel=info", "--queues=default"]
    return argv + list(extra or [])


def main() -> None:
    """Launch a Celery worker that executes the daily billing sweep."""
    celery_app.worker_main(worker_argv(sys.argv[1:]))


if __name__ == "__main__":
    main()
