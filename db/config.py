"""
db/config.py

Environment-driven database configuration shared by the API, the scheduler,
the CLI and Alembic.

URL resolution order
--------------------
1. ``DATABASE_URL``
2. ``CLOUD_DATABASE_URL`` when ``ENVIRONMENT`` is prod / production / staging / cloud
3. ``LOCAL_DATABASE_URL``

``postgres://`` and ``postgresql://`` URLs are rewritten to the psycopg 3
driver. SQLite URLs pass through unchanged for local runs.
"""

from __future__ import annotations

import os
from pathlib import Path

DATABASE_URL_VARS = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
SUPPORTED_URL_PREFIXES = ("postgresql", "sqlite")

_CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_ENV_FILES = (".env", ".env.local")


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if key.startswith("export "):
        key = key[len("export ") :].strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(root: Path | None = None) -> None:
    """
    Load ``KEY=VALUE`` pairs from ``.env`` and ``.env.local`` under *root*.

    Variables already present in the process environment win.
    """

    project_root = root or Path(__file__).resolve().parents[1]
    for filename in _ENV_FILES:
        env_path = project_root / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None and parsed[0] not in os.environ:
                os.environ[parsed[0]] = parsed[1]


def normalize_postgres_url(url: str) -> str:
    """Point bare postgres URLs at the psycopg 3 driver."""

    url = url.strip()
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


def resolve_database_url() -> str:
    """
    Database URL for the current environment.

    Raises
    ------
    RuntimeError
        If none of :data:`DATABASE_URL_VARS` applies.
    """

    load_env_files()

    direct_url = os.getenv("DATABASE_URL", "").strip()
    if direct_url:
        return normalize_postgres_url(direct_url)

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    cloud_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    if environment in _CLOUD_ENVIRONMENTS and cloud_url:
        return normalize_postgres_url(cloud_url)

    local_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if local_url:
        return normalize_postgres_url(local_url)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
