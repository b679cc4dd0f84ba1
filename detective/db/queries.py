"""SQL file loader: reads .sql files from disk and caches them."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

SQL_DIR = Path(__file__).resolve().parent.parent.parent / "sql"


@lru_cache(maxsize=64)
def load_sql(relative_path: str) -> str:
    """Load a SQL file relative to the sql/ directory.

    Example: load_sql("catalog/hobt_lookup.sql")
    """
    full_path = (SQL_DIR / relative_path).resolve()
    if not full_path.is_relative_to(SQL_DIR.resolve()):
        raise ValueError(f"Path traversal blocked: {relative_path}")
    if not full_path.exists():
        raise FileNotFoundError(f"SQL file not found: {full_path}")
    logger.debug("Loaded SQL file %s", relative_path)
    return full_path.read_text()


def load_dmv(name: str) -> str:
    """Load a DMV query by name (without .sql extension)."""
    return load_sql(f"dmv/{name}.sql")


def load_catalog(name: str) -> str:
    """Load a per-database catalog query by name."""
    return load_sql(f"catalog/{name}.sql")
