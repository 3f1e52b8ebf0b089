from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses for the CSV framework importer.

These are produced by framework_import.config.loader after schema validation.
Environment variables (DATABASE_URL / PG* / REDIS_URL) take precedence over the
values held here; see framework_import.db.connection and
framework_import.staging.store.
"""

STAGING_BACKENDS = ("postgres", "redis")


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection fallback values."""
    host: str | None
    port: int | None
    user: str | None
    password: str | None
    database: str | None
    dsn: str | None


@dataclass(frozen=True)
class StagingConfig:
    """Where preview payloads are staged between preview and confirm.

    Must be a store shared by every importer process; both backends are.
    """
    backend: str = "postgres"  # postgres | redis
    redis_url: str | None = None
    key_prefix: str = "framework-import:preview:"


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object."""
    source_directory: str  # import-dir で走査するディレクトリ
    database: DatabaseConfig
    staging: StagingConfig
