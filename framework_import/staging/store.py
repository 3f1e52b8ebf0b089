from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import redis
from psycopg2.extras import Json

from ..models.config_models import STAGING_BACKENDS, StagingConfig

"""Preview staging store.

Preview payloads live here between `preview` and `confirm`. Confirm may be
served by a different process than preview, so every implementation is backed
by a shared service (PostgreSQL or Redis), never by process memory.

Contract:
- set(key, value, ttl_seconds): create or overwrite, absolute expiry now + ttl
- get(key): value or None when absent / expired (expired entries purged lazily)
- delete(key): unconditional, no error when absent
- take(key): atomic fetch-and-delete; of two concurrent takes at most one
  receives the value
"""

__all__ = [
    "PREVIEW_TTL_SECONDS",
    "PreviewStore",
    "PostgresPreviewStore",
    "RedisPreviewStore",
    "create_preview_store",
]

logger = logging.getLogger(__name__)

PREVIEW_TTL_SECONDS = 15 * 60
DEFAULT_REDIS_URL = "redis://localhost:6379/0"


class PreviewStore(ABC):
    """Shared key/value store with per-entry TTL. Values are JSON-compatible dicts."""

    @abstractmethod
    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def take(self, key: str) -> dict[str, Any] | None: ...


class PostgresPreviewStore(PreviewStore):
    """Stores previews in the `framework_import_previews` table.

    Each call runs in its own short transaction on the given psycopg2
    connection. `take` is a single `DELETE ... RETURNING`, so the row lock
    serializes concurrent confirms on the same token.
    """

    TABLE = "framework_import_previews"

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def _execute(self, sql: str, params: tuple[Any, ...], fetch: bool = False) -> tuple[Any, ...] | None:
        row = None
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch:
                    row = cur.fetchone()
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        return row

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self._execute(
            f"INSERT INTO {self.TABLE} (token, payload, expires_at) "
            "VALUES (%s, %s, now() + %s * interval '1 second') "
            "ON CONFLICT (token) DO UPDATE SET payload = EXCLUDED.payload, expires_at = EXCLUDED.expires_at",
            (key, Json(value), ttl_seconds),
        )

    def get(self, key: str) -> dict[str, Any] | None:
        # 期限切れ行はここで遅延削除し、有効な行のみ返す
        row = self._execute(
            f"WITH purged AS (DELETE FROM {self.TABLE} WHERE token = %s AND expires_at <= now()) "
            f"SELECT payload FROM {self.TABLE} WHERE token = %s AND expires_at > now()",
            (key, key),
            fetch=True,
        )
        return _decode(row[0]) if row else None

    def delete(self, key: str) -> None:
        self._execute(f"DELETE FROM {self.TABLE} WHERE token = %s", (key,))

    def take(self, key: str) -> dict[str, Any] | None:
        row = self._execute(
            f"DELETE FROM {self.TABLE} WHERE token = %s RETURNING payload, expires_at > now()",
            (key,),
            fetch=True,
        )
        if not row or not row[1]:
            return None
        return _decode(row[0])


class RedisPreviewStore(PreviewStore):
    """Stores previews as JSON strings under `<key_prefix><token>` with SET EX.

    `take` uses GETDEL (Redis >= 6.2).
    """

    def __init__(self, client: redis.Redis, key_prefix: str = StagingConfig.key_prefix) -> None:
        self._client = client
        self._prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self._client.set(self._key(key), json.dumps(value, ensure_ascii=False), ex=ttl_seconds)

    def get(self, key: str) -> dict[str, Any] | None:
        raw = self._client.get(self._key(key))
        if raw is None:
            return None
        value = _decode(raw)
        if value is None:
            self._client.delete(self._key(key))
        return value

    def delete(self, key: str) -> None:
        self._client.delete(self._key(key))

    def take(self, key: str) -> dict[str, Any] | None:
        raw = self._client.getdel(self._key(key))
        if raw is None:
            return None
        return _decode(raw)


def _decode(raw: Any) -> dict[str, Any] | None:
    """Decode a stored payload; corrupt payloads read as absent."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        value = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("discarding undecodable preview payload")
        return None
    return value if isinstance(value, dict) else None


def create_preview_store(staging: StagingConfig, conn: Any = None) -> PreviewStore:
    """Build the configured store.

    The backend comes from `staging.backend` only. For redis, REDIS_URL
    (environment) wins over `staging.redis_url`.
    """
    if staging.backend not in STAGING_BACKENDS:
        raise ValueError(f"unknown staging backend: {staging.backend}")
    if staging.backend == "redis":
        url = os.getenv("REDIS_URL") or staging.redis_url or DEFAULT_REDIS_URL
        return RedisPreviewStore(redis.Redis.from_url(url), key_prefix=staging.key_prefix)
    if conn is None:
        raise ValueError("postgres staging backend requires a database connection")
    return PostgresPreviewStore(conn)
