"""
auth/keystore.py -- SQL-backed temporary key store for codes and reset tokens.

Holds short-lived key -> value pairs with a per-entry TTL:
  login code          -> email
  registration code   -> staged registration JSON
  password reset token -> user id

get() raises KeyError for a missing or expired key. Expired rows are removed
lazily on read and in bulk by purge_expired(), which the API lifespan calls
periodically.

Usage:
    keys = TemporaryKeyStore("sqlite:///gatehouse.db")
    keys.set("BCDFGHJK", "ann@example.com", 3600)
    keys.get("BCDFGHJK")        # "ann@example.com"
    keys.purge_expired()
"""

from __future__ import annotations

import time

from sqlalchemy import Column, Float, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.store import make_engine

_metadata = MetaData()

_temporary_keys = Table(
    "temporary_keys",
    _metadata,
    Column("lookup_key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
    Column("expires_at", Float, nullable=False),  # epoch seconds
)


class TemporaryKeyStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def get(self, key: str) -> str:
        """Return the value stored under key. Raises KeyError if missing or expired."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _temporary_keys.select().where(_temporary_keys.c.lookup_key == key)
            ).fetchone()
        if row is None:
            raise KeyError(key)
        if row.expires_at <= time.time():
            self._delete(key)
            raise KeyError(key)
        return row.value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value under key, replacing any existing entry."""
        expires_at = time.time() + ttl_seconds
        with self.engine.connect() as conn:
            conn.execute(_temporary_keys.delete().where(_temporary_keys.c.lookup_key == key))
            conn.execute(_temporary_keys.insert().values(lookup_key=key, value=value, expires_at=expires_at))
            conn.commit()

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_temporary_keys.delete().where(_temporary_keys.c.expires_at <= time.time()))
            conn.commit()
        return result.rowcount

    def _delete(self, key: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(_temporary_keys.delete().where(_temporary_keys.c.lookup_key == key))
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()
