"""
Storage substrate — key-value persistence for controller state.

The controller sees storage only through the three-method ``Storage``
interface. Two implementations are provided:

- ``MemoryStorage``  — dict-backed, for tests and the in-process host
- ``SqlStorage``     — SQLAlchemy-backed, one row per key

Both offer ``transaction()``, which yields a Storage whose writes are
committed only if the block exits cleanly. This is how the host keeps each
invocation all-or-nothing.

Typed access goes through ``Item``, which serializes values with pydantic.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generic, Iterator, Protocol, TypeVar

from pydantic import TypeAdapter
from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from unity_vault.storage.models import Base, VaultStateEntryDB

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageError(Exception):
    """Raised when a required key is missing or a stored value is corrupt."""
    pass


class Storage(Protocol):
    """Minimal key-value interface used by the controller."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...


# ════════════════════════════════════════════════════════════════
# In-memory storage
# ════════════════════════════════════════════════════════════════


class MemoryStorage:
    """Dict-backed storage with snapshot/restore transactions."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)

    @contextmanager
    def transaction(self) -> Iterator[MemoryStorage]:
        snapshot = dict(self._data)
        try:
            yield self
        except BaseException:
            self._data = snapshot
            raise


# ════════════════════════════════════════════════════════════════
# SQL storage
# ════════════════════════════════════════════════════════════════


class _SessionStorage:
    """Storage view bound to one open SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str) -> bytes | None:
        row = self.session.get(VaultStateEntryDB, key)
        return None if row is None else bytes(row.value)

    def set(self, key: str, value: bytes) -> None:
        row = self.session.get(VaultStateEntryDB, key)
        if row is None:
            self.session.add(VaultStateEntryDB(key=key, value=value))
        else:
            row.value = value
        self.session.flush()

    def remove(self, key: str) -> None:
        self.session.execute(delete(VaultStateEntryDB).where(VaultStateEntryDB.key == key))


class SqlStorage:
    """
    SQLAlchemy-backed storage.

    Usage:
        storage = SqlStorage("sqlite:///unity_vault.db")
        storage.initialize()

        with storage.transaction() as tx:
            tx.set("config", b"...")
    """

    def __init__(self, database_url: str) -> None:
        """
        Initialize the storage service.

        Args:
            database_url: SQLAlchemy connection string (sync driver).
        """
        self.engine = create_engine(database_url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def initialize(self) -> None:
        """Create the state table if it does not exist."""
        Base.metadata.create_all(self.engine)
        logger.info("Vault state table ready: %s", self.engine.url.render_as_string(hide_password=True))

    def get(self, key: str) -> bytes | None:
        with self.SessionLocal() as session:
            return _SessionStorage(session).get(key)

    def set(self, key: str, value: bytes) -> None:
        with self.transaction() as tx:
            tx.set(key, value)

    def remove(self, key: str) -> None:
        with self.transaction() as tx:
            tx.remove(key)

    def keys(self) -> list[str]:
        with self.SessionLocal() as session:
            return list(
                session.execute(
                    select(VaultStateEntryDB.key).order_by(VaultStateEntryDB.key.asc())
                ).scalars().all()
            )

    @contextmanager
    def transaction(self) -> Iterator[_SessionStorage]:
        with self.SessionLocal() as session:
            try:
                yield _SessionStorage(session)
                session.commit()
            except BaseException:
                session.rollback()
                raise


# ════════════════════════════════════════════════════════════════
# Typed accessors
# ════════════════════════════════════════════════════════════════


class Item(Generic[T]):
    """
    A single typed storage slot.

    Values are encoded as JSON through a pydantic TypeAdapter, so any
    pydantic model or plain type (``int``, ``str``) can be stored.
    """

    def __init__(self, key: str, value_type: Any) -> None:
        self.key = key
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)

    def may_load(self, storage: Storage) -> T | None:
        raw = storage.get(self.key)
        if raw is None:
            return None
        try:
            return self._adapter.validate_json(raw)
        except ValueError as exc:
            raise StorageError(f"Corrupt value under key {self.key!r}: {exc}") from exc

    def load(self, storage: Storage) -> T:
        value = self.may_load(storage)
        if value is None:
            raise StorageError(f"Key {self.key!r} not found")
        return value

    def save(self, storage: Storage, value: T) -> None:
        storage.set(self.key, self._adapter.dump_json(value))

    def remove(self, storage: Storage) -> None:
        storage.remove(self.key)

    def exists(self, storage: Storage) -> bool:
        return storage.get(self.key) is not None
