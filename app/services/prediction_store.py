from __future__ import annotations

import asyncio
from typing import Dict, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from app.db.models import EngineRecord


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


class SqlKeyValueStore:
    """Durable store on the ``engine_kv`` table.

    Writes are whole-value overwrites. Blocking session work runs in a worker
    thread so the event loop keeps serving while SQLite is busy.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    def _get(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            row = db.get(EngineRecord, key)
            return row.value if row is not None else None
        finally:
            db.close()

    def _set(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            row = db.get(EngineRecord, key)
            if row is None:
                db.add(EngineRecord(key=key, value=value))
            else:
                row.value = value
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
