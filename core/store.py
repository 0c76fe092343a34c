"""
Store persistente per i contatori.

Un'unica interfaccia (CounterStore) e tre backend intercambiabili:
- SQLite (SQLAlchemy async + aiosqlite)
- MySQL (SQLAlchemy async + aiomysql)
- MongoDB (pymongo AsyncMongoClient)

Ogni backend usa l'upsert atomico nativo, mai read-modify-write applicativo.
Gli errori di connessione/query emergono come StoreError; lo store non
ritenta mai internamente.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Protocol, Tuple, Type, Union

from pymongo import ASCENDING, AsyncMongoClient, ReturnDocument, UpdateOne
from pymongo.errors import PyMongoError
from sqlalchemy import BigInteger, Column, Integer, String, event, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

TABLE_NAME = "tb_count"
COLLECTION_NAME = "counters"
MAX_NAME_LENGTH = 32

# PRAGMA applicati a ogni nuova connessione SQLite
SQLITE_PRAGMAS = {
    "busy_timeout": 5000,
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "cache_size": -2000,  # 2MB
    "temp_store": "MEMORY",
}

MONGO_CLIENT_OPTIONS = {
    "retryWrites": True,
    "w": 1,
    "readPreference": "primary",
    "connectTimeoutMS": 5000,
    "serverSelectionTimeoutMS": 5000,
}


class StoreError(RuntimeError):
    """Errore di connessione o query verso lo store persistente."""


@dataclass(frozen=True)
class CounterRecord:
    """Coppia nome/valore di un contatore (la demo usa una stringa di cifre)."""

    name: str
    count: Union[int, str]

    def to_dict(self) -> dict:
        return {"name": self.name, "count": self.count}


Base = declarative_base()


class CounterRow(Base):
    """Un record durevole per contatore, univoco per nome."""
    __tablename__ = TABLE_NAME
    __table_args__ = {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb4"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(MAX_NAME_LENGTH), nullable=False, unique=True, index=True)
    num = Column(BigInteger, nullable=False, default=0, server_default="0")


counter_table = CounterRow.__table__


class CounterStore(Protocol):
    """Contratto comune ai backend."""

    backend: str

    async def init(self) -> None: ...

    async def get_num(self, name: str) -> CounterRecord: ...

    async def get_all(self) -> List[CounterRecord]: ...

    async def set_num(self, name: str, count: int) -> None: ...

    async def set_num_multi(self, records: Iterable[CounterRecord]) -> None: ...

    async def increment(self, name: str, delta: int = 1) -> int: ...

    async def close(self) -> None: ...


@contextmanager
def _store_errors(backend: str, action: str, errors: Tuple[Type[BaseException], ...]):
    """Converte le eccezioni del driver in StoreError."""
    try:
        yield
    except errors as e:
        raise StoreError(f"{backend} {action} failed: {e}") from e


_SQL_ERRORS = (SQLAlchemyError, OSError)


async def _sql_create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _sql_get_num(engine: AsyncEngine, name: str) -> CounterRecord:
    stmt = select(counter_table.c.name, counter_table.c.num).where(counter_table.c.name == name)
    async with engine.connect() as conn:
        result = await conn.execute(stmt)
        row = result.first()
    if row is None:
        return CounterRecord(name=name, count=0)
    return CounterRecord(name=row.name, count=int(row.num))


async def _sql_get_all(engine: AsyncEngine) -> List[CounterRecord]:
    stmt = select(counter_table.c.name, counter_table.c.num).order_by(counter_table.c.id)
    async with engine.connect() as conn:
        result = await conn.execute(stmt)
        return [CounterRecord(name=row.name, count=int(row.num)) for row in result]


def _as_params(records: Iterable[CounterRecord]) -> List[dict]:
    return [{"name": record.name, "num": int(record.count)} for record in records]


def _apply_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    for pragma, value in SQLITE_PRAGMAS.items():
        cursor.execute(f"PRAGMA {pragma} = {value}")
    cursor.close()


class SQLiteCounterStore:
    """Backend SQLite: file locale, WAL, upsert ON CONFLICT."""

    backend = "sqlite"

    def __init__(self, path: str, echo: bool = False):
        self.path = path
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{path}", echo=echo)
        event.listen(self.engine.sync_engine, "connect", _apply_sqlite_pragmas)

    def _upsert(self):
        stmt = sqlite_insert(counter_table)
        return stmt.on_conflict_do_update(
            index_elements=[counter_table.c.name],
            set_={"num": stmt.excluded.num},
        )

    async def init(self) -> None:
        with _store_errors(self.backend, "init", _SQL_ERRORS):
            await _sql_create_schema(self.engine)
        logger.info(f"[STORE] SQLite store ready at {self.path}")

    async def get_num(self, name: str) -> CounterRecord:
        with _store_errors(self.backend, "get_num", _SQL_ERRORS):
            return await _sql_get_num(self.engine, name)

    async def get_all(self) -> List[CounterRecord]:
        with _store_errors(self.backend, "get_all", _SQL_ERRORS):
            return await _sql_get_all(self.engine)

    async def set_num(self, name: str, count: int) -> None:
        await self.set_num_multi([CounterRecord(name=name, count=count)])

    async def set_num_multi(self, records: Iterable[CounterRecord]) -> None:
        params = _as_params(records)
        if not params:
            return
        with _store_errors(self.backend, "set_num_multi", _SQL_ERRORS):
            # Una sola transazione per tutto il batch
            async with self.engine.begin() as conn:
                await conn.execute(self._upsert(), params)

    async def increment(self, name: str, delta: int = 1) -> int:
        stmt = sqlite_insert(counter_table).values(name=name, num=delta)
        stmt = stmt.on_conflict_do_update(
            index_elements=[counter_table.c.name],
            set_={"num": counter_table.c.num + stmt.excluded.num},
        ).returning(counter_table.c.num)
        with _store_errors(self.backend, "increment", _SQL_ERRORS):
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return int(result.scalar_one())

    async def close(self) -> None:
        await self.engine.dispose()


class MySQLCounterStore:
    """Backend MySQL: InnoDB, READ COMMITTED, upsert ON DUPLICATE KEY."""

    backend = "mysql"

    def __init__(self, url: str, echo: bool = False):
        if url.startswith("mysql://"):
            url = url.replace("mysql://", "mysql+aiomysql://", 1)
        self.engine = create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=3600,
            isolation_level="READ COMMITTED",
        )

    def _upsert(self):
        stmt = mysql_insert(counter_table)
        return stmt.on_duplicate_key_update(num=stmt.inserted.num)

    async def init(self) -> None:
        with _store_errors(self.backend, "init", _SQL_ERRORS):
            await _sql_create_schema(self.engine)
        logger.info("[STORE] MySQL store ready")

    async def get_num(self, name: str) -> CounterRecord:
        with _store_errors(self.backend, "get_num", _SQL_ERRORS):
            return await _sql_get_num(self.engine, name)

    async def get_all(self) -> List[CounterRecord]:
        with _store_errors(self.backend, "get_all", _SQL_ERRORS):
            return await _sql_get_all(self.engine)

    async def set_num(self, name: str, count: int) -> None:
        await self.set_num_multi([CounterRecord(name=name, count=count)])

    async def set_num_multi(self, records: Iterable[CounterRecord]) -> None:
        params = _as_params(records)
        if not params:
            return
        with _store_errors(self.backend, "set_num_multi", _SQL_ERRORS):
            async with self.engine.begin() as conn:
                await conn.execute(self._upsert(), params)

    async def increment(self, name: str, delta: int = 1) -> int:
        stmt = mysql_insert(counter_table).values(name=name, num=delta)
        stmt = stmt.on_duplicate_key_update(num=counter_table.c.num + stmt.inserted.num)
        select_stmt = select(counter_table.c.num).where(counter_table.c.name == name)
        with _store_errors(self.backend, "increment", _SQL_ERRORS):
            async with self.engine.begin() as conn:
                await conn.execute(stmt)
                result = await conn.execute(select_stmt)
                return int(result.scalar_one())

    async def close(self) -> None:
        await self.engine.dispose()


class MongoCounterStore:
    """Backend MongoDB: indice univoco su name, upsert con $set / $inc."""

    backend = "mongodb"

    def __init__(self, uri: str, db_name: str = "counter_db", client=None):
        self.client = client if client is not None else AsyncMongoClient(uri, **MONGO_CLIENT_OPTIONS)
        self.collection = self.client[db_name][COLLECTION_NAME]

    @staticmethod
    def _sanitize_name(name: str) -> str:
        return name.strip()[:MAX_NAME_LENGTH]

    async def init(self) -> None:
        with _store_errors(self.backend, "init", (PyMongoError,)):
            await self.collection.create_index([("name", ASCENDING)], unique=True, name="idx_name")
        logger.info("[STORE] MongoDB store ready")

    async def get_num(self, name: str) -> CounterRecord:
        name = self._sanitize_name(name)
        with _store_errors(self.backend, "get_num", (PyMongoError,)):
            doc = await self.collection.find_one(
                {"name": name},
                projection={"_id": 0, "name": 1, "num": 1},
            )
        if not doc:
            return CounterRecord(name=name, count=0)
        return CounterRecord(name=doc["name"], count=int(doc.get("num", 0)))

    async def get_all(self) -> List[CounterRecord]:
        records = []
        with _store_errors(self.backend, "get_all", (PyMongoError,)):
            cursor = self.collection.find({}, projection={"_id": 0, "name": 1, "num": 1})
            async for doc in cursor:
                records.append(CounterRecord(name=doc["name"], count=int(doc.get("num", 0))))
        return records

    async def set_num(self, name: str, count: int) -> None:
        with _store_errors(self.backend, "set_num", (PyMongoError,)):
            await self.collection.update_one(
                {"name": self._sanitize_name(name)},
                {
                    "$set": {"num": int(count)},
                    "$setOnInsert": {"created_at": datetime.now(timezone.utc)},
                },
                upsert=True,
            )

    async def set_num_multi(self, records: Iterable[CounterRecord]) -> None:
        now = datetime.now(timezone.utc)
        operations = [
            UpdateOne(
                {"name": self._sanitize_name(record.name)},
                {"$set": {"num": int(record.count)}, "$setOnInsert": {"created_at": now}},
                upsert=True,
            )
            for record in records
        ]
        if not operations:
            return
        with _store_errors(self.backend, "set_num_multi", (PyMongoError,)):
            await self.collection.bulk_write(operations, ordered=False)

    async def increment(self, name: str, delta: int = 1) -> int:
        with _store_errors(self.backend, "increment", (PyMongoError,)):
            doc = await self.collection.find_one_and_update(
                {"name": self._sanitize_name(name)},
                {
                    "$inc": {"num": int(delta)},
                    "$setOnInsert": {"created_at": datetime.now(timezone.utc)},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
                projection={"_id": 0, "num": 1},
            )
        return int(doc["num"])

    async def close(self) -> None:
        await self.client.close()


def create_store(config) -> CounterStore:
    """
    Factory dello store in base a DB_TYPE.

    Args:
        config: CounterConfig (db_type, sqlite_path, mysql_url, mongo_uri, mongo_db)

    Returns:
        Istanza del backend configurato

    Raises:
        ValueError: Se db_type non supportato
    """
    db_type = (config.db_type or "sqlite").lower()
    if db_type == "sqlite":
        return SQLiteCounterStore(config.sqlite_path)
    if db_type == "mysql":
        return MySQLCounterStore(config.mysql_url)
    if db_type == "mongodb":
        return MongoCounterStore(config.mongo_uri, config.mongo_db)
    raise ValueError(f"Unsupported database type: {db_type}")
