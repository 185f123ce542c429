"""SQL models for the checkpoint and event record stores."""

from typing import Optional

import pandas as pd
from sqlalchemy import BigInteger, Column, Text, UniqueConstraint
from sqlalchemy.engine import Engine
from sqlmodel import Field, SQLModel, create_engine


class SyncState(SQLModel, table=True):
    """ORM model for the sync_state table, one row per (event family, contract) checkpoint."""

    __tablename__ = "sync_state"
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False))
    updated_at: int = Field(sa_column=Column(BigInteger, nullable=False))


class EventLog(SQLModel, table=True):
    """ORM model for the event_log table, the deduplicated log of decoded events."""

    __tablename__ = "event_log"
    __table_args__ = (
        UniqueConstraint("tx_hash", "log_index", name="uq_event_log_tx_hash_log_index"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    tx_hash: str = Field(index=True)
    log_index: int = Field(index=False)
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    event: str = Field(index=True)
    contract: str = Field(index=True)
    event_args: str = Field(sa_column=Column(Text, nullable=False))
    created_at: int = Field(sa_column=Column(BigInteger, nullable=False))


def now_ms() -> int:
    """Current UTC time in milliseconds, the timestamp unit of both tables."""
    return int(pd.Timestamp.now(tz="UTC").timestamp() * 1000)


def create_db_engine(db_url: str, engine_kwargs: dict | None = None) -> Engine:
    """
    Create an engine for the store tables.

    :param db_url: SQLAlchemy database URL.
    :param engine_kwargs: Extra create_engine() arguments.
    :return: The engine.
    """
    if engine_kwargs is None:
        engine_kwargs = {}
    return create_engine(db_url, **engine_kwargs)


def init_db(db_engine: Engine):
    """
    Create the store tables if they do not exist.

    :param db_engine: The engine.
    """
    SQLModel.metadata.create_all(
        db_engine, tables=[SyncState.__table__, EventLog.__table__]
    )
