"""
Deduplicated storage for decoded events.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import pandas as pd
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
from web3 import Web3

from stakesync.core.errors import StoreError
from stakesync.core.models import EventLog, create_db_engine, now_ms
from stakesync.core.types import EventRecord, InsertResult
from stakesync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


class EventRecordStore(ABC):
    """
    Interface for event record storage.
    At most one record exists per (tx_hash, log_index).
    """

    @abstractmethod
    def insert_if_absent(self, record: EventRecord) -> InsertResult:
        """
        Insert a record unless one with the same (tx_hash, log_index) exists.

        :param record: The decoded event.
        :return: INSERTED for a new record, ALREADY_PRESENT for a duplicate.
        """

    @abstractmethod
    def count(
        self,
        contract_address: Optional[str] = None,
        event_name: Optional[str] = None,
    ) -> int:
        """
        Count stored records.

        :param contract_address: Only count records of this contract.
        :param event_name: Only count records of this event.
        :return: The number of matching records.
        """

    @abstractmethod
    def find_events(
        self,
        contract_address: Optional[str] = None,
        event_name: Optional[str] = None,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
    ) -> List[EventRecord]:
        """
        Return stored records ordered by (block_number, log_index).

        :param contract_address: Only return records of this contract.
        :param event_name: Only return records of this event.
        :param from_block: Lowest block number, inclusive.
        :param to_block: Highest block number, inclusive.
        :return: The matching records.
        """


class SQLEventRecordStore(EventRecordStore):
    """
    Event record store backed by the event_log table.
    Duplicates are detected by the (tx_hash, log_index) unique constraint
    on a single INSERT, never by a separate read.
    """

    def __init__(self, db_engine: Engine):
        self.db_engine = db_engine

    @staticmethod
    def create_instance_from_db_url(
        db_url: str, engine_kwargs: dict | None = None
    ) -> "SQLEventRecordStore":
        return SQLEventRecordStore(create_db_engine(db_url, engine_kwargs))

    def insert_if_absent(self, record: EventRecord) -> InsertResult:
        row = EventLog(
            tx_hash=record.tx_hash.lower(),
            log_index=record.log_index,
            block_number=record.block_number,
            event=record.event_name,
            contract=Web3.to_checksum_address(record.contract_address),
            event_args=record.args_json(),
            created_at=now_ms(),
        )
        try:
            with Session(self.db_engine) as session:
                session.add(row)
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    _LOG.debug(
                        "Event %s:%s already present", record.tx_hash, record.log_index
                    )
                    return InsertResult.ALREADY_PRESENT
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to insert event {record.tx_hash}:{record.log_index}: {e}"
            ) from e
        return InsertResult.INSERTED

    def _filtered(
        self,
        statement,
        contract_address: Optional[str],
        event_name: Optional[str],
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
    ):
        if contract_address is not None:
            statement = statement.where(
                EventLog.contract == Web3.to_checksum_address(contract_address)
            )
        if event_name is not None:
            statement = statement.where(EventLog.event == event_name)
        if from_block is not None:
            statement = statement.where(EventLog.block_number >= from_block)
        if to_block is not None:
            statement = statement.where(EventLog.block_number <= to_block)
        return statement

    def count(
        self,
        contract_address: Optional[str] = None,
        event_name: Optional[str] = None,
    ) -> int:
        statement = self._filtered(
            select(func.count()).select_from(EventLog), contract_address, event_name
        )
        try:
            with Session(self.db_engine) as session:
                return int(session.exec(statement).one())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to count events: {e}") from e

    def find_events(
        self,
        contract_address: Optional[str] = None,
        event_name: Optional[str] = None,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
    ) -> List[EventRecord]:
        statement = self._filtered(
            select(EventLog), contract_address, event_name, from_block, to_block
        ).order_by(EventLog.block_number, EventLog.log_index)
        try:
            with Session(self.db_engine) as session:
                rows = session.exec(statement).all()
                return [
                    EventRecord(
                        tx_hash=row.tx_hash,
                        log_index=row.log_index,
                        block_number=row.block_number,
                        event_name=row.event,
                        contract_address=row.contract,
                        args=json.loads(row.event_args),
                    )
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read events: {e}") from e

    def get_events_df(
        self,
        contract_address: Optional[str] = None,
        event_name: Optional[str] = None,
    ) -> pd.DataFrame:
        """
        Return stored events as a DataFrame with one column per decoded argument.

        :param contract_address: Only return records of this contract.
        :param event_name: Only return records of this event.
        :return: The DataFrame ordered by (block_number, log_index).
        """
        statement = self._filtered(
            select(EventLog), contract_address, event_name
        ).order_by(EventLog.block_number, EventLog.log_index)
        try:
            with Session(self.db_engine) as session:
                rows = session.exec(statement).all()
                data = [
                    {
                        "block_number": row.block_number,
                        "tx_hash": row.tx_hash,
                        "log_index": row.log_index,
                        "event": row.event,
                        "contract": row.contract,
                        "created_at": pd.Timestamp(int(row.created_at), unit="ms", tz="UTC"),
                        **json.loads(row.event_args),
                    }
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read events: {e}") from e
        return pd.DataFrame(data)
