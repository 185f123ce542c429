"""
Durable per-(event family, contract) sync checkpoints.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from stakesync.core.errors import StoreError
from stakesync.core.models import SyncState, create_db_engine, now_ms
from stakesync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


def checkpoint_key(family: str, contract_address: str) -> str:
    """
    Build the checkpoint key for a family and contract,
    e.g. "staking0xabc...". Addresses are lowercased so that checksummed and
    plain spellings map to the same key.

    :param family: The event family name.
    :param contract_address: The contract address.
    :return: The checkpoint key.
    """
    return family + contract_address.lower()


class CheckpointStore(ABC):
    """
    Interface for checkpoint storage.
    Implementations must be safe under concurrent calls with distinct keys.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[int]:
        """
        Return the last processed block for a key.

        :param key: The checkpoint key.
        :return: The block number, or None if the key has no checkpoint yet.
        """

    @abstractmethod
    def set(self, key: str, block_number: int) -> bool:
        """
        Advance the checkpoint for a key.
        A checkpoint never moves backwards: a lower value leaves the stored one in place.

        :param key: The checkpoint key.
        :param block_number: The new last processed block.
        :return: True if the stored value changed; False otherwise.
        """

    @abstractmethod
    def clear(self, key: str) -> bool:
        """
        Remove a checkpoint so the next pass replays from the configured start block.
        Not used during normal operation.

        :param key: The checkpoint key.
        :return: True if a checkpoint was removed.
        """


class SQLCheckpointStore(CheckpointStore):
    """
    Checkpoint store backed by the sync_state table.
    """

    def __init__(self, db_engine: Engine):
        self.db_engine = db_engine

    @staticmethod
    def create_instance_from_db_url(
        db_url: str, engine_kwargs: dict | None = None
    ) -> "SQLCheckpointStore":
        return SQLCheckpointStore(create_db_engine(db_url, engine_kwargs))

    def get(self, key: str) -> Optional[int]:
        try:
            with Session(self.db_engine) as session:
                state = session.exec(select(SyncState).where(SyncState.name == key)).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read checkpoint {key}: {e}") from e
        return None if state is None else int(state.block_number)

    def set(self, key: str, block_number: int) -> bool:
        if block_number < 0:
            raise ValueError(f"block_number must be non-negative, got {block_number}")
        ts = now_ms()
        try:
            with Session(self.db_engine) as session:
                # Conditional update keeps the value monotonic
                # without a read-then-write race.
                result = session.connection().execute(
                    update(SyncState)
                    .where(SyncState.name == key)
                    .where(SyncState.block_number < block_number)
                    .values(block_number=block_number, updated_at=ts)
                )
                session.commit()
                if result.rowcount > 0:
                    return True

                session.add(SyncState(name=key, block_number=block_number, updated_at=ts))
                try:
                    session.commit()
                except IntegrityError:
                    # The key exists with a value at or above block_number.
                    session.rollback()
                    return False
                return True
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to set checkpoint {key}={block_number}: {e}") from e

    def clear(self, key: str) -> bool:
        try:
            with Session(self.db_engine) as session:
                result = session.connection().execute(
                    delete(SyncState).where(SyncState.name == key)
                )
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to clear checkpoint {key}: {e}") from e
        if result.rowcount > 0:
            _LOG.warning("Cleared checkpoint %s", key)
            return True
        return False
