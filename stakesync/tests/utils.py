"""
stakesync test utils
"""

import logging
from typing import Callable, List, Optional

from eth_abi import encode as abi_encode
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from stakesync.core.chain_data_source import ChainDataSource, LogStream
from stakesync.core.errors import ChainDataSourceError
from stakesync.core.models import init_db
from stakesync.core.types import BlockRange, RawLog
from stakesync.utils.hex_utils import bytes_to_hex_str
from stakesync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


STAKING_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TOKEN_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
ALICE = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BOB = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


def create_memory_engine() -> Engine:
    """
    Create an in-memory SQLite engine with the store tables.
    StaticPool keeps one connection, so every session and thread sees the same database.

    :return: The engine.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


def address_topic(address: str) -> str:
    return bytes_to_hex_str(abi_encode(["address"], [address]))


def uint_topic(value: int) -> str:
    return bytes_to_hex_str(abi_encode(["uint256"], [value]))


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def make_log(
    address: str,
    topics: List[str],
    block_number: int,
    tx: str,
    log_index: int = 0,
    data: str = "0x",
) -> RawLog:
    return RawLog(
        address=address,
        topics=tuple(topics),
        data=data,
        tx_hash=tx,
        log_index=log_index,
        block_number=block_number,
    )


def make_indexed_numeric_log(
    signature: str,
    user: str,
    amount: int,
    block_number: int,
    tx: str,
    log_index: int = 0,
    address: str = STAKING_ADDRESS,
) -> RawLog:
    """Build a Staked/Withdrawn/RewardsClaimed style log."""
    return make_log(
        address,
        [signature, address_topic(user), uint_topic(amount)],
        block_number,
        tx,
        log_index,
    )


def make_transfer_log(
    signature: str,
    sender: str,
    receiver: str,
    value: int,
    block_number: int,
    tx: str,
    log_index: int = 0,
    address: str = TOKEN_ADDRESS,
) -> RawLog:
    """Build an ERC20 Transfer or Approval log."""
    return make_log(
        address,
        [signature, address_topic(sender), address_topic(receiver)],
        block_number,
        tx,
        log_index,
        data=bytes_to_hex_str(abi_encode(["uint256"], [value])),
    )


class FakeChainDataSource(ChainDataSource):
    """
    In-memory chain data source.
    Serves logs from a list, filtered the way eth_getLogs filters them,
    and records every opened stream.
    """

    def __init__(self, head: int, logs: Optional[List[RawLog]] = None):
        self.head = head
        self.logs: List[RawLog] = list(logs or [])
        self.streams: List[LogStream] = []
        self.filter_calls: List[tuple] = []
        self.head_error: Optional[Exception] = None
        # Called with (signature, yielded_count) before each log; may raise.
        self.before_log: Optional[Callable[[str, int], None]] = None

    def current_head(self) -> int:
        if self.head_error is not None:
            raise self.head_error
        return self.head

    def filter_logs(
        self,
        contract_address: str,
        event_signature: str,
        from_block: int,
        to_block: int,
    ) -> LogStream:
        block_range = BlockRange(from_block, to_block)
        self.filter_calls.append(
            (contract_address, event_signature, block_range.start, block_range.end)
        )
        matches = sorted(
            (
                log
                for log in self.logs
                if log.address.lower() == contract_address.lower()
                and log.topic0 == event_signature
                and from_block <= log.block_number <= to_block
            ),
            key=lambda log: (log.block_number, log.log_index),
        )
        stream = LogStream(self._iter_logs(event_signature, matches))
        self.streams.append(stream)
        return stream

    def _iter_logs(self, event_signature: str, matches: List[RawLog]):
        for i, log in enumerate(matches):
            if self.before_log is not None:
                self.before_log(event_signature, i)
            yield log


def fail_at(event_signature: str, index: int) -> Callable[[str, int], None]:
    """
    Build a FakeChainDataSource.before_log hook that fails
    when the stream for event_signature reaches the log at index.
    """

    def _hook(signature: str, i: int):
        if signature == event_signature and i == index:
            raise ChainDataSourceError("connection reset")

    return _hook
