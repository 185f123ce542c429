"""stakesync

Confirmed-block replay and event indexing for staking and ERC20 contracts
"""

from stakesync.core.chain_data_source import (
    ChainDataSource,
    LogStream,
    Web3HTTPChainDataSource,
)
from stakesync.core.checkpoint_store import (
    CheckpointStore,
    SQLCheckpointStore,
    checkpoint_key,
)
from stakesync.core.config import (
    IndexerSettings,
    create_scheduler,
    create_scheduler_from_env,
    load_settings_from_env,
    targets_from_staking_settings,
)
from stakesync.core.decoders import (
    ERC20_EVENTS,
    STAKING_EVENTS,
    DecoderStyle,
    EventDecoder,
    EventFamily,
    get_event_family,
)
from stakesync.core.errors import (
    ChainDataSourceError,
    EventDecodeError,
    StakeSyncError,
    StoreError,
)
from stakesync.core.event_record_store import EventRecordStore, SQLEventRecordStore
from stakesync.core.models import create_db_engine, init_db
from stakesync.core.poll_scheduler import PollScheduler, PollTask, TaskState, WatchTarget
from stakesync.core.range_calculator import compute_scan_range
from stakesync.core.replay_orchestrator import ReplayOrchestrator
from stakesync.core.types import (
    BlockRange,
    DecodeOutcome,
    DecodeResult,
    EventRecord,
    InsertResult,
    RawLog,
    ReplayResult,
)
from stakesync.utils.log import get_default_logger

__all__ = [
    "ReplayOrchestrator",
    "PollScheduler",
    "PollTask",
    "TaskState",
    "WatchTarget",
    "compute_scan_range",
    "BlockRange",
    "RawLog",
    "DecodeOutcome",
    "DecodeResult",
    "EventRecord",
    "InsertResult",
    "ReplayResult",
    "EventDecoder",
    "EventFamily",
    "DecoderStyle",
    "STAKING_EVENTS",
    "ERC20_EVENTS",
    "get_event_family",
    "ChainDataSource",
    "LogStream",
    "Web3HTTPChainDataSource",
    "CheckpointStore",
    "SQLCheckpointStore",
    "checkpoint_key",
    "EventRecordStore",
    "SQLEventRecordStore",
    "create_db_engine",
    "init_db",
    "IndexerSettings",
    "load_settings_from_env",
    "targets_from_staking_settings",
    "create_scheduler",
    "create_scheduler_from_env",
    "StakeSyncError",
    "ChainDataSourceError",
    "StoreError",
    "EventDecodeError",
    "get_default_logger",
]
