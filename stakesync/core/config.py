"""
Settings loaded from the environment and wiring of the runtime objects.

STAKESYNC_WATCH_JSON_DESCRIPTOR holds the watch targets as a JSON list, e.g.
[
    {"address": "0x...", "family": "staking", "start_block": 100, "confirmations": 6},
    {"address": "0x...", "family": "erc20", "interval": 5}
]
"""

import json
import logging
import os
import pprint
from dataclasses import dataclass, field
from typing import List, Union

from dotenv import load_dotenv
from web3 import Web3

from stakesync.core.chain_data_source import (
    DEFAULT_MAX_BLOCK_SPAN,
    DEFAULT_REQUEST_TIMEOUT,
    Web3HTTPChainDataSource,
)
from stakesync.core.checkpoint_store import SQLCheckpointStore
from stakesync.core.decoders import ERC20_FAMILY, STAKING_FAMILY
from stakesync.core.event_record_store import SQLEventRecordStore
from stakesync.core.models import create_db_engine, init_db
from stakesync.core.poll_scheduler import PollScheduler, PollTask, WatchTarget
from stakesync.core.replay_orchestrator import ReplayOrchestrator
from stakesync.utils.env_utils import check_for_missing_env_vars
from stakesync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

_TARGET_KEYS = {"address", "family", "start_block", "confirmations", "interval"}


@dataclass
class IndexerSettings:
    """
    Runtime settings of the indexer.
    """

    node_rpc_url: str
    db_url: str
    targets: List[WatchTarget] = field(default_factory=list)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_block_span: int = DEFAULT_MAX_BLOCK_SPAN
    inject_poa_middleware: bool = False


def _parse_target(target_dict: dict) -> WatchTarget:
    if not isinstance(target_dict, dict):
        raise ValueError(f"Watch target must be an object, got {target_dict!r}")
    unknown = set(target_dict) - _TARGET_KEYS
    if unknown:
        raise ValueError(f"Unknown watch target keys: {sorted(unknown)}")
    address = target_dict.get("address")
    if not address or not Web3.is_address(address):
        raise ValueError(f"Invalid watch target address: {address!r}")
    if "family" not in target_dict:
        raise ValueError(f"Watch target {address} has no family")
    try:
        return WatchTarget(
            contract_address=Web3.to_checksum_address(address),
            family=target_dict["family"],
            start_block=int(target_dict.get("start_block", 0)),
            confirmations=int(target_dict.get("confirmations", 1)),
            interval=float(target_dict.get("interval", 1)),
        )
    except TypeError as e:
        raise ValueError(f"Invalid watch target {address}: {e}") from e


def parse_watch_targets(targets_json: str) -> List[WatchTarget]:
    """
    Parse a JSON list of watch targets.

    :param targets_json: The JSON descriptor.
    :return: The watch targets in descriptor order.
    """
    try:
        target_dicts = json.loads(targets_json)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid watch target descriptor: {e}") from e
    if not isinstance(target_dicts, list):
        raise ValueError("Watch target descriptor must be a JSON list")
    return [_parse_target(d) for d in target_dicts]


def targets_from_staking_settings(
    staking_address: str,
    staking_token: str = "",
    reward_token: str = "",
    start_block: int = 0,
    confirmations: int = 1,
    interval: float = 1.0,
) -> List[WatchTarget]:
    """
    Build the targets of a staking deployment:
    the staking contract under the staking family,
    and each token address that is set under the erc20 family.

    :param staking_address: The staking contract address.
    :param staking_token: The staked token address, or "" if not watched.
    :param reward_token: The reward token address, or "" if not watched.
    :param start_block: First block for pairs with no checkpoint yet.
    :param confirmations: Confirmation depth.
    :param interval: Seconds between polling passes.
    :return: The watch targets.
    """
    targets = [
        WatchTarget(
            Web3.to_checksum_address(staking_address),
            STAKING_FAMILY,
            start_block,
            confirmations,
            interval,
        )
    ]
    for token in (staking_token, reward_token):
        if not token or int(token, 16) == 0:
            continue
        targets.append(
            WatchTarget(
                Web3.to_checksum_address(token),
                ERC20_FAMILY,
                start_block,
                confirmations,
                interval,
            )
        )
    return targets


def load_settings_from_env(dotenv_path: Union[str, None] = None) -> IndexerSettings:
    """
    Load the settings from environment variables.

    :param dotenv_path: Path to the .env file.
        If path is not specified, uses the existing environment variables.
    :return: The settings.
    """
    # Load .env file if it exists.
    if dotenv_path:
        load_dotenv(dotenv_path, verbose=True, override=True)
    node_rpc_url = os.getenv("STAKESYNC_NODE_RPC_URL")
    db_url = os.getenv("STAKESYNC_DB_URL")
    targets_json = os.getenv("STAKESYNC_WATCH_JSON_DESCRIPTOR")
    check_for_missing_env_vars(
        {
            "STAKESYNC_NODE_RPC_URL": node_rpc_url,
            "STAKESYNC_DB_URL": db_url,
            "STAKESYNC_WATCH_JSON_DESCRIPTOR": targets_json,
        }
    )
    _LOG.info(
        "load_settings_from_env(): STAKESYNC_WATCH_JSON_DESCRIPTOR =\n%s",
        pprint.pformat(targets_json),
    )
    source_args = Web3HTTPChainDataSource.get_init_args_from_env()
    return IndexerSettings(
        node_rpc_url=source_args["node_rpc_url"],
        db_url=db_url,
        targets=parse_watch_targets(targets_json),
        request_timeout=source_args["request_timeout"],
        max_block_span=source_args["max_block_span"],
        inject_poa_middleware=source_args["inject_poa_middleware"],
    )


def create_scheduler(settings: IndexerSettings) -> PollScheduler:
    """
    Wire the data source, stores, orchestrators and tasks for the settings.
    Every task gets its own store handles over a shared engine.

    :param settings: The settings.
    :return: The scheduler, not yet started.
    """
    chain = Web3HTTPChainDataSource(
        settings.node_rpc_url,
        request_timeout=settings.request_timeout,
        max_block_span=settings.max_block_span,
        inject_poa_middleware=settings.inject_poa_middleware,
    )
    db_engine = create_db_engine(settings.db_url)
    init_db(db_engine)
    tasks = [
        PollTask(
            ReplayOrchestrator(
                chain, SQLCheckpointStore(db_engine), SQLEventRecordStore(db_engine)
            ),
            target,
        )
        for target in settings.targets
    ]
    return PollScheduler(tasks)


def create_scheduler_from_env(dotenv_path: Union[str, None] = None) -> PollScheduler:
    """
    Create a scheduler initialized from environment variables.

    :param dotenv_path: Path to the .env file.
    :return: The scheduler, not yet started.
    """
    return create_scheduler(load_settings_from_env(dotenv_path))
