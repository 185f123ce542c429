"""
The chain data source module provides the chain head and raw logs
for a contract, event signature and block range.
This implementation uses Web3.HTTPProvider.
"""

import logging
import os
import pprint
from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Optional, Union

from dotenv import load_dotenv
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from stakesync.core.errors import ChainDataSourceError
from stakesync.core.types import BlockRange, RawLog
from stakesync.utils.env_utils import (
    check_for_missing_env_vars,
    get_bool_env_var,
    get_float_env_var,
    get_int_env_var,
)
from stakesync.utils.log import get_default_logger
from stakesync.utils.retries import with_retries

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

# Settings for the connection retry for Web3.HTTPProvider.
# Maximum number of attempts.
_W3_CONNECTION_MAX_ATTEMPTS = 5
# Initial backoff in seconds, doubled after every failed attempt.
_W3_CONNECTION_BACKOFF = 1

# Default per-request deadline in seconds.
DEFAULT_REQUEST_TIMEOUT = 20
# Default number of blocks per eth_getLogs request.
# Many hosted nodes reject wider ranges.
DEFAULT_MAX_BLOCK_SPAN = 2000

_RPC_ERRORS = (RequestException, Web3Exception, ValueError)


class LogStream:
    """
    Finite, one-shot sequence of raw logs for one filter.
    A stream can be iterated once; a new range needs a new filter_logs() call.
    Use as a context manager so that the underlying cursor is released
    on every exit path.
    """

    def __init__(self, logs: Iterable[RawLog]):
        self._logs: Iterator[RawLog] = iter(logs)
        self._started = False
        self._closed = False

    def __iter__(self) -> "LogStream":
        if self._closed:
            raise RuntimeError("LogStream is closed")
        if self._started:
            raise RuntimeError("LogStream can only be iterated once")
        self._started = True
        return self

    def __next__(self) -> RawLog:
        if self._closed:
            raise StopIteration
        return next(self._logs)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        if self._closed:
            return
        self._closed = True
        # Generators release their pending request state on close().
        close = getattr(self._logs, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "LogStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ChainDataSource(ABC):
    """
    Interface for chain data access used by the replay orchestrator.
    """

    @abstractmethod
    def current_head(self) -> int:
        """
        Return the current chain head block number.

        :return: The latest block number.
        """

    @abstractmethod
    def filter_logs(
        self,
        contract_address: str,
        event_signature: str,
        from_block: int,
        to_block: int,
    ) -> LogStream:
        """
        Open a lazy stream of logs emitted by a contract
        with a given topic0 in [from_block, to_block].

        :param contract_address: The emitting contract.
        :param event_signature: The event topic0 hash.
        :param from_block: First block, inclusive.
        :param to_block: Last block, inclusive.
        :return: The log stream, ordered by block and log index.
        """


class Web3HTTPChainDataSource(ChainDataSource):
    """
    Chain data source accessible using Web3.HTTPProvider.
    Every request is bounded by request_timeout; a timeout surfaces
    as ChainDataSourceError and fails the current pass only.
    """

    # pylint: disable-msg=too-many-arguments
    def __init__(
        self,
        node_rpc_url: str,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_block_span: int = DEFAULT_MAX_BLOCK_SPAN,
        inject_poa_middleware: bool = False,
        w3: Optional[Web3] = None,
    ):
        """
        Initialize the data source and connect to the node.

        :param node_rpc_url: Node RPC URL.
        :param request_timeout: Deadline in seconds for each RPC request.
        :param max_block_span: Maximum number of blocks per eth_getLogs request.
        :param inject_poa_middleware: True if the network needs the
            extraData POA middleware, as Polygon PoS and BNB do.
        :param w3: Preconfigured Web3 object, used instead of an HTTP provider.
        """
        if max_block_span < 1:
            raise ValueError(f"max_block_span must be positive, got {max_block_span}")
        self.node_rpc_url = node_rpc_url
        self.request_timeout = request_timeout
        self.max_block_span = max_block_span

        if w3 is None:
            w3 = Web3(
                Web3.HTTPProvider(
                    self.node_rpc_url, request_kwargs={"timeout": request_timeout}
                )
            )
        if inject_poa_middleware:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.w3 = w3

        with_retries(
            self._check_connected,
            _LOG,
            max_attempts=_W3_CONNECTION_MAX_ATTEMPTS,
            delay=_W3_CONNECTION_BACKOFF,
            retry_on=(ChainDataSourceError,),
        )

    def _check_connected(self):
        if not self.w3.is_connected():
            raise ChainDataSourceError(
                f"is_connected() returned False for {self.node_rpc_url}"
            )

    @staticmethod
    def get_init_args_from_env(dotenv_path: Union[str, None] = None) -> dict:
        """
        Worker function to load the environment variables.

        :param dotenv_path: The .env file path, if any.
        :return: The dictionary of construction arguments.
        """
        # Load .env file if it exists.
        if dotenv_path:
            load_dotenv(dotenv_path, verbose=True, override=True)
        node_rpc_url = os.getenv("STAKESYNC_NODE_RPC_URL")
        check_for_missing_env_vars({"STAKESYNC_NODE_RPC_URL": node_rpc_url})
        init_args = {
            "node_rpc_url": node_rpc_url,
            "request_timeout": get_float_env_var(
                "STAKESYNC_RPC_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT
            ),
            "max_block_span": get_int_env_var(
                "STAKESYNC_MAX_BLOCK_SPAN", DEFAULT_MAX_BLOCK_SPAN
            ),
            "inject_poa_middleware": get_bool_env_var("STAKESYNC_INJECT_POA_MIDDLEWARE"),
        }
        _LOG.debug(
            "Web3HTTPChainDataSource.get_init_args_from_env(): init_args =\n%s",
            pprint.pformat(init_args),
        )
        return init_args

    @staticmethod
    def create_instance_from_env(
        dotenv_path: Union[str, None] = None
    ) -> "Web3HTTPChainDataSource":
        """
        Creates an instance initialized from environment variables.

        :param dotenv_path: Path to the .env file.
            If path is not specified, uses the existing environment variables.
        :return: The data source.
        """
        return Web3HTTPChainDataSource(
            **Web3HTTPChainDataSource.get_init_args_from_env(dotenv_path)
        )

    def current_head(self) -> int:
        try:
            return int(self.w3.eth.block_number)
        except _RPC_ERRORS as e:
            raise ChainDataSourceError(f"eth_blockNumber failed: {e}") from e

    def filter_logs(
        self,
        contract_address: str,
        event_signature: str,
        from_block: int,
        to_block: int,
    ) -> LogStream:
        return LogStream(
            self._iter_logs(
                Web3.to_checksum_address(contract_address),
                event_signature,
                BlockRange(from_block, to_block),
            )
        )

    def _iter_logs(
        self, contract_address: str, event_signature: str, block_range: BlockRange
    ) -> Iterator[RawLog]:
        # Pages are requested only as the consumer advances,
        # so an early close skips the remaining requests.
        for chunk in block_range.split(self.max_block_span):
            try:
                logs = self.w3.eth.get_logs(
                    {
                        "address": contract_address,
                        "fromBlock": chunk.start,
                        "toBlock": chunk.end,
                        "topics": [event_signature],
                    }
                )
            except _RPC_ERRORS as e:
                raise ChainDataSourceError(
                    f"eth_getLogs failed for {contract_address} "
                    f"[{chunk.start}, {chunk.end}]: {e}"
                ) from e
            _LOG.debug(
                "eth_getLogs %s [%s, %s] topic0=%s: %s logs",
                contract_address,
                chunk.start,
                chunk.end,
                event_signature,
                len(logs),
            )
            for log in logs:
                yield RawLog.from_web3_log(log)
