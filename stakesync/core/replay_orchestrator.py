"""
The replay orchestrator runs one catch-up pass for one (contract, event family) pair:
compute the safe range, pull, decode and store every event type of the family,
then advance the checkpoint.

The checkpoint moves only after every decoder of the family has drained
without error. A failed pass leaves it in place, and the next pass re-reads
the same or an overlapping range. Records already stored by the failed pass
come back as ALREADY_PRESENT.
"""

import logging
from typing import Callable, Optional, Union

from web3 import Web3

from stakesync.core.chain_data_source import ChainDataSource
from stakesync.core.checkpoint_store import CheckpointStore, checkpoint_key
from stakesync.core.decoders import EventDecoder, EventFamily, get_event_family
from stakesync.core.errors import EventDecodeError
from stakesync.core.event_record_store import EventRecordStore
from stakesync.core.range_calculator import compute_scan_range
from stakesync.core.types import (
    BlockRange,
    DecodeOutcome,
    EventRecord,
    InsertResult,
    ReplayResult,
)
from stakesync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


class ReplayOrchestrator:
    """
    Drives replay passes.
    Holds no per-pass state, so one orchestrator may serve several pairs
    as long as its stores tolerate concurrent use.
    """

    def __init__(
        self,
        chain: ChainDataSource,
        checkpoints: CheckpointStore,
        records: EventRecordStore,
        on_inserted: Optional[Callable[[EventRecord], None]] = None,
    ):
        """
        :param chain: Source of the chain head and raw logs.
        :param checkpoints: Checkpoint store.
        :param records: Event record store.
        :param on_inserted: Called once for every newly inserted record.
            Duplicates never reach it. An exception fails the pass.
        """
        self.chain = chain
        self.checkpoints = checkpoints
        self.records = records
        self.on_inserted = on_inserted

    def replay(
        self,
        contract_address: str,
        family: Union[EventFamily, str],
        start_block: int = 0,
        confirmations: int = 1,
    ) -> Optional[ReplayResult]:
        """
        Run one pass.

        :param contract_address: The contract to index.
        :param family: The event family to index, or its registered name.
        :param start_block: First block for a key with no checkpoint yet.
        :param confirmations: Confirmation depth.
        :return: The pass summary, or None if there was nothing to do.
        """
        if isinstance(family, str):
            family = get_event_family(family)
        key = checkpoint_key(family.name, contract_address)
        last_block = self.checkpoints.get(key)
        head = self.chain.current_head()

        scan_range = compute_scan_range(last_block, start_block, confirmations, head)
        if scan_range is None:
            _LOG.debug(
                "%s up to date: checkpoint=%s head=%s confirmations=%s",
                key,
                last_block,
                head,
                confirmations,
            )
            return None

        result = ReplayResult(checkpoint_key=key, scan_range=scan_range)
        for decoder in family.decoders:
            self._replay_event(contract_address, decoder, scan_range, result)

        self.checkpoints.set(key, scan_range.end)
        _LOG.info(
            "%s replayed [%s, %s]: inserted=%s duplicates=%s skipped=%s",
            key,
            scan_range.start,
            scan_range.end,
            result.inserted,
            result.duplicates,
            result.skipped,
        )
        return result

    def _replay_event(
        self,
        contract_address: str,
        decoder: EventDecoder,
        scan_range: BlockRange,
        result: ReplayResult,
    ):
        """
        Drain the logs of one event type into the record store.
        The stream is closed on every exit path.
        """
        with self.chain.filter_logs(
            contract_address, decoder.signature, scan_range.start, scan_range.end
        ) as logs:
            for raw_log in logs:
                decoded = decoder.decode(raw_log)
                if decoded.outcome is DecodeOutcome.SKIPPED:
                    _LOG.warning(
                        "Skipped %s log %s:%s: %s",
                        decoder.event_name,
                        raw_log.tx_hash,
                        raw_log.log_index,
                        decoded.reason,
                    )
                    result.skipped += 1
                    continue
                if decoded.outcome is DecodeOutcome.MALFORMED:
                    raise EventDecodeError(
                        decoded.reason or "malformed log",
                        decoder.event_name,
                        raw_log.tx_hash,
                        raw_log.log_index,
                    )

                record = EventRecord(
                    tx_hash=raw_log.tx_hash,
                    log_index=raw_log.log_index,
                    block_number=raw_log.block_number,
                    event_name=decoder.event_name,
                    contract_address=Web3.to_checksum_address(raw_log.address),
                    args=decoded.args or {},
                )
                if self.records.insert_if_absent(record) is InsertResult.INSERTED:
                    result.inserted += 1
                    if self.on_inserted is not None:
                        self.on_inserted(record)
                else:
                    result.duplicates += 1
