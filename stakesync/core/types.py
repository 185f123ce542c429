"""
Core types shared by the range calculator, decoders, stores and orchestrator.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping

from stakesync.utils.hex_utils import bytes_to_hex_str_auto


@dataclass(frozen=True)
class BlockRange:
    """
    Inclusive block range [start, end].
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid block range [{self.start}, {self.end}]")

    def span(self) -> int:
        return self.end - self.start + 1

    def split(self, max_span: int) -> Iterator[BlockRange]:
        """
        Yield consecutive sub-ranges of at most max_span blocks, in increasing order.

        :param max_span: Maximum number of blocks per sub-range.
        """
        if max_span < 1:
            raise ValueError(f"max_span must be positive, got {max_span}")
        b = self.start
        while b <= self.end:
            tb = min(self.end, b + max_span - 1)
            yield BlockRange(b, tb)
            b = tb + 1


@dataclass(frozen=True)
class RawLog:
    """
    Undecoded log as returned by eth_getLogs.
    Hashes, topics and data are lowercase 0x-prefixed hex strings.
    """

    address: str
    topics: tuple[str, ...]
    data: str
    tx_hash: str
    log_index: int
    block_number: int

    @property
    def topic0(self) -> str | None:
        return self.topics[0] if self.topics else None

    @staticmethod
    def from_web3_log(log: Mapping[str, Any]) -> "RawLog":
        """
        Normalize a web3 log receipt (AttributeDict with HexBytes members,
        or a plain JSON-RPC dict with hex quantities) into a RawLog.

        :param log: The log receipt.
        :return: The normalized raw log.
        """

        def _int(v: Any) -> int:
            if isinstance(v, int):
                return v
            s = str(v)
            return int(s, 16) if s.startswith("0x") else int(s)

        data = log.get("data", "0x")
        return RawLog(
            address=str(log["address"]),
            topics=tuple(bytes_to_hex_str_auto(t) for t in log.get("topics", [])),
            data=bytes_to_hex_str_auto(data) if data else "0x",
            tx_hash=bytes_to_hex_str_auto(log["transactionHash"]),
            log_index=_int(log["logIndex"]),
            block_number=_int(log["blockNumber"]),
        )


class DecodeOutcome(Enum):
    """Result tag of a single decoder call."""

    DECODED = "decoded"
    SKIPPED = "skipped"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DecodeResult:
    """
    Decoder output.
    args is populated only for DECODED; reason explains SKIPPED and MALFORMED.
    """

    outcome: DecodeOutcome
    args: dict[str, str] | None = None
    reason: str | None = None

    @staticmethod
    def decoded(args: dict[str, str]) -> "DecodeResult":
        return DecodeResult(DecodeOutcome.DECODED, args=args)

    @staticmethod
    def skipped(reason: str) -> "DecodeResult":
        return DecodeResult(DecodeOutcome.SKIPPED, reason=reason)

    @staticmethod
    def malformed(reason: str) -> "DecodeResult":
        return DecodeResult(DecodeOutcome.MALFORMED, reason=reason)


@dataclass(frozen=True)
class EventRecord:
    """
    Canonical, decoded event ready for storage.
    (tx_hash, log_index) is the natural key.
    """

    tx_hash: str
    log_index: int
    block_number: int
    event_name: str
    contract_address: str
    args: dict[str, str] = field(default_factory=dict)

    def args_json(self) -> str:
        # Sorted keys keep the stored payload byte-stable across replays.
        return json.dumps(self.args, sort_keys=True, separators=(",", ":"))


class InsertResult(Enum):
    """Outcome of an idempotent insert."""

    INSERTED = "inserted"
    ALREADY_PRESENT = "already_present"


@dataclass
class ReplayResult:
    """
    Summary of one completed replay pass.
    """

    checkpoint_key: str
    scan_range: BlockRange
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int | str]:
        return {
            "checkpoint_key": self.checkpoint_key,
            "scan_from": self.scan_range.start,
            "scan_to": self.scan_range.end,
            "inserted": self.inserted,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
        }
