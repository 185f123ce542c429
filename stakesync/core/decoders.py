"""
Event decoders and event families.

Each decoder turns one raw log of a known event signature into the argument
payload of an EventRecord. Decoders are plain tagged values: the
DecoderStyle tag selects a pure decode function, so families can mix
styles freely.

Two log shapes occur:
- INDEXED_NUMERIC: topic1 holds an address and topic2 a uint256 amount.
  Logs with fewer than 3 topics are skipped, never mis-decoded.
- STRUCT: fields are decoded with the event ABI.
  A log that does not fit its ABI is MALFORMED and fails the pass.
"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property, lru_cache
from typing import Any, Callable, Dict, List, Tuple

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from stakesync.core.types import DecodeResult, RawLog
from stakesync.utils.hex_utils import (
    bytes_to_hex_str,
    event_signature_hash,
    hex_str_to_bytes,
    topic_to_address,
    topic_to_uint256,
)

_ABI_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "abi")

# Family names double as checkpoint key prefixes.
STAKING_FAMILY = "staking"
ERC20_FAMILY = "erc20"


class DecoderStyle(Enum):
    """Raw log shape handled by a decoder."""

    INDEXED_NUMERIC = "indexed_numeric"
    STRUCT = "struct"


@lru_cache(maxsize=None)
def _load_abi(json_file_name: str) -> Tuple[Dict[str, Any], ...]:
    with open(os.path.join(_ABI_DIR, json_file_name), encoding="utf-8") as f:
        return tuple(json.load(f)["abi"])


def load_event_abi(json_file_name: str, event_name: str) -> Dict[str, Any]:
    """
    Load a single event ABI entry from a packaged ABI JSON file.

    :param json_file_name: The file name under stakesync/abi.
    :param event_name: The Solidity event name, e.g. "Transfer".
    :return: The event ABI entry.
    """
    for entry in _load_abi(json_file_name):
        if entry.get("type") == "event" and entry.get("name") == event_name:
            return entry
    raise ValueError(f"Event {event_name} not found in {json_file_name}")


def event_signature_text(abi_event: Dict[str, Any]) -> str:
    """
    Build the canonical signature, e.g. "Transfer(address,address,uint256)".

    :param abi_event: The event ABI entry.
    :return: The canonical event signature.
    """
    types = ",".join(i["type"] for i in abi_event["inputs"])
    return f"{abi_event['name']}({types})"


@dataclass(frozen=True)
class EventDecoder:
    """
    Decoder for one event type.

    :param event_name: Canonical stored event name, e.g. "staked".
    :param style: The raw log shape.
    :param abi_event: The event ABI entry.
    :param field_names: ABI input name to payload key renames.
        Inputs without an entry keep their ABI name.
    """

    event_name: str
    style: DecoderStyle
    abi_event: Dict[str, Any] = field(compare=False, hash=False, repr=False)
    field_names: Tuple[Tuple[str, str], ...] = ()

    @cached_property
    def signature(self) -> str:
        """The event topic0 hash."""
        return event_signature_hash(event_signature_text(self.abi_event))

    def payload_key(self, abi_name: str) -> str:
        return dict(self.field_names).get(abi_name, abi_name)

    def decode(self, raw_log: RawLog) -> DecodeResult:
        return _DECODERS_BY_STYLE[self.style](self, raw_log)


def _signature_matches(decoder: EventDecoder, raw_log: RawLog) -> bool:
    return raw_log.topic0 is not None and raw_log.topic0.lower() == decoder.signature


def decode_indexed_numeric(decoder: EventDecoder, raw_log: RawLog) -> DecodeResult:
    """
    Decode an (address indexed, uint256 indexed) event from its topics.

    :param decoder: The decoder.
    :param raw_log: The raw log.
    :return: DECODED with {user, amount, signature}, or SKIPPED.
    """
    if not _signature_matches(decoder, raw_log):
        return DecodeResult.skipped(f"topic0 {raw_log.topic0} is not {decoder.signature}")
    if len(raw_log.topics) < 3:
        return DecodeResult.skipped(
            f"expected at least 3 topics, got {len(raw_log.topics)}"
        )
    try:
        user = topic_to_address(raw_log.topics[1])
        amount = topic_to_uint256(raw_log.topics[2])
    except ValueError as e:
        return DecodeResult.skipped(str(e))
    return DecodeResult.decoded(
        {
            decoder.payload_key("user"): user,
            decoder.payload_key("amount"): str(amount),
            "signature": raw_log.topic0,
        }
    )


def _format_value(abi_type: str, value: Any) -> str:
    if abi_type == "address":
        return Web3.to_checksum_address(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        # On-chain amounts routinely exceed 64 bits.
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes_to_hex_str(value)
    return str(value)


def decode_struct(decoder: EventDecoder, raw_log: RawLog) -> DecodeResult:
    """
    Decode an event with its ABI: indexed inputs from topics[1:],
    the remaining inputs from data.

    :param decoder: The decoder.
    :param raw_log: The raw log.
    :return: DECODED with one entry per ABI input plus signature,
        SKIPPED for a foreign topic0, or MALFORMED.
    """
    if not _signature_matches(decoder, raw_log):
        return DecodeResult.skipped(f"topic0 {raw_log.topic0} is not {decoder.signature}")

    inputs = decoder.abi_event["inputs"]
    indexed = [i for i in inputs if i.get("indexed")]
    plain = [i for i in inputs if not i.get("indexed")]
    if len(raw_log.topics) - 1 != len(indexed):
        return DecodeResult.malformed(
            f"expected {len(indexed) + 1} topics, got {len(raw_log.topics)}"
        )

    values: Dict[str, Any] = {}
    try:
        for abi_input, topic in zip(indexed, raw_log.topics[1:]):
            (values[abi_input["name"]],) = abi_decode(
                [abi_input["type"]], hex_str_to_bytes(topic)
            )
        if plain:
            decoded = abi_decode([i["type"] for i in plain], hex_str_to_bytes(raw_log.data))
            values.update({i["name"]: v for i, v in zip(plain, decoded)})
    except (DecodingError, ValueError, TypeError) as e:
        return DecodeResult.malformed(f"{type(e).__name__}: {e}")

    args = {
        decoder.payload_key(i["name"]): _format_value(i["type"], values[i["name"]])
        for i in inputs
    }
    args["signature"] = raw_log.topic0
    return DecodeResult.decoded(args)


_DECODERS_BY_STYLE: Dict[DecoderStyle, Callable[[EventDecoder, RawLog], DecodeResult]] = {
    DecoderStyle.INDEXED_NUMERIC: decode_indexed_numeric,
    DecoderStyle.STRUCT: decode_struct,
}


@dataclass(frozen=True)
class EventFamily:
    """
    Event types that share one checkpoint per contract.
    """

    name: str
    decoders: Tuple[EventDecoder, ...]

    def decoder_for(self, event_name: str) -> EventDecoder:
        for decoder in self.decoders:
            if decoder.event_name == event_name:
                return decoder
        raise ValueError(f"Event {event_name} is not part of family {self.name}")


def _staking_decoder(event_name: str, abi_name: str, style: DecoderStyle, **kwargs) -> EventDecoder:
    return EventDecoder(
        event_name=event_name,
        style=style,
        abi_event=load_event_abi("Staking.json", abi_name),
        **kwargs,
    )


def _erc20_decoder(event_name: str, abi_name: str) -> EventDecoder:
    return EventDecoder(
        event_name=event_name,
        style=DecoderStyle.STRUCT,
        abi_event=load_event_abi("ERC20.json", abi_name),
    )


STAKED = _staking_decoder("staked", "Staked", DecoderStyle.INDEXED_NUMERIC)
WITHDRAWN = _staking_decoder("withdrawn", "Withdrawn", DecoderStyle.INDEXED_NUMERIC)
REWARDS_CLAIMED = _staking_decoder(
    "rewards_claimed", "RewardsClaimed", DecoderStyle.INDEXED_NUMERIC
)
REWARD_RATE_UPDATED = _staking_decoder(
    "reward_rate_updated",
    "RewardRateUpdated",
    DecoderStyle.STRUCT,
    field_names=(("newRewardRate", "new_reward_rate"),),
)
ERC20_TRANSFER = _erc20_decoder("erc20_transfer", "Transfer")
ERC20_APPROVAL = _erc20_decoder("erc20_approval", "Approval")

STAKING_EVENTS = EventFamily(
    STAKING_FAMILY, (STAKED, WITHDRAWN, REWARDS_CLAIMED, REWARD_RATE_UPDATED)
)
ERC20_EVENTS = EventFamily(ERC20_FAMILY, (ERC20_TRANSFER, ERC20_APPROVAL))

_FAMILIES: Dict[str, EventFamily] = {f.name: f for f in (STAKING_EVENTS, ERC20_EVENTS)}


def get_event_family(name: str) -> EventFamily:
    """
    Look up a registered event family.

    :param name: The family name, e.g. "staking".
    :return: The event family.
    """
    try:
        return _FAMILIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown event family {name!r}, expected one of {sorted(_FAMILIES)}"
        ) from None


def list_event_families() -> List[str]:
    return sorted(_FAMILIES)
