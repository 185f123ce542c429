"""
Hex and topic conversion utility functions
"""

from typing import Union

from eth_utils import add_0x_prefix, remove_0x_prefix
from web3 import Web3

# Topics are always 32-byte words.
TOPIC_SIZE_BYTES = 32
# Addresses occupy the low 20 bytes of a topic word.
ADDRESS_SIZE_BYTES = 20


def bytes_to_hex_str(byte_arr: bytes) -> str:
    """
    Convert a byte array to a hex string.

    :param byte_arr: The byte array to convert.
    :return: The resulting 0x-prefixed hex string.
    """
    # bytes() drops HexBytes formatting that differs across hexbytes releases.
    return "0x" + bytes(byte_arr).hex()


def bytes_to_hex_str_auto(byte_arr: Union[bytes, str]) -> str:
    """
    Convert a byte array to a lowercase hex string
    with intelligent conversion of bytes and string representations.
    Nodes and web3 versions return hashes as bytes, HexBytes, or strings.

    :param byte_arr: The byte array to convert.
    :return: The resulting 0x-prefixed hex string.
    """
    if isinstance(byte_arr, (bytes, bytearray)):
        return bytes_to_hex_str(byte_arr)
    return add_0x_prefix(str(byte_arr).lower())


def hex_str_to_bytes(hex_str: str) -> bytes:
    """
    Convert a hex string, with or without the 0x prefix, to a byte array.

    :param hex_str: The hex string to convert.
    :return: The resulting byte array.
    """
    h = remove_0x_prefix(hex_str)
    if len(h) % 2:
        h = "0" + h
    return bytes.fromhex(h)


def hex_str_to_int(hex_str: str) -> int:
    """
    Convert a hex string to an integer.

    :param hex_str: The hex string to convert.
    :return: The resulting integer.
    """
    return int(hex_str, 16)


def topic_to_address(topic: Union[bytes, str]) -> str:
    """
    Extract the address from a right-aligned 32-byte topic.

    :param topic: The topic word.
    :return: The checksummed address held in the low 20 bytes.
    """
    word = hex_str_to_bytes(bytes_to_hex_str_auto(topic))
    if len(word) != TOPIC_SIZE_BYTES:
        raise ValueError(f"Topic must be {TOPIC_SIZE_BYTES} bytes, got {len(word)}")
    return Web3.to_checksum_address(bytes_to_hex_str(word[-ADDRESS_SIZE_BYTES:]))


def topic_to_uint256(topic: Union[bytes, str]) -> int:
    """
    Interpret a 32-byte topic as an unsigned big-endian integer.

    :param topic: The topic word.
    :return: The integer value.
    """
    word = hex_str_to_bytes(bytes_to_hex_str_auto(topic))
    if len(word) != TOPIC_SIZE_BYTES:
        raise ValueError(f"Topic must be {TOPIC_SIZE_BYTES} bytes, got {len(word)}")
    return int.from_bytes(word, "big")


def event_signature_hash(signature: str) -> str:
    """
    Calculate topic0 for a canonical event signature such as
    "Transfer(address,address,uint256)".

    :param signature: The canonical event signature.
    :return: The 0x-prefixed keccak-256 hash.
    """
    return bytes_to_hex_str(Web3.keccak(text=signature))
