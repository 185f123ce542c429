"""
Exception types raised by the replay engine.
The poll scheduler logs and suppresses all of them;
callers driving passes directly receive them unchanged.
"""

from typing import Optional


class StakeSyncError(Exception):
    """Base class for engine errors."""


class ChainDataSourceError(StakeSyncError):
    """The node returned an error payload or could not be reached."""


class StoreError(StakeSyncError):
    """A checkpoint or event record store operation failed."""


class EventDecodeError(StakeSyncError):
    """
    A struct-style log could not be decoded with its event ABI.
    This points at an ABI or signature mismatch rather than a transient failure.
    """

    def __init__(
        self,
        message: str,
        event_name: str,
        tx_hash: Optional[str] = None,
        log_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.event_name = event_name
        self.tx_hash = tx_hash
        self.log_index = log_index

    def __str__(self) -> str:
        return (
            f"{self.args[0]} (event={self.event_name}, "
            f"tx_hash={self.tx_hash}, log_index={self.log_index})"
        )
