"""
Computes the next block range that is safe to scan.
"""

from typing import Optional

from stakesync.core.types import BlockRange


def safe_head(head: int, confirmations: int) -> Optional[int]:
    """
    Highest block considered final for a given confirmation depth.
    A block needs confirmations - 1 blocks on top of it before it is indexed.

    :param head: The current chain head block number.
    :param confirmations: The confirmation depth. Zero is treated as one.
    :return: The safe upper bound, or None if no block is final yet.
    """
    if head < 0:
        raise ValueError(f"head must be non-negative, got {head}")
    confirmations = max(confirmations, 1)
    if confirmations == 1:
        return head
    if head < confirmations - 1:
        return None
    return head - (confirmations - 1)


def compute_scan_range(
    last_checkpoint: Optional[int],
    start_block: int,
    confirmations: int,
    head: int,
) -> Optional[BlockRange]:
    """
    Compute the inclusive range to scan next.

    A fresh key starts exactly at start_block, so a start of 0 scans block 0.
    Once a checkpoint exists, scanning resumes right after it.

    :param last_checkpoint: Last fully processed block, or None for a fresh key.
    :param start_block: Configured first block for a fresh key.
    :param confirmations: Confirmation depth.
    :param head: The current chain head block number.
    :return: The range to scan, or None if there is nothing to do.
    """
    if last_checkpoint is not None:
        scan_from = last_checkpoint + 1
    else:
        scan_from = max(start_block, 0)

    scan_to = safe_head(head, confirmations)
    if scan_to is None or scan_from > scan_to:
        return None
    return BlockRange(scan_from, scan_to)
