"""
The poll scheduler keeps every watched (contract, event family) pair
caught up with the chain.

Each pair runs as an independent task on its own thread:
one catch-up pass at start, then one pass per interval.
A failed pass is logged and retried on the next tick.
All tasks observe a shared stop event between ticks.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from stakesync.core.decoders import EventFamily, get_event_family
from stakesync.core.replay_orchestrator import ReplayOrchestrator
from stakesync.core.types import ReplayResult
from stakesync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


class TaskState(Enum):
    """Lifecycle of a poll task."""

    CATCHING_UP = "catching_up"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass(frozen=True)
class WatchTarget:
    """
    One (contract, event family) pair to keep in sync.

    :param contract_address: The contract to index.
    :param family: The event family, or its registered name.
    :param start_block: First block for a pair with no checkpoint yet.
    :param confirmations: Confirmation depth.
    :param interval: Seconds between polling passes.
    """

    contract_address: str
    family: Union[EventFamily, str]
    start_block: int = 0
    confirmations: int = 1
    interval: float = 1.0

    def __post_init__(self):
        if isinstance(self.family, str):
            object.__setattr__(self, "family", get_event_family(self.family))
        if self.start_block < 0:
            raise ValueError(f"start_block must be non-negative, got {self.start_block}")
        if self.confirmations < 0:
            raise ValueError(
                f"confirmations must be non-negative, got {self.confirmations}"
            )
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")

    @property
    def name(self) -> str:
        return f"{self.family.name}:{self.contract_address}"


class PollTask:
    """
    Catch-up then periodic replay for one watch target.
    """

    def __init__(
        self,
        orchestrator: ReplayOrchestrator,
        target: WatchTarget,
        stop_event: Optional[threading.Event] = None,
    ):
        self.orchestrator = orchestrator
        self.target = target
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.state = TaskState.CATCHING_UP
        self.passes = 0
        self.failures = 0

    def run_once(self) -> Optional[ReplayResult]:
        """
        Execute a single pass.
        Errors are logged and suppressed so the next tick retries.

        :return: The pass summary, or None for a no-op or failed pass.
        """
        self.passes += 1
        try:
            return self.orchestrator.replay(
                self.target.contract_address,
                self.target.family,
                start_block=self.target.start_block,
                confirmations=self.target.confirmations,
            )
        except Exception as e:  # pylint: disable=broad-except
            self.failures += 1
            _LOG.error(
                "Replay pass failed for %s (%s): %s",
                self.target.name,
                self.state.value,
                e,
            )
            return None

    def run(self):
        """
        Run until the stop event is set.
        The first pass runs immediately; later passes wait for the interval.
        """
        _LOG.info(
            "Starting %s from block %s, confirmations=%s, interval=%ss",
            self.target.name,
            self.target.start_block,
            self.target.confirmations,
            self.target.interval,
        )
        self.state = TaskState.CATCHING_UP
        # A failed catch-up still hands over to polling.
        self.run_once()
        self.state = TaskState.POLLING
        while not self.stop_event.wait(self.target.interval):
            self.run_once()
        self.state = TaskState.STOPPED
        _LOG.info("Stopped %s after %s passes", self.target.name, self.passes)


class PollScheduler:
    """
    Runs a set of poll tasks, one daemon thread each.
    Tasks share nothing but the stop event.
    """

    def __init__(
        self, tasks: List[PollTask], stop_event: Optional[threading.Event] = None
    ):
        """
        :param tasks: The tasks to run. Their stop events are replaced
            by the scheduler's.
        :param stop_event: The shutdown signal. A new one is created if omitted.
        """
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.tasks = tasks
        for task in self.tasks:
            task.stop_event = self.stop_event
        self._threads: List[threading.Thread] = []

    @staticmethod
    def create_for_targets(
        orchestrator: ReplayOrchestrator, targets: List[WatchTarget]
    ) -> "PollScheduler":
        """
        Create a scheduler with one task per target over a shared orchestrator.

        :param orchestrator: The orchestrator.
        :param targets: The watch targets.
        :return: The scheduler.
        """
        return PollScheduler([PollTask(orchestrator, t) for t in targets])

    def start(self):
        if self._threads:
            raise RuntimeError("PollScheduler already started")
        self.stop_event.clear()
        for task in self.tasks:
            thread = threading.Thread(
                target=task.run, name=f"poll-{task.target.name}", daemon=True
            )
            self._threads.append(thread)
            thread.start()
        _LOG.info("Started %s poll tasks", len(self._threads))

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Signal all tasks to stop and wait for their threads.
        A pass in flight completes before its task exits.

        :param timeout: Maximum seconds to wait for each thread.
        :return: True if every thread exited.
        """
        self.stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        stopped = not self.is_running()
        if stopped:
            self._threads = []
        else:
            _LOG.warning("Some poll tasks did not stop within %ss", timeout)
        return stopped

    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def run_forever(self):
        """
        Start the tasks and block until interrupted.
        """
        self.start()
        try:
            while not self.stop_event.wait(1):
                pass
        except KeyboardInterrupt:
            _LOG.info("Interrupted, stopping poll tasks")
        finally:
            self.stop()
