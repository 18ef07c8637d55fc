"""
Brain Supervisor
================

Process-wide owner of the reservoir. Initializes it once, advances it on a
fixed interval from a background thread, and runs user-triggered cycles
through the orchestrator. Both paths share one ReservoirHandle, so a
background tick and a cycle's apply -> step -> export never interleave.
"""

import logging
import threading
from typing import Any, Dict, Optional

from config.constants import (
    DEFAULT_FANOUT,
    DEFAULT_NEURON_COUNT,
    DEFAULT_STEP_INTERVAL_SECONDS,
    STEPPER_JOIN_TIMEOUT_SECONDS,
)
from core.exceptions import NativeBoundaryError
from core.orchestrator import CycleOrchestrator, CycleResult
from core.reservoir import ReservoirBoundary, ReservoirHandle, create_reservoir

logger = logging.getLogger("brain-cycle.supervisor")


class PeriodicStepper:
    """Steps the reservoir every `interval` seconds until stopped."""

    def __init__(
        self,
        reservoir: ReservoirHandle,
        interval: float = DEFAULT_STEP_INTERVAL_SECONDS,
        join_timeout: float = STEPPER_JOIN_TIMEOUT_SECONDS,
    ):
        self.reservoir = reservoir
        self.interval = interval
        self.join_timeout = join_timeout
        self.ticks = 0
        self.errors = 0
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self):
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                # A thread that missed its join is still ours; let it keep going
                self._stop.clear()
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._loop,
                daemon=True,
                name="ReservoirStepper",
            )
            self._thread.start()
        logger.info("Background stepping started (every %.2fs)", self.interval)

    def stop(self):
        self._stop.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=self.join_timeout)
        if thread.is_alive():
            # The reference stays so start() cannot spawn a second stepper
            logger.warning("Stepper thread did not exit within %.1fs", self.join_timeout)

    def _loop(self):
        while True:
            with self._lock:
                if self._stop.is_set():
                    self._thread = None
                    return
            try:
                self.reservoir.step()
                self.ticks += 1
            except Exception as e:
                self.errors += 1
                logger.error("Background step failed: %s", e)
            self._stop.wait(self.interval)


class BrainSupervisor:
    """
    Owns the reservoir handle, the background stepper and the orchestrator.

    Example:
        supervisor = BrainSupervisor(agent_client, create_reservoir())
        supervisor.start()
        result = supervisor.run_cycle("I yank the book", {"action": "yank"})
        supervisor.stop()
    """

    def __init__(
        self,
        agent_client,
        boundary: ReservoirBoundary,
        neuron_count: int = DEFAULT_NEURON_COUNT,
        fanout: int = DEFAULT_FANOUT,
        step_interval: float = DEFAULT_STEP_INTERVAL_SECONDS,
    ):
        self.neuron_count = neuron_count
        self.fanout = fanout
        self.reservoir = ReservoirHandle(boundary)
        self.stepper = PeriodicStepper(self.reservoir, interval=step_interval)
        self._shutting_down = threading.Event()
        self.orchestrator = CycleOrchestrator(
            agent_client,
            self.reservoir,
            is_cancelled=self._shutting_down.is_set,
        )
        self.ready = False

    @classmethod
    def from_settings(cls, settings, agent_client) -> 'BrainSupervisor':
        return cls(
            agent_client,
            create_reservoir(settings.reservoir_library),
            neuron_count=settings.neuron_count,
            fanout=settings.fanout,
            step_interval=settings.step_interval,
        )

    def start(self, background: bool = True):
        """
        Initialize the reservoir and start background stepping.

        Raises:
            NativeBoundaryError: initialize() returned False; the cycle
                subsystem must not be used
        """
        self._shutting_down.clear()
        if not self.reservoir.initialize(self.neuron_count, self.fanout):
            raise NativeBoundaryError(
                f"reservoir initialize({self.neuron_count}, {self.fanout}) returned false"
            )
        self.ready = True
        if background:
            self.stepper.start()

    def stop(self):
        """Stop stepping and cancel any cycle between states. No rollback."""
        self._shutting_down.set()
        self.stepper.stop()
        self.ready = False

    def run_cycle(self, user_text: str, sensory_snapshot: Optional[Dict[str, Any]] = None) -> CycleResult:
        if not self.ready:
            raise NativeBoundaryError("cycle subsystem is not running")
        return self.orchestrator.run_cycle(user_text, sensory_snapshot)

    def status(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "reservoir_initialized": self.reservoir.initialized,
            "stepping": self.stepper.running,
            "background_ticks": self.stepper.ticks,
            "background_errors": self.stepper.errors,
            "cycle_state": self.orchestrator.state.value,
            "cycles_run": len(self.orchestrator.history),
        }
