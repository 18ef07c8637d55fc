"""
Reservoir Boundary
==================

The reservoir is an opaque stateful engine reached through four operations:
initialize, apply_inputs, step and export_summary. Nothing else in the
system reads or writes its state.

Implementations:
- NativeReservoir: ctypes binding to the compiled engine (shared library)
- SimulatedReservoir: numpy leaky integrate-and-fire stand-in for
  development and tests when the native library is not available

All access from the orchestrator and the background stepper goes through a
ReservoirHandle, which serializes call sequences with a re-entrant lock.
"""

import ctypes
import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

import numpy as np

from config.constants import RESERVOIR_SEED, TOKEN_HASH_MULTIPLIER, VECTOR_SIZE
from core.exceptions import NativeBoundaryError

logger = logging.getLogger("brain-cycle.reservoir")


class ReservoirBoundary(ABC):
    """Contract consumed by the cycle core."""

    @abstractmethod
    def initialize(self, neuron_count: int, fanout: int) -> bool:
        """Build the engine. Returns False on failure."""

    @abstractmethod
    def apply_inputs(self, vector: np.ndarray) -> None:
        """Inject an input vector into the hidden state."""

    @abstractmethod
    def step(self) -> None:
        """Advance the hidden state by one tick."""

    @abstractmethod
    def export_summary(self) -> str:
        """Snapshot description, opaque to the core."""


class ReservoirHandle:
    """
    Shared, serialized access to one ReservoirBoundary.

    Thread Safety:
        Every operation takes the lock. Callers that need several operations
        to run back to back (apply -> step x N -> export) wrap them in
        exclusive(), which holds the lock for the whole sequence.
    """

    def __init__(self, boundary: ReservoirBoundary):
        self.boundary = boundary
        self._lock = threading.RLock()
        self.initialized = False

    @contextmanager
    def exclusive(self) -> Iterator['ReservoirHandle']:
        with self._lock:
            yield self

    def initialize(self, neuron_count: int, fanout: int) -> bool:
        with self._lock:
            ok = bool(self.boundary.initialize(neuron_count, fanout))
            self.initialized = ok
            return ok

    def apply_inputs(self, vector: np.ndarray) -> None:
        with self._lock:
            self.boundary.apply_inputs(vector)

    def step(self) -> None:
        with self._lock:
            self.boundary.step()

    def export_summary(self) -> str:
        with self._lock:
            return self.boundary.export_summary()


# =============================================================================
# NATIVE ENGINE
# =============================================================================

class NativeReservoir(ReservoirBoundary):
    """
    ctypes binding to the compiled reservoir.

    Expected C symbols:
        bool        reservoir_init(int32_t neuron_count, int32_t fanout);
        void        reservoir_apply_inputs(const float *vector, int32_t length);
        void        reservoir_step(void);
        const char *reservoir_export_summary(void);
    """

    def __init__(self, library_path: str):
        self.library_path = library_path
        try:
            lib = ctypes.CDLL(library_path)
            lib.reservoir_init.argtypes = [ctypes.c_int32, ctypes.c_int32]
            lib.reservoir_init.restype = ctypes.c_bool
            lib.reservoir_apply_inputs.argtypes = [ctypes.POINTER(ctypes.c_float), ctypes.c_int32]
            lib.reservoir_apply_inputs.restype = None
            lib.reservoir_step.argtypes = []
            lib.reservoir_step.restype = None
            lib.reservoir_export_summary.argtypes = []
            lib.reservoir_export_summary.restype = ctypes.c_char_p
        except (OSError, AttributeError) as e:
            raise NativeBoundaryError(f"cannot load reservoir library {library_path}: {e}") from e
        self._lib = lib

    def initialize(self, neuron_count: int, fanout: int) -> bool:
        return bool(self._lib.reservoir_init(neuron_count, fanout))

    def apply_inputs(self, vector: np.ndarray) -> None:
        data = np.ascontiguousarray(vector, dtype=np.float32)
        pointer = data.ctypes.data_as(ctypes.POINTER(ctypes.c_float))
        self._lib.reservoir_apply_inputs(pointer, len(data))

    def step(self) -> None:
        self._lib.reservoir_step()

    def export_summary(self) -> str:
        raw = self._lib.reservoir_export_summary()
        if raw is None:
            raise NativeBoundaryError("reservoir_export_summary returned NULL")
        return raw.decode("utf-8", errors="replace")


# =============================================================================
# SIMULATED ENGINE
# =============================================================================

class SimulatedReservoir(ReservoirBoundary):
    """
    Leaky integrate-and-fire network with random sparse fan-out.

    Each neuron projects to `fanout` random targets with N(0, 0.08) weights.
    A step leaks every potential, fires the neurons at or above threshold,
    resets them and delivers their weights to the targets.
    """

    LEAK = 0.92
    THRESHOLD = 1.0
    WEIGHT_STD = 0.08

    def __init__(self, seed: int = RESERVOIR_SEED):
        self.seed = seed
        self.neuron_count = 0
        self.fanout = 0
        self.potentials: Optional[np.ndarray] = None
        self.spikes: Optional[np.ndarray] = None
        self.targets: Optional[np.ndarray] = None
        self.weights: Optional[np.ndarray] = None
        self.steps_taken = 0

    def initialize(self, neuron_count: int, fanout: int) -> bool:
        if neuron_count <= 0 or fanout < 0:
            logger.error("Invalid reservoir shape: neurons=%d fanout=%d", neuron_count, fanout)
            return False

        rng = np.random.default_rng(self.seed)
        self.neuron_count = neuron_count
        self.fanout = fanout
        self.potentials = np.zeros(neuron_count, dtype=np.float32)
        self.spikes = np.zeros(neuron_count, dtype=bool)
        self.targets = rng.integers(0, neuron_count, size=(neuron_count, fanout))
        self.weights = rng.normal(0.0, self.WEIGHT_STD, size=(neuron_count, fanout)).astype(np.float32)
        self.steps_taken = 0
        logger.info("Simulated reservoir ready: neurons=%d fanout=%d", neuron_count, fanout)
        return True

    def _require_ready(self):
        if self.potentials is None:
            raise NativeBoundaryError("reservoir used before initialize()")

    def apply_inputs(self, vector: np.ndarray) -> None:
        self._require_ready()
        values = np.asarray(vector, dtype=np.float32).ravel()
        if values.size == 0:
            return
        positions = np.arange(values.size, dtype=np.uint64)
        idx = (positions * np.uint64(TOKEN_HASH_MULTIPLIER)) % np.uint64(self.neuron_count)
        np.add.at(self.potentials, idx.astype(np.int64), values)

    def step(self) -> None:
        self._require_ready()
        self.potentials *= np.float32(self.LEAK)
        fired = self.potentials >= self.THRESHOLD
        self.spikes = fired
        if fired.any():
            self.potentials[fired] = 0.0
            np.add.at(self.potentials, self.targets[fired].ravel(), self.weights[fired].ravel())
        self.steps_taken += 1

    def export_summary(self) -> str:
        self._require_ready()
        sample = max(1, self.neuron_count // 8)
        spike_sum = int(self.spikes.sum())
        valence = float(self.spikes[:sample].sum()) / float(sample + 1)
        arousal = float(spike_sum) / float(self.neuron_count + 1)
        return json.dumps({
            "valence": round(valence, 3),
            "arousal": round(arousal, 3),
            "top_anchors": [],
        }, separators=(",", ":"))


def create_reservoir(library_path: Optional[str] = None) -> ReservoirBoundary:
    """Native engine when a library path is configured, simulated otherwise."""
    if library_path:
        logger.info("Loading native reservoir from %s", library_path)
        return NativeReservoir(library_path)
    logger.info("RESERVOIR_LIBRARY not set, using simulated reservoir (input size %d)", VECTOR_SIZE)
    return SimulatedReservoir()
