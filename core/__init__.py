# Brain Cycle - Core Components

"""
BRAIN CYCLE CORE
================

Perception -> cognition cycle around an opaque recurrent reservoir:

- SensoryEncoder: translator output -> 256-float input vector
- ReservoirBoundary / ReservoirHandle: serialized access to the engine
- CycleOrchestrator: translate -> encode -> apply -> step -> export -> interpret
- BrainSupervisor: owns the reservoir and its background stepping
"""

__version__ = "1.0.0"

from .encoder import SensoryEncoder, encode
from .orchestrator import CycleOrchestrator, CycleResult, CycleState
from .reservoir import ReservoirBoundary, ReservoirHandle, SimulatedReservoir, create_reservoir
from .supervisor import BrainSupervisor, PeriodicStepper
