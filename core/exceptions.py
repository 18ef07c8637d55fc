"""
Error taxonomy for the perception -> cognition cycle.

ConfigError aborts startup. NetworkError and ParseError are raised by agent
tiers and absorbed by AgentClient. NativeBoundaryError is the only class the
orchestrator treats as a cycle failure.
"""


class BrainCycleError(Exception):
    """Base class for all cycle errors."""


class ConfigError(BrainCycleError):
    """Missing or invalid startup configuration."""


class NetworkError(BrainCycleError):
    """Transport or HTTP status failure while calling an agent tier."""


class ParseError(BrainCycleError):
    """Response text did not contain a locatable JSON object."""


class NativeBoundaryError(BrainCycleError):
    """The reservoir failed to initialize, apply, step or export."""


class CycleCancelled(BrainCycleError):
    """The owning task was torn down while a cycle was in progress."""
