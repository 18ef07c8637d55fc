"""
Data Model for the Perception -> Cognition Cycle
================================================

Agent responses arrive as loosely shaped JSON. Every type here decodes
from arbitrary input without raising: missing or malformed fields fall
back to their documented defaults and unknown items are dropped.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from config.constants import (
    DEFAULT_CLUSTER_LABEL,
    DEFAULT_INTENSITY,
    DEFAULT_RECEPTOR,
    DEFAULT_STRENGTH,
)


# =============================================================================
# LENIENT COERCION
# =============================================================================

def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, str)):
        try:
            result = float(value)
        except (ValueError, OverflowError):
            return default
        return result if math.isfinite(result) else default
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    as_float = _as_float(value, math.nan)
    if math.isnan(as_float):
        return default
    return int(as_float)


def _as_str(value: Any, default: str) -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _optional_list(value: Any) -> Optional[List[Any]]:
    return list(value) if isinstance(value, (list, tuple)) else None


# =============================================================================
# NEURAL INPUT EVENTS
# =============================================================================

class NeuralInputKind(Enum):
    TEXT_EMBEDDING = "text_embedding"
    SENSORY_STIM = "sensory_stim"


@dataclass
class TextEmbeddingEvent:
    """Token ids or a seed embedding, scaled by strength."""
    tokens: Optional[List[int]] = None
    seed_embedding: Optional[List[float]] = None
    strength: float = DEFAULT_STRENGTH

    kind = NeuralInputKind.TEXT_EMBEDDING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextEmbeddingEvent':
        tokens = _optional_list(data.get("tokens"))
        seeds = _optional_list(data.get("seed_embedding"))
        return cls(
            tokens=[_as_int(t, 0) for t in tokens] if tokens is not None else None,
            seed_embedding=[_as_float(v, 0.0) for v in seeds] if seeds is not None else None,
            strength=_as_float(data.get("strength"), DEFAULT_STRENGTH),
        )


@dataclass
class SensoryStimEvent:
    """A stimulus on a named receptor."""
    receptor: str = DEFAULT_RECEPTOR
    intensity: float = DEFAULT_INTENSITY

    kind = NeuralInputKind.SENSORY_STIM

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SensoryStimEvent':
        return cls(
            receptor=_as_str(data.get("receptor"), DEFAULT_RECEPTOR),
            intensity=_as_float(data.get("intensity"), DEFAULT_INTENSITY),
        )


NeuralInputEvent = Union[TextEmbeddingEvent, SensoryStimEvent]

_EVENT_TYPES = {
    NeuralInputKind.TEXT_EMBEDDING.value: TextEmbeddingEvent,
    NeuralInputKind.SENSORY_STIM.value: SensoryStimEvent,
}


def decode_neural_input(data: Any) -> Optional[NeuralInputEvent]:
    """Decode one event, or None when it is not a mapping of a known kind."""
    if not isinstance(data, dict):
        return None
    event_type = _EVENT_TYPES.get(data.get("kind"))
    if event_type is None:
        return None
    return event_type.from_dict(data)


# =============================================================================
# TRANSLATOR RECORDS
# =============================================================================

@dataclass
class NeurogenesisRequest:
    label: str = DEFAULT_CLUSTER_LABEL
    cluster_size: int = 0
    seed_embedding: Optional[List[float]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NeurogenesisRequest':
        seeds = _optional_list(data.get("seed_embedding"))
        return cls(
            label=_as_str(data.get("label"), DEFAULT_CLUSTER_LABEL),
            cluster_size=_as_int(data.get("cluster_size"), 0),
            seed_embedding=[_as_float(v, 0.0) for v in seeds] if seeds is not None else None,
        )


@dataclass
class MemoryFlag:
    summary: str = ""
    importance: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MemoryFlag':
        return cls(
            summary=_as_str(data.get("summary"), ""),
            importance=_as_float(data.get("importance"), 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"summary": self.summary, "importance": self.importance}


def _decode_records(value: Any, record_type) -> list:
    return [record_type.from_dict(item) for item in _as_list(value) if isinstance(item, dict)]


@dataclass
class TranslatorOutput:
    """
    Structured output of the translator step.

    Missing sections are empty lists, never an error.
    """
    neural_inputs: List[NeuralInputEvent] = field(default_factory=list)
    neurogenesis: List[NeurogenesisRequest] = field(default_factory=list)
    memory_flags: List[MemoryFlag] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> 'TranslatorOutput':
        if not isinstance(data, dict):
            return cls()
        events = [decode_neural_input(item) for item in _as_list(data.get("neural_inputs"))]
        return cls(
            neural_inputs=[event for event in events if event is not None],
            neurogenesis=_decode_records(data.get("neurogenesis"), NeurogenesisRequest),
            memory_flags=_decode_records(data.get("memory_flags"), MemoryFlag),
        )

    @property
    def text_embeddings(self) -> List[TextEmbeddingEvent]:
        return [e for e in self.neural_inputs if e.kind is NeuralInputKind.TEXT_EMBEDDING]

    @property
    def sensory_stims(self) -> List[SensoryStimEvent]:
        return [e for e in self.neural_inputs if e.kind is NeuralInputKind.SENSORY_STIM]


# =============================================================================
# COGNITIVE OUTPUT
# =============================================================================

@dataclass
class CognitiveOutput:
    """Structured output of the cognitive step; raw keeps the parsed mapping."""
    user_text: Optional[str] = None
    behavior_directives: Dict[str, Any] = field(default_factory=dict)
    archive: List[MemoryFlag] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> 'CognitiveOutput':
        if not isinstance(data, dict):
            return cls()
        user_text = data.get("user_text")
        directives = data.get("behavior_directives")
        return cls(
            user_text=None if user_text is None else _as_str(user_text, ""),
            behavior_directives=directives if isinstance(directives, dict) else {},
            archive=_decode_records(data.get("archive"), MemoryFlag),
            raw=data,
        )
