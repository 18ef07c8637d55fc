"""
Cycle Orchestrator
==================

Runs one perception -> cognition cycle:

    IDLE -> TRANSLATING -> ENCODING -> APPLYING -> STEPPING -> EXPORTING
         -> INTERPRETING -> ARCHIVING -> IDLE

Any exception moves the cycle to FAILED and no further state runs. Reservoir
mutations made before the failure are not rolled back: a FAILED cycle may
have partially changed long-lived reservoir state.

Agent calls happen outside the reservoir lock; apply -> step -> export runs
under it so the background stepper cannot interleave.
"""

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

import numpy as np

from config.constants import (
    CYCLE_HISTORY_LIMIT,
    MAX_FALLBACK_TEXT_CHARS,
    ROLE_COGNITIVE,
    ROLE_TRANSLATOR,
    STEPS_PER_CYCLE,
)
from core.encoder import SensoryEncoder
from core.exceptions import CycleCancelled, NativeBoundaryError
from core.reservoir import ReservoirHandle
from core.types import CognitiveOutput, TranslatorOutput
from integrations.prompts import build_cognitive_prompt, build_translator_prompt

logger = logging.getLogger("brain-cycle.orchestrator")


class CycleState(Enum):
    IDLE = "idle"
    TRANSLATING = "translating"
    ENCODING = "encoding"
    APPLYING = "applying"
    STEPPING = "stepping"
    EXPORTING = "exporting"
    INTERPRETING = "interpreting"
    ARCHIVING = "archiving"
    FAILED = "failed"


@dataclass
class CycleResult:
    """Everything one cycle produced, including where it stopped."""
    state: CycleState = CycleState.IDLE
    user_text: Optional[str] = None
    translator_output: Optional[TranslatorOutput] = None
    input_vector: Optional[np.ndarray] = None
    brain_summary: Optional[str] = None
    cognitive_output: Optional[CognitiveOutput] = None
    error: Optional[str] = None
    states: List[CycleState] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.state == CycleState.IDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "user_text": self.user_text,
            "brain_summary": self.brain_summary,
            "cognitive": self.cognitive_output.raw if self.cognitive_output else None,
            "error": self.error,
            "states": [s.value for s in self.states],
        }


def fallback_user_text(raw_response: Any) -> str:
    """Raw response as text, capped with an ellipsis."""
    text = raw_response if isinstance(raw_response, str) else json.dumps(raw_response, default=str)
    text = text.strip()
    if len(text) > MAX_FALLBACK_TEXT_CHARS:
        return text[:MAX_FALLBACK_TEXT_CHARS] + "..."
    return text


class CycleOrchestrator:
    """
    Sequences translator -> encoder -> reservoir -> cognitive for one input.

    The reservoir handle and agent client are injected; nothing here reaches
    for process-wide singletons.
    """

    def __init__(
        self,
        agent_client,
        reservoir: ReservoirHandle,
        encoder: Optional[SensoryEncoder] = None,
        steps_per_cycle: int = STEPS_PER_CYCLE,
        history_limit: int = CYCLE_HISTORY_LIMIT,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ):
        self.agent_client = agent_client
        self.reservoir = reservoir
        self.encoder = encoder or SensoryEncoder()
        self.steps_per_cycle = steps_per_cycle
        self.history: Deque[CycleResult] = deque(maxlen=history_limit)
        self._is_cancelled = is_cancelled or (lambda: False)
        self._state = CycleState.IDLE
        self._state_lock = threading.Lock()

    @property
    def state(self) -> CycleState:
        return self._state

    def _enter(self, result: CycleResult, state: CycleState):
        if state != CycleState.FAILED and self._is_cancelled():
            raise CycleCancelled(f"cancelled before {state.value}")
        logger.debug("cycle %s -> %s", self._state.value, state.value)
        self._state = state
        result.state = state
        result.states.append(state)

    def run_cycle(
        self,
        user_text: str,
        sensory_snapshot: Optional[Dict[str, Any]] = None,
    ) -> CycleResult:
        """
        Run one full cycle. Never raises.

        Args:
            user_text: The user's utterance
            sensory_snapshot: Environmental signals, embedded in the prompt

        Returns:
            CycleResult ending in IDLE (success) or FAILED
        """
        result = CycleResult()
        with self._state_lock:
            try:
                self._run(result, user_text, sensory_snapshot or {})
            except NativeBoundaryError as e:
                self._fail(result, f"reservoir failure: {e}", exc=e)
            except CycleCancelled as e:
                self._fail(result, str(e))
            except Exception as e:
                self._fail(result, f"{type(e).__name__}: {e}", exc=e)
            finally:
                result.finished_at = time.time()
                self.history.append(result)
        return result

    def _fail(self, result: CycleResult, message: str, exc: Optional[BaseException] = None):
        failed_in = self._state.value
        self._enter(result, CycleState.FAILED)
        result.error = message
        logger.error(
            "Cycle failed during %s: %s (reservoir state is not rolled back)",
            failed_in, message, exc_info=exc is not None,
        )

    def _run(self, result: CycleResult, user_text: str, sensory_snapshot: Dict[str, Any]):
        self._enter(result, CycleState.TRANSLATING)
        raw_translation = self.agent_client.invoke(
            ROLE_TRANSLATOR, build_translator_prompt(user_text, sensory_snapshot)
        )

        self._enter(result, CycleState.ENCODING)
        translation = TranslatorOutput.from_dict(raw_translation)
        result.translator_output = translation
        result.input_vector = self.encoder.encode(translation)

        # Reservoir section: hold the lock from apply through export
        with self.reservoir.exclusive():
            self._enter(result, CycleState.APPLYING)
            self.reservoir.apply_inputs(result.input_vector)

            self._enter(result, CycleState.STEPPING)
            for _ in range(self.steps_per_cycle):
                self.reservoir.step()

            self._enter(result, CycleState.EXPORTING)
            result.brain_summary = self.reservoir.export_summary()

        self._enter(result, CycleState.INTERPRETING)
        raw_cognition = self.agent_client.invoke(
            ROLE_COGNITIVE, build_cognitive_prompt(result.brain_summary, user_text)
        )
        cognition = CognitiveOutput.from_dict(raw_cognition)
        result.cognitive_output = cognition
        if cognition.user_text is not None:
            result.user_text = cognition.user_text
        else:
            result.user_text = fallback_user_text(raw_cognition)

        self._enter(result, CycleState.ARCHIVING)
        self._archive(result)

        self._enter(result, CycleState.IDLE)
        logger.info(
            "Cycle complete: %d inputs, %d memory flags, %d archived, reply=%d chars",
            len(translation.neural_inputs),
            len(translation.memory_flags),
            len(cognition.archive),
            len(result.user_text or ""),
        )

    def _archive(self, result: CycleResult):
        for flag in result.translator_output.memory_flags:
            logger.info("memory flag (%.2f): %s", flag.importance, flag.summary)
        for record in result.cognitive_output.archive:
            logger.info("archive (%.2f): %s", record.importance, record.summary)

    def recent_cycles(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in list(self.history)[-limit:]]
