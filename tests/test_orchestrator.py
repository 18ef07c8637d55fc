"""
Tests for core/orchestrator.py - Cycle State Machine
====================================================

Verifies:
1. Successful cycles visit every state in order and end IDLE
2. Reservoir call order: apply, step x N, export
3. Failures end in FAILED with no later state running
4. Fallback user text and cancellation
"""

import json
import os
import sys
import threading

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeAgentClient, RecordingReservoir
from core.orchestrator import CycleOrchestrator, CycleState, fallback_user_text
from core.reservoir import ReservoirHandle

HAPPY_PATH = [
    CycleState.TRANSLATING,
    CycleState.ENCODING,
    CycleState.APPLYING,
    CycleState.STEPPING,
    CycleState.EXPORTING,
    CycleState.INTERPRETING,
    CycleState.ARCHIVING,
    CycleState.IDLE,
]


def make_orchestrator(agent, boundary, **kwargs):
    return CycleOrchestrator(agent, ReservoirHandle(boundary), **kwargs)


class TestSuccessfulCycle:

    def test_states_in_order(self, fake_agent, recording_reservoir):
        orchestrator = make_orchestrator(fake_agent, recording_reservoir)
        result = orchestrator.run_cycle("I yank the book", {"action": "yank", "force": 0.9})

        assert result.ok
        assert result.states == HAPPY_PATH
        assert orchestrator.state == CycleState.IDLE
        assert result.user_text == "Hey, give that back!"
        assert result.error is None

    def test_reservoir_call_order(self, fake_agent, recording_reservoir):
        make_orchestrator(fake_agent, recording_reservoir).run_cycle("hi")
        assert recording_reservoir.calls == ["apply_inputs"] + ["step"] * 4 + ["export_summary"]

    def test_steps_per_cycle_configurable(self, fake_agent, recording_reservoir):
        make_orchestrator(fake_agent, recording_reservoir, steps_per_cycle=2).run_cycle("hi")
        assert recording_reservoir.calls.count("step") == 2

    def test_encoded_vector_reaches_reservoir(self, fake_agent, recording_reservoir):
        result = make_orchestrator(fake_agent, recording_reservoir).run_cycle("hi")
        applied = recording_reservoir.applied[0]
        assert applied.shape == (256,)
        # tokens [5] from the translator land on index 21
        assert applied[21] == 1.0
        assert np.array_equal(applied, result.input_vector)

    def test_prompts_carry_cycle_data(self, fake_agent, recording_reservoir):
        recording_reservoir.summary = '{"valence":0.5,"arousal":0.9,"top_anchors":[]}'
        make_orchestrator(fake_agent, recording_reservoir).run_cycle("I yank the book", {"action": "yank"})

        (role1, translator_prompt), (role2, cognitive_prompt) = fake_agent.prompts
        assert (role1, role2) == ("translator", "cognitive")
        assert "I yank the book" in translator_prompt
        assert '"action": "yank"' in translator_prompt
        assert '{"valence":0.5,"arousal":0.9,"top_anchors":[]}' in cognitive_prompt
        assert '"I yank the book"' in cognitive_prompt

    def test_brain_summary_is_passed_through(self, fake_agent, recording_reservoir):
        recording_reservoir.summary = "opaque summary text"
        result = make_orchestrator(fake_agent, recording_reservoir).run_cycle("hi")
        assert result.brain_summary == "opaque summary text"

    def test_default_translation_still_completes(self, recording_reservoir):
        """All-tiers-failed defaults are data, not errors."""
        agent = FakeAgentClient()
        result = make_orchestrator(agent, recording_reservoir).run_cycle("hi")
        assert result.ok
        assert not result.input_vector.any()
        assert result.user_text == "(error) couldn't generate response"

    def test_to_dict(self, fake_agent, recording_reservoir):
        data = make_orchestrator(fake_agent, recording_reservoir).run_cycle("hi").to_dict()
        assert data["state"] == "idle"
        assert data["states"][0] == "translating"
        assert data["cognitive"]["behavior_directives"] == {"verbal_tone": "annoyed"}
        json.dumps(data)


class InterleavingReservoir(RecordingReservoir):
    """Fires a step from another thread while the cycle is applying inputs."""

    def __init__(self):
        super().__init__()
        self.handle = None
        self.worker = None

    def apply_inputs(self, vector):
        super().apply_inputs(vector)
        self.worker = threading.Thread(target=self.handle.step, name="ForeignStepper")
        self.worker.start()
        # Give the foreign step time to land if nothing holds it back
        self.worker.join(timeout=0.2)

    def step(self):
        if threading.current_thread() is self.worker:
            self.calls.append("foreign_step")
        else:
            super().step()


class TestReservoirExclusivity:

    def test_foreign_step_waits_for_export(self, fake_agent):
        """A step from another thread cannot land between apply and export."""
        reservoir = InterleavingReservoir()
        handle = ReservoirHandle(reservoir)
        reservoir.handle = handle
        result = CycleOrchestrator(fake_agent, handle).run_cycle("hi")

        reservoir.worker.join(timeout=2.0)
        assert result.ok
        assert not reservoir.worker.is_alive()
        assert reservoir.calls == ["apply_inputs"] + ["step"] * 4 + ["export_summary", "foreign_step"]


class TestFallbackUserText:

    def test_missing_user_text_uses_raw_response(self, recording_reservoir):
        raw = {"behavior_directives": {"verbal_tone": "calm"}, "archive": []}
        agent = FakeAgentClient(responses={"cognitive": raw})
        result = make_orchestrator(agent, recording_reservoir).run_cycle("hi")
        assert result.ok
        assert result.user_text == json.dumps(raw)

    def test_long_raw_response_is_truncated(self, recording_reservoir):
        raw = {"notes": "x" * 1000}
        agent = FakeAgentClient(responses={"cognitive": raw})
        result = make_orchestrator(agent, recording_reservoir).run_cycle("hi")
        assert len(result.user_text) == 403
        assert result.user_text.endswith("...")
        assert result.user_text[:400] == json.dumps(raw)[:400]

    def test_helper_strips_and_keeps_short_text(self):
        assert fallback_user_text("  short  ") == "short"
        assert fallback_user_text("y" * 400) == "y" * 400
        assert fallback_user_text("y" * 401) == "y" * 400 + "..."


class TestFailures:

    def test_step_failure_stops_cycle(self, fake_agent):
        reservoir = RecordingReservoir(fail_on="step")
        orchestrator = make_orchestrator(fake_agent, reservoir)
        result = orchestrator.run_cycle("hi")

        assert result.state == CycleState.FAILED
        assert orchestrator.state == CycleState.FAILED
        assert result.states[-2:] == [CycleState.STEPPING, CycleState.FAILED]
        assert "export_summary" not in reservoir.calls
        assert "step exploded" in result.error
        # cognitive never invoked
        assert [role for role, _ in fake_agent.prompts] == ["translator"]

    def test_apply_failure_keeps_no_rollback(self, fake_agent):
        reservoir = RecordingReservoir(fail_on="apply_inputs")
        result = make_orchestrator(fake_agent, reservoir).run_cycle("hi")
        assert result.states[-2:] == [CycleState.APPLYING, CycleState.FAILED]
        assert reservoir.calls == ["apply_inputs"]

    def test_export_failure(self, fake_agent):
        reservoir = RecordingReservoir(fail_on="export_summary")
        result = make_orchestrator(fake_agent, reservoir).run_cycle("hi")
        assert result.state == CycleState.FAILED
        assert reservoir.calls.count("step") == 4
        assert result.brain_summary is None

    def test_unexpected_error_never_escapes(self, recording_reservoir):
        agent = FakeAgentClient(error=RuntimeError("socket closed"))
        result = make_orchestrator(agent, recording_reservoir).run_cycle("hi")
        assert result.state == CycleState.FAILED
        assert result.states == [CycleState.TRANSLATING, CycleState.FAILED]
        assert "RuntimeError" in result.error
        assert recording_reservoir.calls == []

    def test_next_cycle_after_failure(self, fake_agent):
        reservoir = RecordingReservoir(fail_on="step")
        orchestrator = make_orchestrator(fake_agent, reservoir)
        assert not orchestrator.run_cycle("first").ok
        reservoir.fail_on = None
        assert orchestrator.run_cycle("second").ok
        assert orchestrator.state == CycleState.IDLE


class TestCancellation:

    def test_cancelled_before_start(self, fake_agent, recording_reservoir):
        orchestrator = make_orchestrator(fake_agent, recording_reservoir, is_cancelled=lambda: True)
        result = orchestrator.run_cycle("hi")
        assert result.states == [CycleState.FAILED]
        assert "cancelled" in result.error
        assert fake_agent.prompts == []
        assert recording_reservoir.calls == []

    def test_cancelled_mid_cycle(self, fake_agent, recording_reservoir):
        """Cancellation is observed at the next state boundary; earlier mutations stay."""
        cancel = {"now": False}

        class CancellingReservoir(RecordingReservoir):
            def export_summary(self):
                cancel["now"] = True
                return super().export_summary()

        reservoir = CancellingReservoir()
        orchestrator = make_orchestrator(fake_agent, reservoir, is_cancelled=lambda: cancel["now"])
        result = orchestrator.run_cycle("hi")
        assert result.states[-2:] == [CycleState.EXPORTING, CycleState.FAILED]
        assert reservoir.calls[-1] == "export_summary"
        assert [role for role, _ in fake_agent.prompts] == ["translator"]


class TestHistory:

    def test_history_is_bounded(self, fake_agent, recording_reservoir):
        orchestrator = make_orchestrator(fake_agent, recording_reservoir, history_limit=3)
        for i in range(5):
            orchestrator.run_cycle(f"message {i}")
        assert len(orchestrator.history) == 3
        recent = orchestrator.recent_cycles(limit=2)
        assert len(recent) == 2
        assert all(entry["state"] == "idle" for entry in recent)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
