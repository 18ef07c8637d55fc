"""Pytest configuration and shared test doubles."""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.exceptions import NativeBoundaryError
from core.reservoir import ReservoirBoundary
from integrations.agent_client import cognitive_default, translator_default


class RecordingReservoir(ReservoirBoundary):
    """Reservoir double that records every call and can fail on demand."""

    def __init__(self, fail_on=None, init_ok=True, summary='{"valence":0.1,"arousal":0.2,"top_anchors":[]}'):
        self.calls = []
        self.fail_on = fail_on
        self.init_ok = init_ok
        self.summary = summary
        self.applied = []

    def _record(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise NativeBoundaryError(f"{name} exploded")

    def initialize(self, neuron_count, fanout):
        self.calls.append("initialize")
        return self.init_ok

    def apply_inputs(self, vector):
        self._record("apply_inputs")
        self.applied.append(vector)

    def step(self):
        self._record("step")

    def export_summary(self):
        self._record("export_summary")
        return self.summary


class FakeAgentClient:
    """AgentClient stand-in returning canned responses per role."""

    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.prompts = []
        self.closed = False

    def invoke(self, role, prompt):
        self.prompts.append((role, prompt))
        if self.error is not None:
            raise self.error
        if role in self.responses:
            return dict(self.responses[role])
        return translator_default() if role == "translator" else cognitive_default()

    def close(self):
        self.closed = True


@pytest.fixture
def recording_reservoir():
    return RecordingReservoir()


@pytest.fixture
def fake_agent():
    return FakeAgentClient(responses={
        "translator": {
            "neural_inputs": [{"kind": "text_embedding", "tokens": [5]}],
            "neurogenesis": [],
            "memory_flags": [{"summary": "book yanked", "importance": 0.8}],
        },
        "cognitive": {
            "user_text": "Hey, give that back!",
            "behavior_directives": {"verbal_tone": "annoyed"},
            "archive": [{"summary": "user grabbed book", "importance": 0.6}],
        },
    })
