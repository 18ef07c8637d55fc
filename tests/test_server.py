"""
Tests for the HTTP agent manager (server/cognitive_server.py, server/cognitive_routes.py).

The service is initialized with injected doubles before the app starts, so
no request leaves the process.
"""

import os
import sys
import time

import httpx
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeAgentClient, RecordingReservoir
from config.settings import Settings
from core.exceptions import ConfigError
from core.reservoir import SimulatedReservoir
from core.supervisor import BrainSupervisor
from integrations.agent_client import AgentClient
from server.cognitive_routes import limiter
from server.cognitive_server import app, service

SETTINGS = Settings(api_key="test-key", api_url="https://mistral.test/v1", request_timeout=2.0)


class SlowAgentClient(FakeAgentClient):
    def __init__(self, delay):
        super().__init__()
        self.delay = delay

    def invoke(self, role, prompt):
        time.sleep(self.delay)
        return super().invoke(role, prompt)


@pytest.fixture(autouse=True)
def no_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


def start_client(agent_client, boundary=None, settings=SETTINGS):
    supervisor = BrainSupervisor(agent_client, boundary or SimulatedReservoir(), neuron_count=500, fanout=4,
                                 step_interval=0.05)
    service.initialize(settings, agent_client=agent_client, supervisor=supervisor)
    return TestClient(app)


@pytest.fixture
def client(fake_agent):
    with start_client(fake_agent) as test_client:
        yield test_client


@pytest.fixture
def offline_client():
    """Real AgentClient whose every HTTP call fails."""
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
    agent_client = AgentClient.from_settings(SETTINGS, transport=transport)
    with start_client(agent_client) as test_client:
        yield test_client


class TestTranslate:

    def test_empty_body_is_never_500(self, offline_client):
        response = offline_client.post("/translate")
        assert response.status_code == 200
        assert response.json() == {"neural_inputs": [], "neurogenesis": [], "memory_flags": []}

    def test_empty_object_body(self, offline_client):
        response = offline_client.post("/translate", json={})
        assert response.status_code == 200
        assert response.json()["neural_inputs"] == []

    def test_passes_request_into_prompt(self, client, fake_agent):
        response = client.post("/translate", json={
            "user_text": "I yank the book",
            "sensory_snapshot": {"action": "yank"},
        })
        assert response.status_code == 200
        assert response.json()["neural_inputs"][0]["tokens"] == [5]
        role, prompt = fake_agent.prompts[-1]
        assert role == "translator"
        assert "I yank the book" in prompt

    def test_missing_sections_are_filled(self):
        agent = FakeAgentClient(responses={"translator": {"neural_inputs": [{"kind": "sensory_stim"}]}})
        with start_client(agent) as test_client:
            body = test_client.post("/translate", json={"user_text": "hi"}).json()
        assert body["neurogenesis"] == []
        assert body["memory_flags"] == []

    def test_unexpected_error_is_500_json(self):
        with start_client(FakeAgentClient(error=RuntimeError("kaput"))) as test_client:
            response = test_client.post("/translate", json={"user_text": "hi"})
        assert response.status_code == 500
        assert response.json() == {"error": "kaput"}

    def test_timeout_returns_default(self):
        settings = Settings(api_key="k", request_timeout=0.05)
        with start_client(SlowAgentClient(delay=0.5), settings=settings) as test_client:
            response = test_client.post("/translate", json={"user_text": "hi"})
        assert response.status_code == 200
        assert response.json() == {"neural_inputs": [], "neurogenesis": [], "memory_flags": []}


class TestCognitive:

    def test_reply(self, client):
        response = client.post("/cognitive", json={
            "post_brain_summary": '{"valence":0.1,"arousal":0.4,"top_anchors":[]}',
            "recent_user_text": "I yank the book",
        })
        assert response.status_code == 200
        assert response.json()["user_text"] == "Hey, give that back!"

    def test_all_tiers_fail(self, offline_client):
        response = offline_client.post("/cognitive")
        assert response.status_code == 200
        assert response.json() == {
            "user_text": "(error) couldn't generate response",
            "behavior_directives": {},
            "archive": [],
        }

    def test_missing_user_text_gets_fallback(self):
        agent = FakeAgentClient(responses={"cognitive": {"mood": "grumpy"}})
        with start_client(agent) as test_client:
            body = test_client.post("/cognitive", json={"recent_user_text": "hi"}).json()
        assert body["user_text"] == '{"mood": "grumpy"}'
        assert body["behavior_directives"] == {}
        assert body["archive"] == []


class TestCycle:

    def test_full_cycle(self, client):
        response = client.post("/cycle", json={"user_text": "I yank the book", "sensory_snapshot": {"force": 0.9}})
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "idle"
        assert body["user_text"] == "Hey, give that back!"
        assert body["states"][-1] == "idle"
        assert '"valence"' in body["brain_summary"]

    def test_failed_cycle_is_reported_not_raised(self, fake_agent):
        with start_client(fake_agent, boundary=RecordingReservoir(fail_on="step")) as test_client:
            body = test_client.post("/cycle", json={"user_text": "hi"}).json()
        assert body["state"] == "failed"
        assert "step exploded" in body["error"]

    def test_requires_user_text(self, client):
        assert client.post("/cycle", json={}).status_code == 422

    def test_reservoir_init_failure_disables_cycle_only(self, fake_agent):
        with start_client(fake_agent, boundary=RecordingReservoir(init_ok=False)) as test_client:
            assert test_client.post("/cycle", json={"user_text": "hi"}).status_code == 503
            assert test_client.post("/translate", json={"user_text": "hi"}).status_code == 200
            health = test_client.get("/health").json()
        assert health["cycle_ready"] is False
        assert "returned false" in health["cycle_error"]

    def test_timeout_is_504(self):
        settings = Settings(api_key="k", request_timeout=0.05)
        with start_client(SlowAgentClient(delay=0.5), settings=settings) as test_client:
            response = test_client.post("/cycle", json={"user_text": "hi"})
        assert response.status_code == 504


class TestRateLimit:

    def test_limit_comes_from_settings(self, fake_agent):
        """RATE_LIMIT is resolved from the service settings on each request."""
        settings = Settings(api_key="k", rate_limit="2/minute")
        limiter.reset()
        limiter.enabled = True
        try:
            with start_client(fake_agent, settings=settings) as test_client:
                codes = [test_client.post("/translate", json={}).status_code for _ in range(3)]
        finally:
            limiter.enabled = False
            limiter.reset()
        assert codes == [200, 200, 429]


class TestHealthAndLifecycle:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["cycle_ready"] is True
        assert body["reservoir"]["ready"] is True
        assert body["reservoir"]["reservoir_initialized"] is True

    def test_shutdown_closes_client(self, fake_agent):
        with start_client(fake_agent):
            pass
        assert fake_agent.closed
        assert service.supervisor is None

    def test_missing_api_key_aborts_startup(self, monkeypatch):
        monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
        assert service.settings is None
        with pytest.raises(ConfigError):
            with TestClient(app):
                pass


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
