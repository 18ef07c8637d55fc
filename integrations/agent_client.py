"""
Agent Client - Two-Tier LLM Invocation with JSON Recovery
=========================================================

Calls the Mistral agents API first and falls back to a plain chat
completion when the agent call fails or returns text without a usable JSON
object. Each tier is tried exactly once. When neither tier yields a JSON
object, the role's documented default is returned instead of an error.

Tiers:
- AgentInvokeTier: POST /agents/{agent_id}/invoke
- ChatCompletionTier: POST /chat/completions with a system instruction

Each tier returns (value, ok); AgentClient short-circuits on the first ok.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from config.constants import (
    COGNITIVE_MAX_TOKENS,
    COGNITIVE_TEMPERATURE,
    DEFAULT_AGENT_TIMEOUT_SECONDS,
    ROLE_COGNITIVE,
    ROLE_TRANSLATOR,
    TRANSLATOR_MAX_TOKENS,
    TRANSLATOR_TEMPERATURE,
)
from config.settings import Settings
from core.exceptions import NetworkError, ParseError
from integrations.prompts import COGNITIVE_SYSTEM_PROMPT, TRANSLATOR_SYSTEM_PROMPT

logger = logging.getLogger("brain-cycle.agents")

TierResult = Tuple[Optional[Dict[str, Any]], bool]


def translator_default() -> Dict[str, Any]:
    return {"neural_inputs": [], "neurogenesis": [], "memory_flags": []}


def cognitive_default() -> Dict[str, Any]:
    return {
        "user_text": "(error) couldn't generate response",
        "behavior_directives": {},
        "archive": [],
    }


@dataclass
class RoleConfig:
    """Per-role agent id, fallback model and generation parameters."""
    name: str
    agent_id: str
    fallback_model: str
    system_prompt: str
    max_tokens: int
    temperature: float
    default_factory: Callable[[], Dict[str, Any]] = field(default=dict)

    def default(self) -> Dict[str, Any]:
        # Fresh copy each time so callers can mutate it safely
        return self.default_factory()


def role_configs_from_settings(settings: Settings) -> Dict[str, RoleConfig]:
    return {
        ROLE_TRANSLATOR: RoleConfig(
            name=ROLE_TRANSLATOR,
            agent_id=settings.translator_agent_id,
            fallback_model=settings.translator_fallback_model,
            system_prompt=TRANSLATOR_SYSTEM_PROMPT,
            max_tokens=TRANSLATOR_MAX_TOKENS,
            temperature=TRANSLATOR_TEMPERATURE,
            default_factory=translator_default,
        ),
        ROLE_COGNITIVE: RoleConfig(
            name=ROLE_COGNITIVE,
            agent_id=settings.cognitive_agent_id,
            fallback_model=settings.cognitive_fallback_model,
            system_prompt=COGNITIVE_SYSTEM_PROMPT,
            max_tokens=COGNITIVE_MAX_TOKENS,
            temperature=COGNITIVE_TEMPERATURE,
            default_factory=cognitive_default,
        ),
    }


# =============================================================================
# JSON RECOVERY
# =============================================================================

_decoder = json.JSONDecoder()


def parse_from_first_brace(text: str) -> Dict[str, Any]:
    """
    Parse the first JSON object in free text.

    Decoding starts at the first '{' and stops at the end of that value, so
    leading prose and trailing commentary are both ignored.

    Raises:
        ParseError: no '{' in the text, or what follows is not an object
    """
    if not isinstance(text, str):
        raise ParseError(f"expected text, got {type(text).__name__}")
    start = text.find("{")
    if start < 0:
        raise ParseError("no JSON object in response")
    try:
        value, _end = _decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON in response: {e}") from e
    if not isinstance(value, dict):
        raise ParseError("response JSON is not an object")
    return value


def parse_json_object(text: str) -> Dict[str, Any]:
    """Direct parse, then recovery from the first brace."""
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        value = None
    if isinstance(value, dict):
        return value
    return parse_from_first_brace(text)


# =============================================================================
# TIERS
# =============================================================================

class AgentTier:
    """One invocation strategy. Subclasses implement _call()."""

    name = "tier"

    def __init__(self, http: httpx.Client, base_url: str, api_key: str):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        try:
            resp = self.http.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise NetworkError(f"{self.name} request failed: {e}") from e
        if resp.status_code >= 400:
            raise NetworkError(f"{self.name} error: {resp.status_code} {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"{self.name} returned a non-JSON body") from e

    def _call(self, role: RoleConfig, prompt: str) -> Dict[str, Any]:
        raise NotImplementedError

    def attempt(self, role: RoleConfig, prompt: str) -> TierResult:
        try:
            return self._call(role, prompt), True
        except (NetworkError, ParseError) as e:
            logger.warning("%s tier failed for %s: %s", self.name, role.name, e)
            return None, False


class AgentInvokeTier(AgentTier):
    """Structured agents API; the payload text lives under output.content."""

    name = "agent"

    @staticmethod
    def extract_text(response: Any) -> str:
        output = response.get("output") if isinstance(response, dict) else None
        if isinstance(output, list) and output and isinstance(output[0], dict):
            content = output[0].get("content")
            if content:
                return content if isinstance(content, str) else json.dumps(content)
        if isinstance(output, dict) and output.get("content"):
            content = output["content"]
            return content if isinstance(content, str) else json.dumps(content)
        return json.dumps(response)

    def _call(self, role: RoleConfig, prompt: str) -> Dict[str, Any]:
        url = f"{self.base_url}/agents/{quote(role.agent_id, safe='')}/invoke"
        data = self._post(url, {"input": prompt, "role": role.name})
        return parse_from_first_brace(self.extract_text(data))


class ChatCompletionTier(AgentTier):
    """Chat completion with a system instruction and fixed generation params."""

    name = "chat"

    @staticmethod
    def extract_text(response: Any) -> str:
        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return "{}"
        return content if isinstance(content, str) and content else "{}"

    def _call(self, role: RoleConfig, prompt: str) -> Dict[str, Any]:
        payload = {
            "model": role.fallback_model,
            "messages": [
                {"role": "system", "content": role.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": role.max_tokens,
            "temperature": role.temperature,
        }
        data = self._post(f"{self.base_url}/chat/completions", payload)
        return parse_json_object(self.extract_text(data))


# =============================================================================
# CLIENT
# =============================================================================

class AgentClient:
    """
    Resilient invocation of the translator and cognitive agents.

    Never raises for network or parse problems: the role default is
    returned when every tier fails.

    Example:
        client = AgentClient.from_settings(load_settings())
        output = client.invoke("translator", build_translator_prompt("hi", {}))
    """

    def __init__(
        self,
        roles: Dict[str, RoleConfig],
        tiers: Sequence[AgentTier],
        http: Optional[httpx.Client] = None,
    ):
        self.roles = roles
        self.tiers: List[AgentTier] = list(tiers)
        self._http = http

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> 'AgentClient':
        """Build the standard agent -> chat ladder sharing one HTTP client."""
        http = httpx.Client(
            timeout=settings.agent_timeout or DEFAULT_AGENT_TIMEOUT_SECONDS,
            transport=transport,
        )
        tiers = [
            AgentInvokeTier(http, settings.api_url, settings.api_key),
            ChatCompletionTier(http, settings.api_url, settings.api_key),
        ]
        return cls(role_configs_from_settings(settings), tiers, http=http)

    def invoke(self, role: str, prompt: str) -> Dict[str, Any]:
        """
        Run the prompt through each tier until one yields a JSON object.

        Args:
            role: "translator" or "cognitive"
            prompt: Fully composed prompt text

        Returns:
            Parsed JSON object, or the role default when all tiers fail

        Raises:
            ValueError: role is not configured
        """
        role_config = self.roles.get(role)
        if role_config is None:
            raise ValueError(f"Unknown agent role '{role}'. Must be one of: {list(self.roles)}")

        for tier in self.tiers:
            value, ok = tier.attempt(role_config, prompt)
            if ok:
                logger.debug("%s answered by %s tier", role, tier.name)
                return value

        logger.warning("All tiers failed for %s, returning default", role)
        return role_config.default()

    def close(self):
        if self._http is not None:
            self._http.close()
