"""
Prompt templates for the translator and cognitive agents.
"""

import json
from typing import Any, Dict, Optional, Union

TRANSLATOR_SYSTEM_PROMPT = "You are a TRANSLATOR. Return ONLY JSON as specified. No commentary."

COGNITIVE_SYSTEM_PROMPT = "You are a COGNITIVE agent. Return ONLY JSON as specified."

TRANSLATOR_TEMPLATE = """
You are a TRANSLATOR agent. Input: a user's text message, a sensory snapshot and a short brain summary.
Return ONLY well-formed JSON with the following fields:
- neural_inputs: an array of {{ kind: "text_embedding"|"sensory_stim", tokens?: [ints], seed_embedding?: [floats], strength?: float, receptor?: string, intensity?: float }}
- neurogenesis: an array of requested new clusters {{ label: string, cluster_size: int, seed_embedding?: [floats] }}
- memory_flags: an array of {{ summary: string, importance: float }}
No natural language outside the JSON. If you cannot produce all fields, return empty arrays for them.

USER_TEXT:
{user_text}

SENSORY_SNAPSHOT:
{sensory_snapshot}

SHORT_BRAIN_SUMMARY:
{short_brain_summary}
"""

COGNITIVE_TEMPLATE = """
You are the COGNITIVE agent (higher mind). Input: a short brain summary and the user's latest message.
You MUST produce JSON with:
- user_text: text to send to the user (string)
- behavior_directives: object e.g. {{ motor_intent: [floats], verbal_tone: "calm" }}
- archive: array of {{ summary: string, importance: float }}

POST_BRAIN_SUMMARY:
{post_brain_summary}

RECENT_USER_TEXT:
{recent_user_text}

Return ONLY JSON, nothing else.
"""


def _as_json(value: Any) -> str:
    return json.dumps(value if value is not None else {}, default=str)


def build_translator_prompt(
    user_text: Optional[str],
    sensory_snapshot: Optional[Dict[str, Any]] = None,
    short_brain_summary: Optional[Any] = None,
) -> str:
    return TRANSLATOR_TEMPLATE.format(
        user_text=user_text or "",
        sensory_snapshot=_as_json(sensory_snapshot),
        short_brain_summary=_as_json(short_brain_summary),
    )


def build_cognitive_prompt(
    post_brain_summary: Union[str, Dict[str, Any], None],
    recent_user_text: Optional[str],
) -> str:
    # The reservoir summary is already serialized; pass it through untouched
    if isinstance(post_brain_summary, str):
        summary = post_brain_summary
    else:
        summary = _as_json(post_brain_summary)
    return COGNITIVE_TEMPLATE.format(
        post_brain_summary=summary,
        recent_user_text=json.dumps(recent_user_text or ""),
    )
