from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Union


class TranslateRequest(BaseModel):
    user_text: Optional[str] = None
    sensory_snapshot: Optional[Dict[str, Any]] = None
    short_brain_summary: Optional[Any] = None


class CognitiveRequest(BaseModel):
    post_brain_summary: Optional[Union[str, Dict[str, Any]]] = None
    recent_user_text: Optional[str] = None


class CycleRequest(BaseModel):
    user_text: str = Field(..., max_length=5000, description="User utterance to run through one cycle")
    sensory_snapshot: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Environmental signals, e.g. {\"action\": \"yank\", \"force\": 0.9}",
    )


class CycleResponse(BaseModel):
    state: str
    user_text: Optional[str] = None
    brain_summary: Optional[str] = None
    cognitive: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    states: List[str] = []


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float = 0.0
    version: str = "1.0.0"
    cycle_ready: bool = False
    cycle_error: Optional[str] = None
    reservoir: Dict[str, Any] = {}
