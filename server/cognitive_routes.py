import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from config.constants import ROLE_COGNITIVE, ROLE_TRANSLATOR
from core.exceptions import NativeBoundaryError
from core.orchestrator import fallback_user_text
from integrations.agent_client import cognitive_default, translator_default
from integrations.prompts import build_cognitive_prompt, build_translator_prompt
from server.models import CognitiveRequest, CycleRequest, CycleResponse, TranslateRequest

logger = logging.getLogger("brain-cycle.routes")

limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


def get_service():
    from server.cognitive_server import service
    return service


def rate_limit() -> str:
    """Limit string for the current settings, resolved per request."""
    return get_service().rate_limit


async def _invoke_in_executor(role: str, prompt: str, timeout: float):
    """Run the blocking agent call off the event loop; None on timeout."""
    client = get_service().agent_client
    try:
        return await asyncio.wait_for(
            asyncio.get_event_loop().run_in_executor(None, client.invoke, role, prompt),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("%s request timed out after %.1fs, returning default", role, timeout)
        return None


@router.post("/translate")
@limiter.limit(rate_limit)
async def translate(request: Request, body: Optional[TranslateRequest] = None):
    body = body or TranslateRequest()
    svc = get_service()
    try:
        prompt = build_translator_prompt(body.user_text, body.sensory_snapshot, body.short_brain_summary)
        parsed = await _invoke_in_executor(ROLE_TRANSLATOR, prompt, svc.request_timeout)
        if parsed is None:
            parsed = translator_default()
        for key, empty in translator_default().items():
            parsed.setdefault(key, empty)
        return parsed
    except Exception as e:
        logger.error("Translate error: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/cognitive")
@limiter.limit(rate_limit)
async def cognitive(request: Request, body: Optional[CognitiveRequest] = None):
    body = body or CognitiveRequest()
    svc = get_service()
    try:
        prompt = build_cognitive_prompt(body.post_brain_summary, body.recent_user_text)
        parsed = await _invoke_in_executor(ROLE_COGNITIVE, prompt, svc.request_timeout)
        if parsed is None:
            parsed = cognitive_default()
        if "user_text" not in parsed:
            parsed["user_text"] = fallback_user_text(parsed)
        parsed.setdefault("behavior_directives", {})
        parsed.setdefault("archive", [])
        return parsed
    except Exception as e:
        logger.error("Cognitive error: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/cycle", response_model=CycleResponse)
@limiter.limit(rate_limit)
async def cycle(request: Request, body: CycleRequest):
    svc = get_service()
    if svc.supervisor is None or not svc.supervisor.ready:
        raise HTTPException(status_code=503, detail=svc.cycle_error or "cycle subsystem is not running")
    logger.info("Cycle requested: text_length=%d", len(body.user_text))
    try:
        result = await asyncio.wait_for(
            asyncio.get_event_loop().run_in_executor(
                None, svc.supervisor.run_cycle, body.user_text, body.sensory_snapshot
            ),
            timeout=svc.request_timeout,
        )
    except asyncio.TimeoutError:
        # The worker keeps running; its reservoir mutations are not undone
        logger.error("Cycle timed out after %.1fs", svc.request_timeout)
        raise HTTPException(status_code=504, detail=f"Cycle timed out after {svc.request_timeout}s")
    except NativeBoundaryError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return CycleResponse(**result.to_dict())
