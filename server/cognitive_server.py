import os
import sys
import time
import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config.constants import DEFAULT_RATE_LIMIT, DEFAULT_REQUEST_TIMEOUT_SECONDS
from config.settings import Settings, load_settings
from core.exceptions import ConfigError, NativeBoundaryError
from core.supervisor import BrainSupervisor
from integrations.agent_client import AgentClient
from server.cognitive_routes import limiter, router as cycle_router
from server.models import HealthResponse

logger = logging.getLogger("brain-cycle")


class BrainService:
    """Holds the agent client and the brain supervisor for the app's lifetime."""

    def __init__(self):
        self.start_time = time.time()
        self.settings: Optional[Settings] = None
        self.agent_client: Optional[AgentClient] = None
        self.supervisor: Optional[BrainSupervisor] = None
        self.cycle_error: Optional[str] = None

    @property
    def request_timeout(self) -> float:
        if self.settings is None:
            return DEFAULT_REQUEST_TIMEOUT_SECONDS
        return self.settings.request_timeout

    @property
    def rate_limit(self) -> str:
        if self.settings is None:
            return DEFAULT_RATE_LIMIT
        return self.settings.rate_limit

    def initialize(
        self,
        settings: Settings,
        agent_client: Optional[AgentClient] = None,
        supervisor: Optional[BrainSupervisor] = None,
    ):
        """
        Wire the agent client and start the cycle subsystem.

        A reservoir that fails to initialize disables /cycle only;
        /translate and /cognitive keep working.
        """
        self.settings = settings
        self.agent_client = agent_client or AgentClient.from_settings(settings)
        self.supervisor = supervisor or BrainSupervisor.from_settings(settings, self.agent_client)
        self.cycle_error = None
        try:
            self.supervisor.start()
            logger.info("Cycle subsystem ready")
        except NativeBoundaryError as e:
            self.cycle_error = str(e)
            logger.error("Cycle subsystem disabled: %s", e)

    def shutdown(self):
        if self.supervisor is not None:
            self.supervisor.stop()
        if self.agent_client is not None:
            self.agent_client.close()
        self.settings = None
        self.agent_client = None
        self.supervisor = None
        logger.info("Brain service shut down")


service = BrainService()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if service.settings is None:
        # ConfigError propagates and aborts startup
        service.initialize(load_settings())
    logger.info("Agent manager ready (translator agent: %s)", service.settings.translator_agent_id)
    yield
    service.shutdown()


app = FastAPI(title="Brain Cycle Agent Manager", version="1.0.0", lifespan=lifespan)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cycle_router)


@app.get("/health", response_model=HealthResponse)
async def health():
    supervisor = service.supervisor
    return HealthResponse(
        status="ok" if service.agent_client is not None else "initializing",
        uptime_seconds=round(time.time() - service.start_time, 1),
        cycle_ready=bool(supervisor and supervisor.ready),
        cycle_error=service.cycle_error,
        reservoir=supervisor.status() if supervisor else {},
    )


def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error("ERROR: %s", e)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    service.initialize(settings)

    import uvicorn
    logger.info("Agent manager listening on port %d", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
