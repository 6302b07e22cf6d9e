import logging
from pathlib import Path

from fastapi import FastAPI

from narrative_decisions.config import ServiceConfig
from narrative_decisions.pipeline.orchestrator import DecisionOrchestrator
from narrative_decisions.routes import router

ENV_FILE = Path(__file__).parent.parent / ".env"

logger = logging.getLogger(__name__)


def create_app(
    config: ServiceConfig | None = None,
    orchestrator: DecisionOrchestrator | None = None,
) -> FastAPI:
    if config is None:
        config = orchestrator.config if orchestrator else ServiceConfig.from_env(ENV_FILE)
    if config.offline:
        logger.info("No AI_API_KEY / AI_API_ENDPOINT set; decisions are generated locally")

    app = FastAPI(title="Narrative Decisions")
    app.state.orchestrator = orchestrator or DecisionOrchestrator(config)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses AI_* / DECISION_* env vars)
app = create_app()
