"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from raid_analytics import __version__
from raid_analytics.api.routes.guild_raid import router as guild_raid_router
from raid_analytics.clients.tacticus_client import TacticusClient
from raid_analytics.config import settings
from raid_analytics.repositories.guild_repository import GuildRepository
from raid_analytics.services.guild_service import GuildService
from raid_analytics.services.team_classifier import TeamClassifier

logger = logging.getLogger(__name__)


# Database path - relative paths resolve from the repo root
def get_database_path() -> Path:
    """Get the database path from settings."""
    db_path = Path(settings.database_path)
    if db_path.is_absolute():
        return db_path
    repo_root = Path(__file__).parent.parent.parent.parent
    return repo_root / settings.database_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup: build collaborators once; tests may preset them on app.state
    if not hasattr(app.state, "guild_service"):
        repository = GuildRepository(get_database_path())
        client = TacticusClient()
        app.state.guild_service = GuildService(repository, client, TeamClassifier())
        logger.info("Guild raid analytics started")
    yield
    # Shutdown: close the upstream HTTP client
    await app.state.guild_service.client.close()


app = FastAPI(
    title="Raid Analytics",
    description="Guild raid statistics and resource estimates for Tacticus guilds",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "raid-analytics"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Raid Analytics API",
        "version": __version__,
        "docs": "/docs",
    }


app.include_router(guild_raid_router)
