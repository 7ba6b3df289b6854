"""FileBot Backend Application.

This is the main entry point for the FileBot service. FileBot is a Telegram
bot that lets registered users upload documents, photos, videos and audio to
this server and lists their files back on request.

Modules:
    - catalog: JSON snapshot of registered users and stored files
    - files: classification, naming and ingestion of uploaded files
    - users: registration gate
    - bot: Telegram events, dispatch, replies and reconnection
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request

from filebot.bot.application import BotRunner
from filebot.catalog.store import CatalogStore
from filebot.config import get_config
from filebot.errors import CorruptCatalogError
from filebot.files.classifier import ensure_bucket_dirs
from filebot.files.router import router as files_router
from filebot.status import StatusReport, build_status_report

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# httpx/httpcore log every request, including the long-poll getUpdates calls
# whose URL carries the bot token.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
    "telegram",
    "telegram.ext",
    "apscheduler",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def log_startup_stats(store: CatalogStore) -> None:
    """Log user/file counts and the per-category distribution."""
    try:
        stats = store.stats()
    except CorruptCatalogError as exc:
        logger.error("Catalog is unreadable, an admin must run /repair: %s", exc)
        return

    logger.info(
        "Catalog stats: %d registered users, %d files",
        stats.registered_users,
        stats.stored_files,
    )
    for category, count in sorted(stats.by_category.items()):
        logger.info("  %s: %d files", category, count)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in filebot.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    ensure_bucket_dirs(config.storage.downloads_dir)
    store = CatalogStore.get_instance(config.storage.catalog_path)
    log_startup_stats(store)
    logger.info(f"Catalog: {store.path}")
    logger.info(f"Downloads: {config.storage.downloads_dir}")

    app.state.supervisor = None
    runner = None
    if config.bot.enabled and config.bot_token:
        runner = BotRunner(config, store)
        await runner.start()
        app.state.supervisor = runner.supervisor
    elif config.bot.enabled:
        logger.warning(
            "No Telegram bot token configured (filebot.secrets.yaml or TELEGRAM_BOT_TOKEN); "
            "serving HTTP endpoints only"
        )
    else:
        logger.info("Bot disabled in config, serving HTTP endpoints only")

    yield  # Application runs here

    # Shutdown
    if runner is not None:
        await runner.stop()
        app.state.supervisor = None
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="FileBot API",
    description="Backend service for FileBot - Telegram file upload bot",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(files_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


@app.get("/status", response_model=StatusReport)
async def status(request: Request):
    """Bot status: connectivity and catalog counts.

    Raises:
        HTTPException 503: If the catalog snapshot is corrupt
    """
    try:
        return build_status_report(
            CatalogStore.get_instance(), getattr(request.app.state, "supervisor", None)
        )
    except CorruptCatalogError as e:
        raise HTTPException(status_code=503, detail=str(e))


def run() -> None:
    """Run the service with uvicorn using the configured host and port."""
    config = get_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    run()
