"""
Entry point for the storefront bot

Polling for local development, webhook behind FastAPI when WEBHOOK_URL is set.
"""

import logging
import sys
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes

from storefront.config import Settings, get_config, validate_production_readiness
from storefront.container import get_container, initialize_container
from storefront.handlers import register_handlers
from storefront.utils.constants import CacheSettings
from storefront.utils.logger import ProductionLogger

logger = logging.getLogger(__name__)


async def ping_handler(update, context):
    """Simple ping handler"""
    await update.message.reply_text("pong")


async def cleanup_cache_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Drop expired query cache entries that were never read again"""
    removed = get_container().cache.cleanup_expired()
    if removed:
        logger.info("Cache cleanup removed %d expired entries", removed)


async def _post_init(application: Application) -> None:
    get_container().set_bot(application.bot)
    logger.info("Bot attached to container")


async def _post_shutdown(application: Application) -> None:
    await get_container().shutdown()


def setup_bot(config: Settings) -> Application:
    """Build the Telegram application with every handler registered"""
    initialize_container(config)
    logger.info("Dependency container initialized")

    application = (
        Application.builder()
        .token(config.bot_token)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    application.add_handler(CommandHandler("ping", ping_handler))
    register_handlers(application)
    logger.info("Handlers registered")

    if application.job_queue is not None:
        application.job_queue.run_repeating(
            cleanup_cache_job,
            interval=CacheSettings.CLEANUP_INTERVAL_SECONDS,
            first=CacheSettings.CLEANUP_INTERVAL_SECONDS,
            name="cache_cleanup",
        )
    else:
        logger.warning("Job queue unavailable, cache cleanup and checkout timeouts are disabled")
    return application


def run_polling(config: Settings) -> None:
    """Run bot in polling mode for local development"""
    application = setup_bot(config)
    logger.info("Starting bot in polling mode")
    application.run_polling(allowed_updates=Update.ALL_TYPES, drop_pending_updates=True)


def create_webhook_app(config: Settings):
    """FastAPI app that feeds Telegram webhook updates into the bot"""
    from fastapi import FastAPI, HTTPException, Request
    from fastapi.responses import JSONResponse

    application = setup_bot(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await application.initialize()
        await application.start()
        # post_init only runs under run_polling/run_webhook
        await _post_init(application)
        webhook_endpoint = f"{config.webhook_url.rstrip('/')}/webhook"
        await application.bot.set_webhook(url=webhook_endpoint, drop_pending_updates=True)
        logger.info("Webhook set to: %s", webhook_endpoint)
        yield
        await application.stop()
        await application.shutdown()
        await _post_shutdown(application)
        logger.info("Bot shutdown completed")

    app = FastAPI(title="Storefront Bot", lifespan=lifespan)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "environment": config.environment}

    @app.post("/webhook")
    async def webhook_handler(request: Request):
        """Handle incoming webhook updates from Telegram"""
        try:
            update = Update.de_json(await request.json(), application.bot)
        except ValueError as exc:
            logger.warning("Rejected malformed webhook payload: %s", exc)
            raise HTTPException(status_code=400, detail="Malformed update")
        await application.process_update(update)
        return JSONResponse(content={"status": "ok"})

    return app


def run_webhook(config: Settings) -> None:
    """Run bot in webhook mode for production deployment"""
    import uvicorn

    app = create_webhook_app(config)
    logger.info("Starting FastAPI server on port %s", config.port)
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level=config.log_level.lower())


def main() -> int:
    """Main entry point"""
    load_dotenv()
    ProductionLogger.setup_logging()
    config = get_config()

    if config.is_production and not validate_production_readiness():
        logger.critical("Production readiness validation failed - stopping startup")
        return 1

    if config.webhook_url:
        run_webhook(config)
    else:
        run_polling(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
