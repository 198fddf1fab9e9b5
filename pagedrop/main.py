"""PageDrop — Main entry point."""

import asyncio
import logging
import os

from .config import PagedropSettings, load_settings
from .channels.telegram import TelegramChannel
from .db.connection import close_db, init_db
from .ratelimit import init_rate_limiter_from_settings
from .submission import SubmissionPipeline

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("pagedrop")


def setup_logging(settings: PagedropSettings, debug: bool = False):
    """stderr always; a file as well when ``log_file`` is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(os.path.expanduser(settings.log_file), encoding="utf-8"))

    logging.basicConfig(
        level=logging.DEBUG if (debug or settings.debug) else logging.INFO,
        format=_log_format,
        handlers=handlers,
    )
    # httpx logs every request URL at INFO; Telegram file URLs embed the bot token
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def run(debug: bool = False):
    """Main run loop."""
    settings = load_settings()
    setup_logging(settings, debug)

    if not settings.telegram_bot_token:
        logger.error("No Telegram bot token configured. Set PAGEDROP_TELEGRAM_BOT_TOKEN in .env.")
        return

    telegram = None
    try:
        await init_db(settings.database_url)
        init_rate_limiter_from_settings(settings)

        pipeline = SubmissionPipeline(settings)
        telegram = TelegramChannel(pipeline, settings.telegram_bot_token)
        await telegram.start()

        # Keep alive
        logger.info("PageDrop is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(1)

    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        if telegram:
            await telegram.stop()
        await close_db()


def main():
    """Entry point."""
    asyncio.run(run())
