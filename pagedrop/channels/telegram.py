"""Telegram channel adapter."""

import logging
from typing import Optional

from telegram import BotCommand, Update
from telegram.constants import ChatAction, ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..communication.formatting import format_outcome
from ..content.extractor import Attachment, InboundMessage
from ..submission import SubmissionPipeline

logger = logging.getLogger("pagedrop.telegram")

SUBMIT_PATTERN = r"^\s*[/!]submit\b"


class TelegramChannel:
    """Telegram bot adapter for PageDrop."""

    def __init__(self, pipeline: SubmissionPipeline, bot_token: str):
        self.pipeline = pipeline
        self.bot_token = bot_token
        self.app: Optional[Application] = None

    async def start(self):
        """Start the Telegram bot."""
        self.app = (
            Application.builder()
            .token(self.bot_token)
            .build()
        )

        # Command handlers
        self.app.add_handler(CommandHandler("start", self._cmd_help))
        self.app.add_handler(CommandHandler("help", self._cmd_help))
        self.app.add_handler(CommandHandler("submit", self._handle_message))

        # "!submit ..." in plain text
        self.app.add_handler(MessageHandler(
            filters.TEXT & ~filters.COMMAND & filters.Regex(SUBMIT_PATTERN),
            self._handle_message,
        ))

        # HTML file with a submit caption
        self.app.add_handler(MessageHandler(
            filters.Document.ALL & filters.CaptionRegex(SUBMIT_PATTERN),
            self._handle_document,
        ))

        # Error handler
        self.app.add_error_handler(self._handle_error)

        logger.info("Starting Telegram bot...")
        await self.app.initialize()
        await self.app.start()
        await self.app.updater.start_polling(drop_pending_updates=True)

        # Register bot commands menu (the "/" button in Telegram)
        await self.app.bot.set_my_commands([
            BotCommand("submit", "Publish HTML as a page"),
            BotCommand("help", "How to submit"),
        ])

        logger.info("Telegram bot started.")

    async def stop(self):
        """Stop the Telegram bot."""
        if self.app:
            await self.app.updater.stop()
            await self.app.stop()
            await self.app.shutdown()
            logger.info("Telegram bot stopped.")

    @staticmethod
    def _get_display_name(user) -> str:
        """Get a display name for a Telegram user."""
        if user.first_name and user.last_name:
            return f"{user.first_name} {user.last_name}"
        return user.first_name or user.username or str(user.id)

    async def _submit(self, update: Update, context: ContextTypes.DEFAULT_TYPE, message: InboundMessage):
        await context.bot.send_chat_action(update.effective_chat.id, ChatAction.TYPING)
        outcome = await self.pipeline.submit(message)
        logger.info(f"Submission from {message.author_id}: {outcome.kind}")
        await update.message.reply_text(
            format_outcome(outcome),
            parse_mode=ParseMode.HTML,
            disable_web_page_preview=True,
        )

    async def _handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /submit and !submit text messages."""
        if not update.message or not update.message.text:
            return
        user = update.effective_user
        message = InboundMessage(
            author_id=str(user.id),
            author_name=self._get_display_name(user),
            text=update.message.text,
        )
        await self._submit(update, context, message)

    async def _handle_document(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle an HTML file uploaded with a submit caption."""
        if not update.message or not update.message.document:
            return
        user = update.effective_user
        doc = update.message.document

        try:
            # file_path is the absolute download URL; it embeds the bot token, never log it
            tg_file = await doc.get_file()
        except TelegramError as e:
            logger.warning(f"Could not resolve file {doc.file_name!r} from {user.id}: {type(e).__name__}")
            await update.message.reply_text("⚠️ Couldn't fetch that file from Telegram (max 20 MB). Try again.")
            return

        message = InboundMessage(
            author_id=str(user.id),
            author_name=self._get_display_name(user),
            text=update.message.caption or "",
            attachment=Attachment(
                url=tg_file.file_path,
                name=doc.file_name or "upload.html",
                size=doc.file_size or 0,
                content_type=doc.mime_type,
            ),
        )
        await self._submit(update, context, message)

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /start and /help."""
        from ..submission import HELP_TEXT
        await update.message.reply_text(HELP_TEXT)

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        logger.error(f"Telegram handler error: {context.error}", exc_info=context.error)
