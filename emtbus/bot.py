"""Telegram wiring: inline queries, the refresh button and /start, /help."""

from __future__ import annotations

import asyncio
import logging

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    InlineQueryResultArticle,
    InputTextMessageContent,
    LinkPreviewOptions,
    Update,
)
from telegram.constants import ParseMode
from telegram.error import BadRequest, NetworkError, TimedOut
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    InlineQueryHandler,
)

from emtbus.arrivals import ArrivalFetcher
from emtbus.catalog import load_catalog
from emtbus.config import Settings
from emtbus.directory import StopDirectory
from emtbus.emt_client import EmtClient
from emtbus.errors import RefreshError
from emtbus.models import Position, RenderedStop
from emtbus.normalizer import StopNormalizer
from emtbus.pipeline import BusPipeline
from emtbus.resolver import StopResolver

logger = logging.getLogger(__name__)

INLINE_CACHE_SECONDS = 10
REFRESH_PREFIX = "refresh_"

HELP_TEXT = (
    "This bot is intended to be used in inline mode, just type "
    "@emtbusbot and a bus stop number to get an estimation. "
    "Share your location while typing to see the stops around you."
)

_NO_PREVIEW = LinkPreviewOptions(is_disabled=True)

# ────────────────────────────────────────────────────────────────────────────
# Render result → Telegram objects
# ────────────────────────────────────────────────────────────────────────────

def refresh_keyboard(stop_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton("🔄 Actualizar", callback_data=f"{REFRESH_PREFIX}{stop_id}")]]
    )


def to_article(result: RenderedStop) -> InlineQueryResultArticle:
    return InlineQueryResultArticle(
        id=result.id,
        title=result.title,
        input_message_content=InputTextMessageContent(
            result.body,
            parse_mode=ParseMode.MARKDOWN,
            link_preview_options=_NO_PREVIEW,
        ),
        description=result.description,
        thumbnail_url=result.thumbnail_url or None,
        reply_markup=refresh_keyboard(result.refresh_stop_id),
    )

# ────────────────────────────────────────────────────────────────────────────
# Handlers
# ────────────────────────────────────────────────────────────────────────────

async def cmd_help(update: Update, ctx: ContextTypes.DEFAULT_TYPE) -> None:
    if update.effective_message:
        await update.effective_message.reply_text(HELP_TEXT)


async def on_inline_query(update: Update, ctx: ContextTypes.DEFAULT_TYPE) -> None:
    inline = update.inline_query
    if not inline:
        return
    pipeline: BusPipeline = ctx.application.bot_data["pipeline"]
    location = None
    if inline.location:
        location = Position(inline.location.latitude, inline.location.longitude)

    rendered = await pipeline.handle_inline_query(inline.query.strip(), location)
    try:
        await inline.answer(
            [to_article(r) for r in rendered], cache_time=INLINE_CACHE_SECONDS,
        )
    except (BadRequest, TimedOut, NetworkError) as e:
        logger.warning("Answer inline query %r: %s", inline.query, e)
        return
    logger.info("Inline query %r → %d result(s).", inline.query, len(rendered))


async def on_refresh(update: Update, ctx: ContextTypes.DEFAULT_TYPE) -> None:
    """Re-run the pipeline for one stop and edit the message in place."""
    query = update.callback_query
    if not query:
        return
    await query.answer()
    data = query.data or ""
    if not data.startswith(REFRESH_PREFIX):
        return
    stop_id = data[len(REFRESH_PREFIX):]
    pipeline: BusPipeline = ctx.application.bot_data["pipeline"]

    try:
        rendered = await pipeline.handle_refresh(stop_id)
    except RefreshError as e:
        logger.error("%s", e)
        return

    try:
        await query.edit_message_text(
            rendered.body,
            parse_mode=ParseMode.MARKDOWN,
            link_preview_options=_NO_PREVIEW,
            reply_markup=refresh_keyboard(rendered.refresh_stop_id),
        )
    except BadRequest as e:
        if "not modified" not in str(e).lower():
            logger.error("Edit refresh for stop %s: %s", stop_id, e)
    except (TimedOut, NetworkError) as e:
        logger.warning("Network refresh for stop %s: %s", stop_id, e)

# ────────────────────────────────────────────────────────────────────────────
# Application lifecycle
# ────────────────────────────────────────────────────────────────────────────

async def post_init(app: Application) -> None:
    """Start warming the stop directory once the bot is connected."""
    directory: StopDirectory = app.bot_data["directory"]
    app.bot_data["warmup_task"] = asyncio.create_task(directory.populate())


async def post_shutdown(app: Application) -> None:
    """Cancel the warm-up if it is still running and close the HTTP client."""
    task: asyncio.Task | None = app.bot_data.get("warmup_task")
    if task and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    elif task and not task.cancelled() and task.exception() is not None:
        logger.error("Stop directory warm-up failed: %r", task.exception())
    client: EmtClient = app.bot_data["client"]
    await client.aclose()
    logger.info("Bot stopped.")


def build_pipeline(settings: Settings, client: EmtClient) -> tuple[StopDirectory, BusPipeline]:
    catalog = load_catalog(settings.nodes_xml, settings.lines_xml)
    normalizer = StopNormalizer(catalog, client)
    directory = StopDirectory(
        client, normalizer,
        batch_size=settings.catalog_batch_size,
        stagger=settings.catalog_stagger_seconds,
        max_id=settings.max_stop_id,
        retry=settings.retry,
    )
    resolver = StopResolver(
        directory, catalog, normalizer, client,
        max_results=settings.max_results,
        search_radius=settings.search_radius,
    )
    pipeline = BusPipeline(
        resolver, ArrivalFetcher(client),
        max_column_width=settings.max_column_width,
        thumbnail_url=settings.result_thumb,
    )
    return directory, pipeline


def build_application(settings: Settings) -> Application:
    client = EmtClient(
        settings.emt_app_id, settings.emt_passkey,
        base_url=settings.emt_base_url, timeout=settings.http_timeout,
    )
    directory, pipeline = build_pipeline(settings, client)

    app = (
        Application.builder()
        .token(settings.token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    app.bot_data["client"] = client
    app.bot_data["directory"] = directory
    app.bot_data["pipeline"] = pipeline

    app.add_handler(CommandHandler(["start", "help"], cmd_help))
    app.add_handler(InlineQueryHandler(on_inline_query))
    app.add_handler(CallbackQueryHandler(on_refresh, pattern=rf"^{REFRESH_PREFIX}\d+$"))
    return app
