"""
EMT Bus Bot – live Madrid bus arrivals in Telegram inline mode.

Type  @emtbusbot <stop number>  in any chat (or share a location while
typing) to get the next buses at matching stops as a compact table.  Each
sent result carries a refresh button that re-fetches that stop in place.

Architecture
------------
- Secrets (TELEGRAM_BOT_TOKEN, EMT_APP_ID, EMT_PASSKEY) are read from the
  environment (.env file).
- Tunables live in an optional config.json next to this file; sane defaults
  are used when the file is absent.
- The static EMT dataset (data/Lines.xml, data/NodesLines.xml) is loaded
  once at startup; the stop directory is then warmed in the background from
  the EMT API.

Commands
--------
/start, /help  – How to use the bot.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from telegram import Update

from emtbus.bot import build_application
from emtbus.config import load_global_config

load_dotenv()

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
)
# httpx logs every request at INFO; the warm-up alone makes dozens.
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger("emtbus")

BASE_DIR = Path(__file__).parent
CONFIG_PATH = BASE_DIR / "config.json"


def main() -> None:
    settings = load_global_config(CONFIG_PATH, BASE_DIR)

    if not settings.token:
        logger.error("TELEGRAM_BOT_TOKEN not set. Create a .env file with TELEGRAM_BOT_TOKEN=<your-token> or export it.")
        sys.exit(1)
    if not settings.emt_app_id or not settings.emt_passkey:
        logger.warning("EMT_APP_ID / EMT_PASSKEY not set; every EMT API call will be rejected.")

    app = build_application(settings)
    logger.info("Starting EMT Bus Bot…")
    app.run_polling(drop_pending_updates=True, allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
