"""
shopgrade - Telegram Bot
Etsy listing SEO grades, shop comparisons and pricing advice in chat.

Commands:
- /grade <listing_id>: Grade a live Etsy listing and save it to history
- /compare <shop> <category> [competitors...]: Percentile rankings, gaps, recommendations
- /price <price> [category]: Pricing recommendation against competitor prices
- /history <listing_id>: Recent grades for a listing
"""
import logging
import time
from typing import Optional

import requests

from shopgrade.config import config
from shopgrade.errors import DataUnavailableError
from shopgrade.export import export_comparison_report
from shopgrade.history import GradeHistoryStore
from shopgrade.log import setup_logging
from shopgrade.providers import EtsyMetricsProvider
from shopgrade.seo_grader import SEOGrader
from shopgrade.shop_comparator import ShopComparator
from shopgrade.smart_pricing import SmartPricingEngine, analyze_psychological_pricing

logger = logging.getLogger("shopgrade.bot")

API_URL = f"https://api.telegram.org/bot{config.BOT_TOKEN}"
store = GradeHistoryStore(config.REDIS_URL, config.MAX_HISTORY, config.HISTORY_RETENTION_DAYS)
provider = EtsyMetricsProvider()
grader = SEOGrader(history=store)
comparator = ShopComparator(provider)
pricing = SmartPricingEngine(provider, cache_ttl=config.PRICE_CACHE_TTL)

HELP_TEXT = (
    "🏷️ *shopgrade*\n\n"
    "/grade `<listing_id>` — SEO grade for an Etsy listing\n"
    "/compare `<shop> <category> [competitors...]` — compare with benchmarks\n"
    "/price `<price> [category]` — pricing recommendation\n"
    "/history `<listing_id>` — recent grades\n\n"
    "Categories: jewelry, home_decor, art"
)


POLL_TIMEOUT = 30
MESSAGE_LIMIT = 4000


def tg_request(method: str, payload: Optional[dict] = None) -> Optional[dict]:
    """POST a Bot API call. Returns the decoded reply, or None if Telegram is unreachable."""
    try:
        r = requests.post(f"{API_URL}/{method}", json=payload or {}, timeout=POLL_TIMEOUT + 5)
        return r.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.error("Telegram API %s failed: %s", method, e)
        return None


def tg_send(chat_id: int, text: str, reply_to: Optional[int] = None, parse_mode: Optional[str] = "Markdown"):
    """Send a message, resending as plain text when Telegram rejects the markup."""
    message = {"chat_id": chat_id, "text": text, "disable_web_page_preview": True}
    if reply_to:
        message["reply_to_message_id"] = reply_to

    result = tg_request("sendMessage", dict(message, parse_mode=parse_mode) if parse_mode else message)
    if parse_mode and not (result and result.get("ok")):
        result = tg_request("sendMessage", message)
    return result


def send_long(chat_id: int, text: str, header: str = "", reply_to: Optional[int] = None):
    """Send text in MESSAGE_LIMIT-sized parts; only the first part replies."""
    body = header + text
    for n, offset in enumerate(range(0, max(len(body), 1), MESSAGE_LIMIT)):
        if n:
            time.sleep(0.3)
        tg_send(chat_id, body[offset:offset + MESSAGE_LIMIT], reply_to if n == 0 else None, parse_mode=None)


def cmd_grade(chat_id: int, msg_id: int, arg: str):
    if not arg.isdigit():
        tg_send(chat_id, "Usage: /grade `<listing_id>`", msg_id)
        return
    listing_id = int(arg)
    try:
        listing = provider.get_listing(listing_id)
    except DataUnavailableError as e:
        logger.error("Grade failed for listing %s: %s", listing_id, e)
        tg_send(chat_id, f"⚠️ Could not fetch listing {listing_id}. Try again later.", msg_id)
        return

    grade = grader.grade_listing(listing)
    grader.save_grade_to_history(listing_id, grade)
    send_long(chat_id, grade.summary(), f"🏷️ {listing.title[:80]}\n\n", msg_id)


def cmd_compare(chat_id: int, msg_id: int, args: list[str]):
    if len(args) < 2:
        tg_send(chat_id, "Usage: /compare `<shop> <category> [competitors...]`", msg_id)
        return
    shop, category, competitors = args[0], args[1], args[2:]
    comparison = comparator.compare_shop(shop, category, competitors)
    if comparison is None:
        tg_send(chat_id, f"⚠️ Could not load shop data for {shop}. Try again later.", msg_id)
        return
    send_long(chat_id, export_comparison_report(comparison), reply_to=msg_id)


def cmd_price(chat_id: int, msg_id: int, args: list[str]):
    try:
        price = float(args[0].lstrip("$")) if args else 0.0
    except ValueError:
        price = 0.0
    if price <= 0:
        tg_send(chat_id, "Usage: /price `<price> [category]`", msg_id)
        return
    category = args[1] if len(args) > 1 else ""

    try:
        rec = pricing.get_pricing_recommendation(0, price, category, [category] if category else [])
    except DataUnavailableError as e:
        logger.warning("Competitor prices unavailable for %s: %s", category, e)
        psych = analyze_psychological_pricing(price)
        lines = [
            "⚠️ Competitor prices unavailable, showing charm pricing only.",
            f"💲 ${price:.2f} → ${psych.psychological_price:.2f}",
            psych.impact,
        ] + [f"→ {s}" for s in psych.suggestions]
        tg_send(chat_id, "\n".join(lines), msg_id, parse_mode=None)
        return
    send_long(chat_id, rec.summary(), reply_to=msg_id)


def cmd_history(chat_id: int, msg_id: int, arg: str):
    if not arg.isdigit():
        tg_send(chat_id, "Usage: /history `<listing_id>`", msg_id)
        return
    history = grader.get_grade_history(int(arg))
    if not history:
        tg_send(chat_id, f"📭 No grades recorded for listing {arg}", msg_id)
        return
    lines = [f"📋 *Grade history for {arg}*\n"]
    for i, h in enumerate(history[:10], 1):
        lines.append(f"{i}. [{h.date:%m-%d %H:%M}] {h.grade} ({h.score}/100)")
    tg_send(chat_id, "\n".join(lines), msg_id)


def process_message(chat_id: int, msg_id: int, text: str):
    parts = text.split()
    command = parts[0].split("@")[0].lower()
    args = parts[1:]

    if command in ("/start", "/help"):
        tg_send(chat_id, HELP_TEXT, msg_id)
    elif command == "/grade":
        cmd_grade(chat_id, msg_id, args[0] if args else "")
    elif command == "/compare":
        cmd_compare(chat_id, msg_id, args)
    elif command == "/price":
        cmd_price(chat_id, msg_id, args)
    elif command == "/history":
        cmd_history(chat_id, msg_id, args[0] if args else "")
    else:
        tg_send(chat_id, "Unknown command. Send /help to see what I can do.", msg_id)


def handle_update(update: dict):
    """Dispatch one getUpdates entry; non-text updates are ignored."""
    msg = update.get("message") or {}
    text = (msg.get("text") or "").strip()
    if text:
        process_message(msg["chat"]["id"], msg.get("message_id"), text)


def main():
    setup_logging()
    config.validate_bot()

    logger.info("shopgrade bot starting (Redis: %s)", "on" if store.redis else "in-memory fallback")

    me = tg_request("getMe")
    if not (me and me.get("ok")):
        logger.error("Cannot connect to Telegram")
        return
    logger.info("@%s is online", me["result"]["username"])

    offset = 0
    while True:
        try:
            reply = tg_request("getUpdates", {"timeout": POLL_TIMEOUT, "offset": offset})
            if not (reply and reply.get("ok")):
                time.sleep(5)
                continue
            for update in reply["result"]:
                offset = max(offset, update["update_id"] + 1)
                handle_update(update)
        except KeyboardInterrupt:
            logger.info("Stopped")
            break
        except Exception:
            logger.exception("Update loop error")
            time.sleep(5)


if __name__ == "__main__":
    main()
