"""
Referral bot - helper utilities

Contains:
- date display helpers
- integer parsing for amounts and ids typed into the chat
- splitting long listings into Telegram-sized messages

All functions here are pure and sync.
"""

from datetime import datetime
import re
from typing import Iterable, List, Optional
import logging

logger = logging.getLogger("refbot.helpers")

# Telegram rejects text messages longer than this
MESSAGE_LIMIT = 4096

# amounts, balances and ids are 32-bit Integer columns
DB_INT_MAX = 2**31 - 1

TAG_RE = re.compile(r"<[^>]+>")


def format_date(dt: Optional[datetime]) -> str:
    """dd/mm/yyyy, or N/A when unknown."""
    if not dt:
        return "N/A"
    return dt.strftime("%d/%m/%Y")


def parse_int(text: Optional[str]) -> Optional[int]:
    """Parse a whole number typed by a human; None when it isn't one."""
    if text is None:
        return None
    value = text.strip().replace(",", "")
    if value.startswith(("+", "-")):
        sign, digits = value[0], value[1:]
    else:
        sign, digits = "", value
    # str.isdigit() also accepts superscripts and other scripts' digits
    if not (digits.isascii() and digits.isdigit()):
        return None
    return int(sign + digits)


def in_db_range(value: Optional[int]) -> bool:
    """True for a positive number that fits an Integer column."""
    return value is not None and 0 < value <= DB_INT_MAX


def _strip_tags(text: str) -> str:
    return TAG_RE.sub("", text)


def _slice_oversized(block: str, limit: int) -> List[str]:
    """
    Cut a block longer than `limit` into valid HTML pieces: on line breaks
    where possible, otherwise with the markup removed and never inside an
    entity like &amp;.
    """
    pieces: List[str] = []
    while len(block) > limit:
        cut = block.rfind("\n", 0, limit) + 1
        if not cut:
            block = _strip_tags(block)
            if len(block) <= limit:
                break
            cut = limit
            amp = block.rfind("&", 0, cut)
            if amp > block.rfind(";", 0, cut):
                cut = amp or limit
        pieces.append(block[:cut])
        block = block[cut:]
    if block:
        pieces.append(block)
    return pieces


def split_message(blocks: Iterable[str], header: str = "", footer: str = "", limit: int = MESSAGE_LIMIT) -> List[str]:
    """
    Pack text blocks into as few messages as possible, each at most `limit`
    characters. Blocks are kept whole unless a single block is longer than
    the limit, in which case it is cut by _slice_oversized.
    """
    chunks: List[str] = []
    current = header
    for block in list(blocks) + ([footer] if footer else []):
        if len(current) + len(block) <= limit:
            current += block
            continue
        if current:
            chunks.append(current)
        pieces = _slice_oversized(block, limit) if len(block) > limit else [block]
        chunks.extend(pieces[:-1])
        current = pieces[-1] if pieces else ""
    if current:
        chunks.append(current)
    return chunks
