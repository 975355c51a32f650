"""Deterministic emoji avatars so every user gets the same face everywhere."""

from __future__ import annotations

from typing import Dict, List, Tuple

# (emoji, display name); the order is part of the contract, ids hash into it.
_AVATARS: List[Tuple[str, str]] = [
    ("\U0001F469\u200d\U0001F4BC", "Alice"),
    ("\U0001F468\u200d\U0001F4BC", "Bob"),
    ("\U0001F469\u200d\U0001F52C", "Diana"),
    ("\U0001F468\u200d\U0001F52C", "Carl"),
    ("\U0001F469\u200d\U0001F4BB", "Eva"),
    ("\U0001F468\u200d\U0001F4BB", "Frank"),
    ("\U0001F469\u200d\U0001F3A8", "Grace"),
    ("\U0001F468\u200d\U0001F3A8", "Henry"),
    ("\U0001F469\u200d\U0001F3EB", "Iris"),
    ("\U0001F468\u200d\U0001F3EB", "Jack"),
    ("\U0001F469\u200d⚕️", "Kate"),
    ("\U0001F468\u200d⚕️", "Leo"),
    ("\U0001F469\u200d\U0001F33E", "Maya"),
    ("\U0001F468\u200d\U0001F33E", "Nick"),
    ("\U0001F469\u200d\U0001F373", "Olive"),
    ("\U0001F468\u200d\U0001F373", "Paul"),
    ("\U0001F469\u200d\U0001F527", "Quinn"),
    ("\U0001F468\u200d\U0001F527", "Ryan"),
    ("\U0001F469\u200d✈️", "Sophia"),
    ("\U0001F468\u200d✈️", "Tom"),
    ("\U0001F469\u200d\U0001F680", "Uma"),
    ("\U0001F468\u200d\U0001F680", "Victor"),
    ("\U0001F469\u200d⚖️", "Wendy"),
    ("\U0001F468\u200d⚖️", "Xavier"),
    ("\U0001F9D1\u200d\U0001F4BC", "Yuki"),
    ("\U0001F9D1\u200d\U0001F52C", "Zara"),
    ("\U0001F9D1\u200d\U0001F4BB", "Alex"),
    ("\U0001F9D1\u200d\U0001F3A8", "Blake"),
    ("\U0001F9D1\u200d\U0001F3EB", "Casey"),
    ("\U0001F9D1\u200d⚕️", "Drew"),
]

EMOJIS: List[str] = [emoji for emoji, _ in _AVATARS]
_NAMES: Dict[str, str] = dict(_AVATARS)

ANONYMOUS_EMOJI = "\U0001F464"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def string_hash(text: str) -> int:
    """
    Signed 32-bit ``hash * 31 + code_unit`` over UTF-16 code units.

    Kept bit-for-bit compatible with the web client so a user keeps the same
    avatar on both.
    """
    encoded = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = _to_int32((value << 5) - value + unit)
    return value


def user_emoji(user_id: str) -> str:
    return EMOJIS[abs(string_hash(user_id)) % len(EMOJIS)]


def emoji_name(emoji: str) -> str:
    return _NAMES.get(emoji, "User")


def user_label(user_id: str) -> str:
    """Emoji plus display name, e.g. for "Recommended by" lines."""
    emoji = user_emoji(user_id)
    return f"{emoji} {emoji_name(emoji)}"
