"""Text helpers: slugs and order numbers."""

import re

_NON_WORD = re.compile(r"[^\w\s\u0E00-\u0E7F-]", re.UNICODE)
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(text: str) -> str:
    """Lower-case `text`, drop punctuation and join words with hyphens.

    Word characters from any script are kept so Thai or accented names
    still produce a usable slug.
    """
    s = _NON_WORD.sub("", (text or "").strip().lower())
    s = _SEPARATORS.sub("-", s)
    return s.strip("-")


def format_order_number(year: int, sequence: int) -> str:
    return f"ORD-{year}-{sequence:06d}"


def normalise_code(code: str) -> str:
    return (code or "").strip().upper()
