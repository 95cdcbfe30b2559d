# =============================================================================
# core/identifiers.py - Name normalization and base identifier building
# =============================================================================

import re
import unicodedata
from typing import Optional

MAX_IDENTIFIER_LENGTH = 20

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

# Letters that carry no canonical decomposition and would otherwise vanish
FOLDED_LETTERS = str.maketrans({
    "Ł": "L", "ł": "l",
    "Ø": "O", "ø": "o",
    "Đ": "D", "đ": "d",
    "Ð": "D", "ð": "d",
    "Ħ": "H", "ħ": "h",
    "Þ": "Th", "þ": "th",
    "Æ": "Ae", "æ": "ae",
    "Œ": "Oe", "œ": "oe",
    "ß": "ss",
    "ı": "i",
})


def normalize(text: Optional[str]) -> str:
    """
    Reduce free text to ASCII letters and digits.

    Diacritics are stripped via canonical decomposition, any remaining
    non-ASCII character is dropped, then everything outside [A-Za-z0-9]
    is removed. Never raises; blank or None input gives ''.
    """
    if not text or not str(text).strip():
        return ""

    decomposed = unicodedata.normalize("NFD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    recomposed = unicodedata.normalize("NFC", stripped)

    ascii_only = recomposed.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("", ascii_only)


def fold_letters(text: Optional[str]) -> str:
    """Spell stroke and ligature letters with their ASCII equivalents"""
    if not text:
        return ""
    return str(text).translate(FOLDED_LETTERS)


def build_base_identifier(first_name: Optional[str], last_name: Optional[str]) -> str:
    """First initial plus surname, normalized and lower-cased. Not length capped."""
    first = normalize(fold_letters(first_name))
    last = normalize(fold_letters(last_name))
    return (first[:1] + last).lower()


def truncate_identifier(value: str, limit: int = MAX_IDENTIFIER_LENGTH) -> str:
    return value[:limit]
