"""
Token Estimator - Display-only size label for serialized selections

Heuristic tuned for JSON: words, structural characters and numerals each
contribute. Never use it to truncate or otherwise decide on content.
"""

import math
import re

WORD_WEIGHT = 1.3
SPECIAL_CHAR_WEIGHT = 0.3
NUMBER_WEIGHT = 0.5

_SPECIAL_CHARS = re.compile(r'[{}\[\]",:]')
# ASCII digits only, unlike re's Unicode-aware \d
_NUMBERS = re.compile(r"[0-9]+(?:\.[0-9]+)?")


def estimate_tokens(text: str) -> int:
    """Estimate the token cost of `text`; 0 for empty text, otherwise at least 1."""
    if not text:
        return 0
    word_count = len(text.split())
    special_chars = len(_SPECIAL_CHARS.findall(text))
    numbers = len(_NUMBERS.findall(text))
    weighted = word_count * WORD_WEIGHT + special_chars * SPECIAL_CHAR_WEIGHT + numbers * NUMBER_WEIGHT
    return max(1, int(math.floor(weighted + 0.5)))


def format_token_count(count: int) -> str:
    return f"{count} tokens"
