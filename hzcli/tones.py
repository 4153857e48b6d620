"""Convert doubled-letter tone notation into pinyin tone marks.

Typing conventions, for a vowel ``a``:

    AA   -> ā  (tone 1)
    aa   -> á  (tone 2)
    AaA  -> ǎ  (tone 3)
    Aa   -> à  (tone 4)
"""

from typing import Optional

VOWELS = ("a", "e", "i", "o", "u", "ü")

# Marked forms indexed by tone number - 1
VOWEL_TONES = {
    "a": ("ā", "á", "ǎ", "à"),
    "e": ("ē", "é", "ě", "è"),
    "i": ("ī", "í", "ǐ", "ì"),
    "o": ("ō", "ó", "ǒ", "ò"),
    "u": ("ū", "ú", "ǔ", "ù"),
    "ü": ("ǖ", "ǘ", "ǚ", "ǜ"),
}


def tone_patterns(vowel: str) -> list[tuple[str, int]]:
    """
    Get the typed patterns for a vowel in the order they are checked.

    The triplet is checked before the upper/lower pair it contains.

    Args:
        vowel: Lower-case vowel

    Returns:
        List of (pattern, tone) tuples
    """
    upper = vowel.upper()
    return [
        (upper + upper, 1),
        (vowel + vowel, 2),
        (upper + vowel + upper, 3),
        (upper + vowel, 4),
    ]


def detect_tone(pinyin: Optional[str]) -> tuple[str, str, int] | None:
    """
    Find the first vowel written in doubled-letter notation.

    Args:
        pinyin: Typed pinyin

    Returns:
        Tuple of (vowel, pattern, tone), or None if no tone notation was found
    """
    if not pinyin:
        return None

    for vowel in VOWELS:
        for pattern, tone in tone_patterns(vowel):
            if pattern in pinyin:
                return vowel, pattern, tone
    return None


def normalize_tone(pinyin: Optional[str]) -> str:
    """
    Replace doubled-letter tone notation with the marked vowel.

    Only the first vowel (scanning a, e, i, o, u, ü) that matches a pattern
    is converted; every occurrence of that pattern is replaced. Input
    without tone notation is returned unchanged.

    Args:
        pinyin: Typed pinyin, e.g. "nIiI haAo"

    Returns:
        Pinyin with tone marks, or "" for empty input
    """
    if not pinyin:
        return ""

    detected = detect_tone(pinyin)
    if detected is None:
        return pinyin

    vowel, pattern, tone = detected
    return pinyin.replace(pattern, VOWEL_TONES[vowel][tone - 1])
