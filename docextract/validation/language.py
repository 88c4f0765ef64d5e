"""Script-based language family tagging for extracted text.

Detection is by Unicode block only: a family is reported when at least
one character of the text falls inside one of its ranges.
"""

UNKNOWN_LANGUAGE = "unknown"

# Reported in this order when several families match.
SCRIPT_RANGES: dict[str, tuple[tuple[int, int], ...]] = {
    "arabic": (
        (0x0600, 0x06FF),
        (0x0750, 0x077F),
        (0x08A0, 0x08FF),
        (0xFB50, 0xFDFF),
        (0xFE70, 0xFEFF),
    ),
    "chinese": ((0x3400, 0x4DBF), (0x4E00, 0x9FFF), (0xF900, 0xFAFF)),
    "japanese": ((0x3040, 0x309F), (0x30A0, 0x30FF)),
    "korean": ((0x1100, 0x11FF), (0x3130, 0x318F), (0xAC00, 0xD7AF)),
    "cyrillic": ((0x0400, 0x04FF), (0x0500, 0x052F)),
    "hebrew": ((0x0590, 0x05FF),),
    "thai": ((0x0E00, 0x0E7F),),
    "devanagari": ((0x0900, 0x097F),),
    "latin": (
        (0x0041, 0x005A),
        (0x0061, 0x007A),
        (0x00C0, 0x00D6),
        (0x00D8, 0x00F6),
        (0x00F8, 0x024F),
        (0x1E00, 0x1EFF),
    ),
}


def _in_ranges(code_point: int, ranges: tuple[tuple[int, int], ...]) -> bool:
    return any(low <= code_point <= high for low, high in ranges)


def script_families(text: str) -> list[str]:
    """Return every script family present in ``text``, in table order."""
    code_points = {ord(char) for char in text if not char.isspace()}
    return [
        family
        for family, ranges in SCRIPT_RANGES.items()
        if any(_in_ranges(cp, ranges) for cp in code_points)
    ]


def contains_script(text: str, family: str) -> bool:
    """Whether ``text`` holds at least one character of ``family``.

    Raises:
        KeyError: If ``family`` is not a known script family.
    """
    ranges = SCRIPT_RANGES[family]
    return any(_in_ranges(ord(char), ranges) for char in text)


def detect_languages(text: str) -> str:
    """Tag text with the script families it contains.

    Args:
        text: Extracted text.

    Returns:
        Comma-joined family names such as ``"arabic, latin"``, or
        ``"unknown"`` when no known script is present.
    """
    families = script_families(text)
    if not families:
        return UNKNOWN_LANGUAGE
    return ", ".join(families)
