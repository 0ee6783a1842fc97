import re
import unicodedata

_PUNCTUATION_RE = re.compile(r"[.,'\"‘’“”]")

# Two-word keys are checked before single words.
ADDRESS_ABBREVIATIONS = {
    "n e": "northeast",
    "n w": "northwest",
    "s e": "southeast",
    "s w": "southwest",
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "ne": "northeast",
    "nw": "northwest",
    "se": "southeast",
    "sw": "southwest",
    "st": "street",
    "rd": "road",
    "ave": "avenue",
    "blvd": "boulevard",
    "ln": "lane",
    "dr": "drive",
    "ct": "court",
    "pl": "place",
    "sq": "square",
    "pkwy": "parkway",
    "cir": "circle",
    "hwy": "highway",
    "apt": "apartment",
    "bldg": "building",
    "ste": "suite",
    "unit": "unit",
}


def _strip_marks(s: str) -> str:
    decomposed = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(s: str | None) -> str:
    """Canonical comparison form: no diacritics or quote/period/comma
    punctuation, single spaces, trimmed, lower-case.
    """
    if not s:
        return ""
    # Lower-casing first keeps the result stable under a second pass
    # (some code points only decompose after case mapping).
    s = _strip_marks(s.lower()).lower()
    s = _PUNCTUATION_RE.sub("", s)
    return " ".join(s.split())


def expand_abbreviations(normalized: str) -> str:
    words = normalized.split()
    result = []
    i = 0
    while i < len(words):
        if i + 1 < len(words):
            pair = f"{words[i]} {words[i + 1]}"
            if pair in ADDRESS_ABBREVIATIONS:
                result.append(ADDRESS_ABBREVIATIONS[pair])
                i += 2
                continue
        result.append(ADDRESS_ABBREVIATIONS.get(words[i], words[i]))
        i += 1
    return " ".join(result)


def normalize_address(address: str | None) -> str:
    return expand_abbreviations(normalize_text(address))


def normalize_name(name: str | None) -> str:
    return normalize_text(name)


def normalize_reference(code: str | None) -> str:
    """Reference codes compare trimmed and case-insensitively, nothing more."""
    if code is None:
        return ""
    return str(code).strip().lower()
