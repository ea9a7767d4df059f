"""String similarity used by the fuzzy catalog fallback."""
from rapidfuzz.distance import Levenshtein


def levenshtein(a: str, b: str) -> int:
    """Minimum number of single-character edits turning a into b."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Score two already-normalized titles in [0.0, 1.0].

    - equal → 1.0
    - one contains the other → len(shorter) / len(longer)
    - otherwise → 1 - levenshtein / len(longer)

    Examples:
        >>> similarity("counter-strike 2", "counter-strike")
        0.875
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    longer = max(len(a), len(b))
    if a in b or b in a:
        return min(len(a), len(b)) / longer

    return 1.0 - levenshtein(a, b) / longer
