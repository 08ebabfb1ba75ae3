"""
String similarity for company-name matching.
"""
from rapidfuzz.distance import Levenshtein

DEFAULT_MATCH_THRESHOLD = 0.85


def similarity(a: str, b: str) -> float:
    """
    Edit-distance similarity in [0, 1]: (longest - distance) / longest.

    Symmetric, and 1.0 for identical strings (including two empty strings).
    """
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    distance = Levenshtein.distance(a, b)
    return (longest - distance) / longest

