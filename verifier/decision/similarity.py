"""String similarity used for identity matching."""

from rapidfuzz.distance import Levenshtein


def name_similarity(first: str | None, second: str | None) -> float:
    """Normalized edit-distance similarity between two names.

    Both names are lower-cased and trimmed, then scored as
    ``(max_len - levenshtein) / max_len``. Identical names score 1.0 and a
    missing or empty name scores 0.0.

    Args:
        first: Name read from the ID card.
        second: Name the student registered with.

    Returns:
        Similarity in [0, 1].
    """
    if not first or not second:
        return 0.0

    s1 = first.lower().strip()
    s2 = second.lower().strip()
    if s1 == s2:
        return 1.0

    longest = max(len(s1), len(s2))
    distance = Levenshtein.distance(s1, s2)
    return (longest - distance) / longest
