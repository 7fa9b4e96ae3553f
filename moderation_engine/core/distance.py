def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Edit distance between two strings with unit insert/delete/substitute costs.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Minimum number of single-character edits turning s1 into s2
    """
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i] + [0] * len(s2)
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost  # substitution
            )
        previous = current

    return previous[-1]
