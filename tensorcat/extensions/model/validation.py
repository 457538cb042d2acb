import operator
from typing import Optional, Sequence


def permutation_violation(permutation: Sequence[int]) -> Optional[str]:
    """
    Returns a description of why the given sequence is not a permutation of
    [0, 1, ..., N-1] (where N is its length), or None if it is one.
    Duplicates and out-of-range values are both found in a single pass.
    """
    size = len(permutation)
    seen = [False] * size
    for entry in permutation:
        if isinstance(entry, bool):
            return f"permutation entry {entry!r} is not an integer"
        try:
            index = operator.index(entry)
        except TypeError:
            return f"permutation entry {entry!r} is not an integer"
        if index < 0 or index >= size:
            return f"permutation entry {index} is outside of [0, {size - 1}]"
        if seen[index]:
            return f"permutation entry {index} is repeated"
        seen[index] = True
    return None
