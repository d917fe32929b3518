import unicodedata

from mneme.domain.constants import DEFAULT_FUZZY_THRESHOLD

# ---------- Normalization ----------


def normalize(text: str | None) -> str:
    """Canonical form used for every answer comparison.

    NFKC, lower-case, keep only letters/digits/whitespace, collapse runs of
    whitespace, trim. Total: None and non-strings are stringified first.
    """
    if text is None:
        return ""
    s = unicodedata.normalize("NFKC", str(text)).lower()
    kept = "".join(ch for ch in s if ch.isalnum() or ch.isspace())
    return " ".join(kept.split())


def tokenize(text: str | None) -> list[str]:
    """Whitespace tokens of the normalized text."""
    norm = normalize(text)
    return norm.split(" ") if norm else []


# ---------- Edit distance ----------


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance, two-row dynamic programming."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string on the inner loop
    if len(a) < len(b):
        a, b = b, a

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr[j] = min(
                prev[j] + 1,  # deletion
                curr[j - 1] + 1,  # insertion
                prev[j - 1] + cost,  # substitution
            )
        prev = curr
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / longest length, over already-normalized strings."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / max_len


def fuzzy_match(
    target: str | None, user_input: str | None, threshold: float = DEFAULT_FUZZY_THRESHOLD
) -> bool:
    norm_target = normalize(target)
    norm_input = normalize(user_input)

    if norm_target == norm_input:
        return True

    return similarity(norm_target, norm_input) >= threshold
