from numbers import Real

# (upper bound inclusive, points)
SCORE_TIERS = (
    (50, 100),
    (100, 80),
    (200, 60),
    (300, 40),
    (500, 20),
)
FLOOR_SCORE = 10


def score(accuracy_ms) -> int:
    """Map a timing error to points.

    Lower error scores higher or equal; anything past the last tier earns
    the floor score. Used for color and font rounds alike.
    """
    if isinstance(accuracy_ms, bool) or not isinstance(accuracy_ms, Real):
        raise ValueError(f"accuracy must be a number, got {accuracy_ms!r}")
    if accuracy_ms < 0:
        raise ValueError(f"accuracy must be non-negative, got {accuracy_ms}")
    for upper, points in SCORE_TIERS:
        if accuracy_ms <= upper:
            return points
    return FLOOR_SCORE
