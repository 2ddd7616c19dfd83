"""Trust percentage for an issue, derived from its vote counters.

Scores for small samples stay near the neutral 50 and approach the raw
up-vote share as votes accumulate (Wilson score interval, z = 1.96):

    n = true + false, p = true / n
    center = p + z^2 / 2n
    spread = z * sqrt((p(1 - p) + z^2 / 4n) / n)
    denom  = 1 + z^2 / n

The interval is ((center - spread) / denom, (center + spread) / denom) and the
reported score is its midpoint, center / denom, as a rounded percentage.
The lower bound is still available from ``wilson_interval``.
"""

import math

Z_95 = 1.96
NEUTRAL_SCORE = 50


def wilson_interval(true_votes: int, false_votes: int, z: float = Z_95) -> tuple[float, float, float]:
    """Return (lower, center, upper) of the Wilson score interval as proportions.

    Raises:
        ValueError: If either count is negative or there are no votes.
    """
    if true_votes < 0 or false_votes < 0:
        raise ValueError("vote counts must be non-negative")
    n = true_votes + false_votes
    if n == 0:
        raise ValueError("no votes to estimate from")

    p_hat = true_votes / n
    z2 = z * z
    center = p_hat + z2 / (2 * n)
    spread = z * math.sqrt((p_hat * (1 - p_hat) + z2 / (4 * n)) / n)
    denom = 1 + z2 / n
    return (center - spread) / denom, center / denom, (center + spread) / denom


def confidence(true_votes: int, false_votes: int, approved: bool) -> int:
    """Map (true, false, approved) to a 0-100 trust percentage."""
    if approved:
        return 100
    if true_votes + false_votes == 0:
        return NEUTRAL_SCORE
    _, center, _ = wilson_interval(true_votes, false_votes)
    return max(0, min(100, round(100 * center)))
