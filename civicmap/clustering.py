"""Merge near-duplicate reports of the same type into one display marker.

Grouping is greedy and seed-relative: an issue joins a group when it lies
within the radius of the group's seed, not of every member. Two issues that
are each in range of the seed but not of each other still share a group, and
a chain of issues spaced just under the radius is not merged end to end.
"""

import math
from typing import Iterable

from civicmap.schemas import IssueProjection, IssueStatus

# ~3 m: 1 degree of latitude is ~111 km
CLUSTER_THRESHOLD_DEGREES = 0.00003
MAX_MAGNITUDE = 10


def cluster_id(issue_type: str, representative_id: str) -> str:
    return f"cluster_{issue_type}_{representative_id}"


def _priority(issue: IssueProjection) -> tuple[int, int]:
    # approved first, then larger magnitude; sorted() is stable for ties
    return (0 if issue.approved else 1, -issue.magnitude)


def _within(seed: IssueProjection, other: IssueProjection, threshold: float) -> bool:
    d_lat = seed.latitude - other.latitude
    d_lng = seed.longitude - other.longitude
    return d_lat * d_lat + d_lng * d_lng <= threshold * threshold


def _merge(issue_type: str, group: list[IssueProjection]) -> IssueProjection:
    representative = group[0]
    size = len(group)
    max_magnitude = max(member.magnitude for member in group)
    any_active = any(member.status == IssueStatus.ACTIVE for member in group)

    return representative.model_copy(update={
        "id": cluster_id(issue_type, representative.id),
        "latitude": math.fsum(member.latitude for member in group) / size,
        "longitude": math.fsum(member.longitude for member in group) / size,
        "magnitude": min(MAX_MAGNITUDE, max_magnitude + size // 2),
        "status": IssueStatus.ACTIVE if any_active else representative.status,
        "approved": representative.approved,
        "cluster_size": size,
        "member_ids": [member.id for member in group],
    })


def _cluster_type(
    issue_type: str,
    issues: list[IssueProjection],
    threshold: float,
) -> list[IssueProjection]:
    ordered = sorted(issues, key=_priority)
    visited: set[str] = set()
    result: list[IssueProjection] = []

    for seed in ordered:
        if seed.id in visited:
            continue
        visited.add(seed.id)
        group = [seed]

        for other in ordered:
            if other.id in visited:
                continue
            if _within(seed, other, threshold):
                group.append(other)
                visited.add(other.id)

        result.append(seed if len(group) == 1 else _merge(issue_type, group))

    return result


def cluster_issues(
    issues: Iterable[IssueProjection],
    threshold: float = CLUSTER_THRESHOLD_DEGREES,
) -> list[IssueProjection]:
    """Cluster each issue type independently; singletons pass through unchanged.

    Types are emitted in order of first appearance in ``issues``.
    """
    by_type: dict[str, list[IssueProjection]] = {}
    for issue in issues:
        by_type.setdefault(issue.type.value, []).append(issue)

    clustered: list[IssueProjection] = []
    for issue_type, members in by_type.items():
        clustered.extend(_cluster_type(issue_type, members, threshold))
    return clustered