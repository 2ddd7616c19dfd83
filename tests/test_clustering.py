"""Tests for the spatial cluster aggregator.

Covers:
- 1 m apart merges, 1 km apart stays separate, types never mix
- Representative choice (approved first, then magnitude)
- Merged magnitude, position, status and synthetic id
- Seed-relative (non-transitive) grouping
"""

from datetime import datetime

import pytest

from civicmap.clustering import CLUSTER_THRESHOLD_DEGREES, cluster_id, cluster_issues
from civicmap.schemas import IssueProjection, IssueStatus, IssueType


NOW = datetime(2026, 2, 14, 12, 0, 0)
LAT, LNG = 28.1900, 76.6100
ONE_METER = 1 / 111_000
ONE_KM = 1000 * ONE_METER


def _projection(
    issue_id: str,
    lat: float = LAT,
    lng: float = LNG,
    issue_type: IssueType = IssueType.POTHOLE,
    magnitude: int = 5,
    approved: bool = False,
    status: IssueStatus = IssueStatus.ACTIVE,
) -> IssueProjection:
    return IssueProjection(
        id=issue_id,
        type=issue_type,
        latitude=lat,
        longitude=lng,
        reported_by="reporter-1",
        created_at=NOW,
        magnitude=magnitude,
        approved=approved,
        true_votes=1,
        false_votes=0,
        resolve_votes=0,
        status=status,
        status_at=NOW,
    )


# ===================================================================
# Grouping
# ===================================================================

class TestGrouping:
    def test_one_meter_apart_merges(self) -> None:
        a = _projection("a", magnitude=4)
        b = _projection("b", lat=LAT + ONE_METER, magnitude=7)

        result = cluster_issues([a, b])
        assert len(result) == 1
        assert result[0].magnitude >= max(a.magnitude, b.magnitude)
        assert result[0].cluster_size == 2

    def test_one_kilometer_apart_stays_separate(self) -> None:
        a = _projection("a")
        b = _projection("b", lat=LAT + ONE_KM)

        result = cluster_issues([a, b])
        assert [p.id for p in result] == ["a", "b"]
        assert result == [a, b]

    def test_types_never_mix(self) -> None:
        a = _projection("a", issue_type=IssueType.POTHOLE)
        b = _projection("b", issue_type=IssueType.GARBAGE_DUMP)

        result = cluster_issues([a, b])
        assert {p.id for p in result} == {"a", "b"}

    def test_singleton_unchanged(self) -> None:
        a = _projection("a", magnitude=9)
        assert cluster_issues([a]) == [a]

    def test_empty(self) -> None:
        assert cluster_issues([]) == []

    def test_seed_relative_not_transitive(self) -> None:
        """Members only need to be in range of the seed, not of each other."""
        step = CLUSTER_THRESHOLD_DEGREES * 0.8
        seed = _projection("seed", magnitude=9)
        north = _projection("north", lat=LAT + step)
        south = _projection("south", lat=LAT - step)
        far = _projection("far", lat=LAT + 2 * step)

        result = cluster_issues([north, south, far, seed])
        merged = next(p for p in result if p.cluster_size > 1)

        assert set(merged.member_ids) == {"seed", "north", "south"}
        assert "far" in [p.id for p in result]
        assert len(result) == 2


# ===================================================================
# Merged projection
# ===================================================================

class TestMergedProjection:
    def test_approved_issue_is_representative(self) -> None:
        big = _projection("big", magnitude=9)
        trusted = _projection("trusted", lat=LAT + ONE_METER, magnitude=2, approved=True)

        merged = cluster_issues([big, trusted])[0]
        assert merged.id == cluster_id("pothole", "trusted")
        assert merged.id == "cluster_pothole_trusted"
        assert merged.approved is True
        assert merged.member_ids[0] == "trusted"

    def test_highest_magnitude_is_representative(self) -> None:
        small = _projection("small", magnitude=3)
        large = _projection("large", lat=LAT + ONE_METER, magnitude=8)

        merged = cluster_issues([small, large])[0]
        assert merged.id == "cluster_pothole_large"

    @pytest.mark.parametrize("magnitudes,expected", [
        ([5, 5], 6),
        ([9, 1, 1], 10),
        ([3, 8, 2, 2, 2], 10),
        ([2, 2, 2, 2], 4),
    ])
    def test_magnitude_grows_with_size(self, magnitudes, expected) -> None:
        issues = [
            _projection(f"i{n}", lat=LAT + n * ONE_METER * 0.1, magnitude=m)
            for n, m in enumerate(magnitudes)
        ]
        merged = cluster_issues(issues)[0]
        assert merged.magnitude == expected

    def test_position_is_mean(self) -> None:
        a = _projection("a", lat=LAT, lng=LNG)
        b = _projection("b", lat=LAT + 2 * ONE_METER, lng=LNG + 2 * ONE_METER)

        merged = cluster_issues([a, b])[0]
        assert merged.latitude == pytest.approx(LAT + ONE_METER)
        assert merged.longitude == pytest.approx(LNG + ONE_METER)

    def test_active_if_any_member_active(self) -> None:
        done = _projection("done", magnitude=9, status=IssueStatus.RESOLVED)
        open_ = _projection("open", lat=LAT + ONE_METER, status=IssueStatus.ACTIVE)

        merged = cluster_issues([done, open_])[0]
        assert merged.status == IssueStatus.ACTIVE

    def test_otherwise_representative_status(self) -> None:
        working = _projection("working", magnitude=9, status=IssueStatus.IN_PROGRESS)
        done = _projection("done", lat=LAT + ONE_METER, status=IssueStatus.RESOLVED)

        merged = cluster_issues([working, done])[0]
        assert merged.status == IssueStatus.IN_PROGRESS

    def test_inputs_not_mutated(self) -> None:
        a = _projection("a")
        b = _projection("b", lat=LAT + ONE_METER)
        cluster_issues([a, b])
        assert a.id == "a" and a.cluster_size == 1
