"""Tests for time-window clustering of arrivals into transport waves."""

from __future__ import annotations

from datetime import date, time

from transport import ClusterKey, TimeWindowClusterer, TransportConfig

DAY = date(2025, 6, 15)


class TestHourBucket:
    def test_truncates_to_hour(self):
        assert TimeWindowClusterer.hour_bucket(time(14, 37)) == "14"
        assert TimeWindowClusterer.hour_bucket(time(9, 5)) == "09"


class TestCluster:
    def test_same_date_hour_location_share_a_wave(self, make_group):
        result = TimeWindowClusterer().cluster([
            make_group("fg1", 2, arrival_time="14:05"),
            make_group("fg2", 3, arrival_time="14:55"),
            make_group("fg3", 1, arrival_time="15:00"),
        ])
        assert len(result.waves) == 2
        wave = result.waves[ClusterKey(DAY, "14", "airport")]
        assert [g.id for g in wave.groups] == ["fg1", "fg2"]
        assert wave.pickup_time_label == "14:00"
        assert wave.pickup_time == time(14, 0)
        assert wave.passenger_count == 5

    def test_locations_compare_normalized(self, make_group):
        result = TimeWindowClusterer().cluster([
            make_group("fg1", 2, location=" Main  Airport"),
            make_group("fg2", 2, location="main airport"),
        ])
        assert len(result.waves) == 1
        assert result.ordered()[0].pickup_location == "Main  Airport"

    def test_exact_location_matching_when_normalization_off(self, make_group):
        clusterer = TimeWindowClusterer(TransportConfig(normalize_locations=False))
        result = clusterer.cluster([
            make_group("fg1", 2, location="Airport"),
            make_group("fg2", 2, location="airport"),
        ])
        assert len(result.waves) == 2

    def test_groups_missing_date_or_time_are_excluded(self, make_group):
        result = TimeWindowClusterer().cluster([
            make_group("fg1", 2, arrival_time=None),
            make_group("fg2", 2, arrival_date=None),
            make_group("fg3", 2),
        ])
        assert [g.id for g in result.excluded] == ["fg1", "fg2"]
        assert len(result.waves) == 1

    def test_missing_location_uses_default_pickup(self, make_group):
        result = TimeWindowClusterer().cluster([
            make_group("fg1", 2, location=None),
            make_group("fg2", 2, location="Airport"),
        ])
        assert len(result.waves) == 1
        assert result.ordered()[0].pickup_location == "Airport"

    def test_waves_ordered_by_key(self, make_group):
        result = TimeWindowClusterer().cluster([
            make_group("fg1", 2, arrival_date=date(2025, 6, 16), arrival_time="08:00"),
            make_group("fg2", 2, arrival_time="16:00"),
            make_group("fg3", 2, arrival_time="09:30", location="Train Station"),
            make_group("fg4", 2, arrival_time="09:10"),
        ])
        keys = [w.key for w in result.ordered()]
        assert keys == [
            ClusterKey(DAY, "09", "airport"),
            ClusterKey(DAY, "09", "train station"),
            ClusterKey(DAY, "16", "airport"),
            ClusterKey(date(2025, 6, 16), "08", "airport"),
        ]
