"""
Tests for compute.py: status classification, leader normalisation, merge & rank,
and the pandas trend summaries. Pure functions only, no I/O.
"""

import pytest

from compute import (
    DEFAULT_STATUS,
    EntityAggregate,
    LeaderRecord,
    _dig,
    classify_status,
    extract_leaders,
    extract_season_value,
    is_plausible,
    merge_period_leaders,
    normalize_leaders,
    rank_aggregates,
    top_per_season,
    trajectory_chart,
    trend_summaries,
)
from conftest import leader, leaders_payload, season_stat_payload
from fallback import MissingDataError
from stats import get_stat

HR = get_stat("homeRuns")
AVG = get_stat("avg")
ERA = get_stat("era")


def rec(name, value, pid=None, season=2024):
    return LeaderRecord(player=name, player_id=pid, team="NYY", team_id=147,
                        value=value, stat="homeRuns", season=season)


# ── Status classifier ─────────────────────────────────────────────────────────
# Rules in priority order; each row documents which rule wins.

CLASSIFIER_TABLE = [
    # index, player,          value, season, label
    (0, "Barry Bonds",        73,    2001,   "All-Time Record"),      # index 0 beats everything
    (0, "Babe Ruth",          60,    1927,   "All-Time Record"),      # ... including a named player
    (6, "Aaron Judge",        62,    2022,   "AL Record"),            # named override beats 2020+ era
    (3, "Aaron Judge",        52,    2017,   DEFAULT_STATUS),         # override needs the exact value
    (7, "Roger Maris",        61,    1961,   "AL Record (Former)"),
    (1, "Roger Maris",        61,    1961,   "AL Record (Former)"),
    (8, "Babe Ruth",          60,    1927,   "Historical Legend"),
    (1, "Mark McGwire",       70,    1998,   "NL Record (Former)"),   # 1998-2001 at index 1
    (2, "Sammy Sosa",         66,    1998,   "Active Era"),           # 1998-2001 elsewhere
    (5, "Sammy Sosa",         64,    2001,   "Active Era"),
    (4, "Shohei Ohtani",      54,    2024,   "Modern Era"),
    (4, "Pete Alonso",        53,    2019,   DEFAULT_STATUS),
    (9, "Hack Wilson",        56,    1930,   DEFAULT_STATUS),
    (9, "Unknown",            40,    None,   DEFAULT_STATUS),
]


@pytest.mark.parametrize("index, player, value, season, label", CLASSIFIER_TABLE)
def test_classify_status(index, player, value, season, label):
    assert classify_status(index, player, value, season) == label


# Named-player and 1998-2001 rules are home-run history; other stats only get
# the record-holder, 2020+ and default labels.
OTHER_STAT_TABLE = [
    # index, player,         value, season, stat,          label
    (0, "Hack Wilson",       191,   1930,   "rbi",         "All-Time Record"),
    (1, "Babe Ruth",         171,   1921,   "rbi",         DEFAULT_STATUS),
    (1, "Sammy Sosa",        160,   2001,   "rbi",         DEFAULT_STATUS),
    (6, "Aaron Judge",       62,    2022,   "saves",       "Modern Era"),
    (3, "Roger Maris",       142,   1962,   "rbi",         DEFAULT_STATUS),
    (2, "Josh Hader",        41,    2021,   "saves",       "Modern Era"),
]


@pytest.mark.parametrize("index, player, value, season, stat_key, label", OTHER_STAT_TABLE)
def test_classify_status_scoped_by_stat(index, player, value, season, stat_key, label):
    assert classify_status(index, player, value, season, stat_key) == label


# ── Normalisation ─────────────────────────────────────────────────────────────

class TestNormalizeLeaders:
    def test_maps_fields_and_ranks(self):
        rows = [leader("Aaron Judge", 58, pid=592450), leader("Cal Raleigh", 60, pid=663728, team="SEA")]
        records = normalize_leaders(rows, HR, season=2025)
        assert [r.rank for r in records] == [1, 2]
        first = records[0]
        assert first.player == "Aaron Judge"
        assert first.player_id == 592450
        assert first.team == "NYY"
        assert first.team_id == 147
        assert first.value == 58
        assert first.season == 2025
        assert first.league == "AL"
        assert first.status is None

    def test_drops_rows_without_name_or_value(self):
        rows = [
            {"person": {"id": 1}, "value": "40"},
            leader("Valid One", 39, pid=2),
            leader("Bad Value", "n/a", pid=3),
            None,
            leader("Valid Two", 38, pid=4),
        ]
        records = normalize_leaders(rows, HR, season=2024)
        assert [(r.player, r.rank) for r in records] == [("Valid One", 1), ("Valid Two", 2)]

    def test_ratio_stat_keeps_full_precision(self):
        records = normalize_leaders([leader("Luis Arraez", ".3539")], AVG, season=2023)
        assert records[0].value == pytest.approx(0.3539)
        assert isinstance(records[0].value, float)

    def test_row_season_overrides_default(self):
        records = normalize_leaders([leader("Barry Bonds", 73, season=2001)], HR, season=2024)
        assert records[0].season == 2001

    def test_team_without_abbreviation(self):
        row = leader("Julio Rodriguez", 32)
        row["team"] = {"id": 136, "name": "Seattle Mariners"}
        assert normalize_leaders([row], HR)[0].team == "SEA"

    def test_classify_attaches_status(self):
        rows = [leader("Barry Bonds", 73, season=2001), leader("Mark McGwire", 70, season=1998)]
        records = normalize_leaders(rows, HR, classify=True)
        assert [r.status for r in records] == ["All-Time Record", "NL Record (Former)"]

    def test_classify_uses_the_stat_of_the_list(self):
        rows = [leader("Hack Wilson", 191, season=1930), leader("Babe Ruth", 171, season=1921)]
        records = normalize_leaders(rows, get_stat("rbi"), classify=True)
        assert [r.status for r in records] == ["All-Time Record", DEFAULT_STATUS]

    def test_record_round_trips_through_dict(self):
        record = normalize_leaders([leader("Aaron Judge", 62, pid=592450)], HR, season=2022)[0]
        assert LeaderRecord.from_dict(record.to_dict()) == record


class TestExtraction:
    def test_extract_leaders(self):
        rows = extract_leaders(leaders_payload(leader("A", 1)))
        assert rows[0]["person"]["fullName"] == "A"

    @pytest.mark.parametrize("payload", [
        {},
        {"leagueLeaders": []},
        {"leagueLeaders": [{}]},
        {"leagueLeaders": [{"leaders": None}]},
        None,
    ])
    def test_missing_container_raises(self, payload):
        with pytest.raises(MissingDataError):
            extract_leaders(payload)

    def test_extract_season_value(self):
        payload = season_stat_payload(2023, homeRuns=37, rbi=100)
        assert extract_season_value(payload, HR) == {"season": 2023, "value": 37}

    def test_extract_season_value_missing_stat_is_zero(self):
        payload = season_stat_payload(2023, rbi=100)
        assert extract_season_value(payload, HR) == {"season": 2023, "value": 0}

    @pytest.mark.parametrize("payload", [
        {},
        {"people": []},
        {"people": [{"stats": []}]},
        {"people": [{"stats": [{"splits": []}]}]},
    ])
    def test_extract_season_value_no_split(self, payload):
        assert extract_season_value(payload, HR) is None

    def test_dig_is_null_safe(self):
        assert _dig({"a": [{"b": 1}]}, "a", 0, "b") == 1
        assert _dig({"a": [{"b": 1}]}, "a", 3, "b") is None
        assert _dig({"a": "str"}, "a", "b") is None
        assert _dig(None, "a") is None


class TestPlausibility:
    def test_within_ceiling(self):
        assert is_plausible([rec("Barry Bonds", 73)], HR)

    def test_career_totals_are_implausible(self):
        assert not is_plausible([rec("Barry Bonds", 762)], HR)

    def test_stat_without_ceiling(self):
        assert is_plausible([rec("Anyone", 99.0)], ERA)


# ── Merge & rank ──────────────────────────────────────────────────────────────

class TestMergeAndRank:
    def test_merge_keeps_first_id_and_sums(self):
        merged = merge_period_leaders({
            2024: [rec("X", 10, pid=1, season=2024)],
            2023: [rec("X", 5, pid=None, season=2023), rec("Y", 7, pid=2, season=2023)],
        })
        assert merged["X"] == EntityAggregate("X", 1, 15, 2, (2023, 2024))
        assert merged["Y"] == EntityAggregate("Y", 2, 7, 1, (2023,))

        ranked = rank_aggregates(merged.values(), limit=10)
        assert [a.player for a in ranked] == ["X", "Y"]

    def test_later_id_never_overwrites(self):
        merged = merge_period_leaders({
            2024: [rec("X", 10, pid=1)],
            2023: [rec("X", 5, pid=99)],
        })
        assert merged["X"].player_id == 1

    def test_id_found_in_later_period(self):
        merged = merge_period_leaders({
            2024: [rec("X", 10, pid=None)],
            2023: [rec("X", 5, pid=7)],
        })
        assert merged["X"].player_id == 7

    def test_entity_without_id_is_excluded_from_ranking(self):
        merged = merge_period_leaders({
            2024: [rec("X", 10, pid=1)],
            2023: [rec("Y", 70, pid=None)],
        })
        assert merged["Y"].total == 70
        assert [a.player for a in rank_aggregates(merged.values(), limit=10)] == ["X"]

    def test_ties_broken_by_name(self):
        aggregates = [
            EntityAggregate("Zed", 3, 40, 1),
            EntityAggregate("Abe", 1, 40, 1),
            EntityAggregate("Mia", 2, 50, 1),
        ]
        assert [a.player for a in rank_aggregates(aggregates, limit=10)] == ["Mia", "Abe", "Zed"]

    def test_limit(self):
        aggregates = [EntityAggregate(f"P{i}", i, i, 1) for i in range(1, 6)]
        assert [a.total for a in rank_aggregates(aggregates, limit=2)] == [5, 4]

    def test_merge_is_order_independent(self):
        periods = {
            2024: [rec("X", 10, pid=1, season=2024)],
            2023: [rec("X", 5, pid=1, season=2023)],
        }
        forward = merge_period_leaders(periods)
        backward = merge_period_leaders(dict(reversed(list(periods.items()))))
        assert forward == backward

    def test_aggregate_to_dict(self):
        assert EntityAggregate("X", 1, 15, 2, (2023, 2024)).to_dict() == {
            "name": "X", "id": 1, "total": 15, "appearances": 2, "seasons": [2023, 2024],
        }

    def test_top_per_season_omits_empty(self):
        top = top_per_season({
            2024: [rec("A", 3), rec("B", 2), rec("C", 1)],
            2023: [],
        }, per_season=2)
        assert list(top) == [2024]
        assert [r.player for r in top[2024]] == ["A", "B"]


# ── Trends ────────────────────────────────────────────────────────────────────

class TestTrends:
    TRAJECTORIES = {
        "Aaron Judge": [{"season": 2024, "value": 58}, {"season": 2023, "value": 37}],
        "Pete Alonso": [{"season": 2023, "value": 46}, {"season": 2024, "value": 34}],
        "Cal Raleigh": [{"season": 2024, "value": 34}],
    }

    def test_summaries_sorted_by_total(self):
        summaries = trend_summaries(self.TRAJECTORIES)
        assert [s["player"] for s in summaries] == ["Aaron Judge", "Pete Alonso", "Cal Raleigh"]
        judge = summaries[0]
        assert judge["total"] == 95
        assert judge["per_season"] == 47.5
        assert judge["peak"] == 58
        assert judge["seasons"] == 2
        assert [p["season"] for p in judge["points"]] == [2023, 2024]

    def test_summaries_are_json_safe(self):
        for s in trend_summaries(self.TRAJECTORIES):
            assert type(s["total"]) in (int, float)
            assert type(s["peak"]) in (int, float)

    def test_chart_rows_by_season(self):
        chart = trajectory_chart(self.TRAJECTORIES)
        assert [row["season"] for row in chart] == [2023, 2024]
        assert chart[1]["Cal Raleigh"] == 34
        assert chart[0]["Cal Raleigh"] is None
        assert chart[0]["Aaron Judge"] == 37

    def test_empty(self):
        assert trend_summaries({}) == []
        assert trajectory_chart({}) == []
