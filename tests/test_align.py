"""Tests for the rename/filter, outer join and aggregation stages."""

from datetime import date

import pytest

from cryptostocks.pipeline.align import (aggregate_by_date, align_sources,
                                         full_outer_join, qualify_records)
from cryptostocks.types import (JoinedRecord, NormalizedRecord, PricePoint,
                                QualifiedRecord, SourceId, YearRange)

APPLE = SourceId("apple")
BITCOIN = SourceId("bitcoin")
ETHEREUM = SourceId("ethereum")


def _qualified(
    source: SourceId,
    day: date | None,
    high: float | None,
    low: float | None = None,
) -> QualifiedRecord:
    return QualifiedRecord(
        source=source,
        date=day,
        year=day.year if day is not None else None,
        high=high,
        low=low if low is not None else (high - 1 if high is not None else None),
    )


class TestQualifyRecords:
    """Tests for source tagging and the year filter."""

    def test_tags_rows_with_source(self) -> None:
        records = [NormalizedRecord(date=date(2020, 1, 1), year=2020, high=5.0, low=4.0)]
        result = qualify_records(records, APPLE, YearRange())

        assert len(result) == 1
        assert result[0].source == APPLE
        assert result[0].qualified_prices() == {"apple_high": 5.0, "apple_low": 4.0}

    def test_year_filter_boundaries(self) -> None:
        """2017 and 2024 are dropped; 2018 and 2023 are kept."""
        records = [
            NormalizedRecord(date=date(year, 6, 1), year=year, high=1.0, low=1.0)
            for year in (2017, 2018, 2023, 2024)
        ]
        result = qualify_records(records, BITCOIN, YearRange())

        assert [r.year for r in result] == [2018, 2023]

    def test_missing_year_is_dropped(self) -> None:
        records = [NormalizedRecord(date=None, year=None, high=1.0, low=1.0)]
        assert qualify_records(records, BITCOIN, YearRange()) == []

    def test_custom_year_range(self) -> None:
        records = [
            NormalizedRecord(date=date(year, 1, 1), year=year, high=1.0, low=1.0)
            for year in (2019, 2020, 2021)
        ]
        result = qualify_records(records, APPLE, YearRange(after=2019, before=2021))
        assert [r.year for r in result] == [2020]


class TestFullOuterJoin:
    """Tests for the two-sided outer join."""

    def test_matching_dates_merge(self) -> None:
        left = [JoinedRecord(date=date(2020, 1, 1), year=2020,
                             prices={APPLE: PricePoint(high=1.0, low=0.5)})]
        right = [JoinedRecord(date=date(2020, 1, 1), year=2020,
                              prices={BITCOIN: PricePoint(high=2.0, low=1.5)})]

        result = full_outer_join(left, right)

        assert len(result) == 1
        assert result[0].high(APPLE) == 1.0
        assert result[0].high(BITCOIN) == 2.0

    def test_unmatched_rows_survive_on_both_sides(self) -> None:
        left = [JoinedRecord(date=date(2020, 1, 1), year=2020,
                             prices={APPLE: PricePoint(high=1.0)})]
        right = [JoinedRecord(date=date(2020, 1, 2), year=2020,
                              prices={BITCOIN: PricePoint(high=2.0)})]

        result = full_outer_join(left, right)

        assert [r.date for r in result] == [date(2020, 1, 1), date(2020, 1, 2)]
        assert result[0].high(BITCOIN) is None
        assert result[1].high(APPLE) is None

    def test_duplicate_keys_pair_up(self) -> None:
        """Two right rows for one date give two joined rows."""
        left = [JoinedRecord(date=date(2020, 1, 1), year=2020,
                             prices={APPLE: PricePoint(high=1.0)})]
        right = [
            JoinedRecord(date=date(2020, 1, 1), year=2020,
                         prices={BITCOIN: PricePoint(high=2.0)}),
            JoinedRecord(date=date(2020, 1, 1), year=2020,
                         prices={BITCOIN: PricePoint(high=3.0)}),
        ]

        result = full_outer_join(left, right)

        assert len(result) == 2
        assert sorted(r.high(BITCOIN) for r in result) == [2.0, 3.0]
        assert all(r.high(APPLE) == 1.0 for r in result)

    def test_missing_date_never_matches(self) -> None:
        left = [JoinedRecord(date=None, year=None, prices={APPLE: PricePoint(high=1.0)})]
        right = [JoinedRecord(date=None, year=None, prices={BITCOIN: PricePoint(high=2.0)})]

        result = full_outer_join(left, right)

        assert len(result) == 2


class TestAlignSources:
    """Tests for the multi-source outer join."""

    def test_union_of_dates(self) -> None:
        """Joined dates equal the union of every source's dates."""
        apple = [_qualified(APPLE, date(2020, 1, d), 100.0 + d) for d in (1, 2, 3)]
        bitcoin = [_qualified(BITCOIN, date(2020, 1, d), 200.0 + d) for d in (2, 4)]
        ethereum = [_qualified(ETHEREUM, date(2020, 1, d), 50.0 + d) for d in (3, 5)]

        result = align_sources([apple, bitcoin, ethereum])

        assert [r.date for r in result] == [date(2020, 1, d) for d in range(1, 6)]

    def test_single_source_date_populates_only_that_source(self) -> None:
        apple = [_qualified(APPLE, date(2020, 1, 1), 100.0)]
        bitcoin = [_qualified(BITCOIN, date(2020, 1, 2), 200.0)]
        ethereum = [_qualified(ETHEREUM, date(2020, 1, 3), 50.0)]

        result = align_sources([apple, bitcoin, ethereum])

        by_date = {r.date: r for r in result}
        only_bitcoin = by_date[date(2020, 1, 2)]
        assert only_bitcoin.high(BITCOIN) == 200.0
        assert only_bitcoin.low(BITCOIN) == 199.0
        for source in (APPLE, ETHEREUM):
            assert only_bitcoin.high(source) is None
            assert only_bitcoin.low(source) is None

    def test_second_and_third_sources_join_on_first_source_date(self) -> None:
        """Rows only later sources share stay apart until aggregation."""
        apple = [_qualified(APPLE, date(2020, 1, 1), 100.0)]
        bitcoin = [_qualified(BITCOIN, date(2020, 1, 2), 200.0)]
        ethereum = [_qualified(ETHEREUM, date(2020, 1, 2), 50.0)]

        joined = align_sources([apple, bitcoin, ethereum])

        assert len(joined) == 3
        assert all(len(row.prices) == 1 for row in joined)

        result = aggregate_by_date(joined)
        assert len(result) == 2
        second = result[1]
        assert second.date == date(2020, 1, 2)
        assert second.year == 2020
        assert second.high(BITCOIN) == 200.0
        assert second.high(ETHEREUM) == 50.0

    def test_later_duplicates_not_multiplied_without_first_source(self) -> None:
        bitcoin = [_qualified(BITCOIN, date(2020, 1, 1), 200.0)]
        ethereum = [
            _qualified(ETHEREUM, date(2020, 1, 1), 50.0),
            _qualified(ETHEREUM, date(2020, 1, 1), 60.0),
        ]

        result = aggregate_by_date(align_sources([[], bitcoin, ethereum]))

        assert len(result) == 1
        assert result[0].high(BITCOIN) == 200.0
        assert result[0].high(ETHEREUM) == 110.0

    def test_third_source_matches_first_source_date(self) -> None:
        apple = [_qualified(APPLE, date(2020, 1, 1), 100.0)]
        bitcoin = [_qualified(BITCOIN, date(2020, 1, 1), 200.0)]
        ethereum = [
            _qualified(ETHEREUM, date(2020, 1, 1), 50.0),
            _qualified(ETHEREUM, date(2020, 1, 1), 60.0),
        ]

        result = aggregate_by_date(align_sources([apple, bitcoin, ethereum]))

        assert len(result) == 1
        assert result[0].high(APPLE) == 200.0
        assert result[0].high(BITCOIN) == 400.0
        assert result[0].high(ETHEREUM) == 110.0

    def test_result_sorted_by_date(self) -> None:
        apple = [_qualified(APPLE, date(2021, 5, 1), 1.0), _qualified(APPLE, date(2019, 1, 1), 2.0)]
        bitcoin = [_qualified(BITCOIN, date(2020, 1, 1), 3.0)]

        result = align_sources([apple, bitcoin])

        assert [r.date for r in result] == [date(2019, 1, 1), date(2020, 1, 1), date(2021, 5, 1)]

    def test_no_sources(self) -> None:
        assert align_sources([]) == []


class TestAggregateByDate:
    """Tests for grouping joined rows by (date, year)."""

    def test_unique_dates_pass_through(self) -> None:
        rows = [
            JoinedRecord(date=date(2020, 1, 2), year=2020, prices={APPLE: PricePoint(high=2.0, low=1.0)}),
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={APPLE: PricePoint(high=1.0, low=0.5)}),
        ]

        result = aggregate_by_date(rows)

        assert [r.date for r in result] == [date(2020, 1, 1), date(2020, 1, 2)]
        assert result[0].high(APPLE) == 1.0
        assert result[0].low(APPLE) == 0.5

    def test_duplicate_dates_add_prices(self) -> None:
        """Duplicates are summed, not averaged or deduplicated."""
        apple = [
            _qualified(APPLE, date(2020, 1, 1), 100.0, 90.0),
            _qualified(APPLE, date(2020, 1, 1), 150.0, 140.0),
        ]
        bitcoin = [_qualified(BITCOIN, date(2020, 1, 2), 200.0)]

        result = aggregate_by_date(align_sources([apple, bitcoin]))

        assert len(result) == 2
        assert result[0].high(APPLE) == 250.0
        assert result[0].low(APPLE) == 230.0
        assert result[0].high(BITCOIN) is None

    def test_missing_values_skipped_in_sum(self) -> None:
        rows = [
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={APPLE: PricePoint(high=5.0, low=None)}),
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={APPLE: PricePoint(high=None, low=None)}),
        ]

        result = aggregate_by_date(rows)

        assert len(result) == 1
        assert result[0].high(APPLE) == 5.0
        assert result[0].low(APPLE) is None

    def test_sources_merged_across_group_members(self) -> None:
        rows = [
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={APPLE: PricePoint(high=1.0)}),
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={ETHEREUM: PricePoint(high=3.0)}),
        ]

        result = aggregate_by_date(rows)

        assert len(result) == 1
        assert result[0].high(APPLE) == 1.0
        assert result[0].high(ETHEREUM) == 3.0
        assert result[0].high(BITCOIN) is None

    def test_sums_are_floats(self) -> None:
        rows = [
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={APPLE: PricePoint(high=0.1)}),
            JoinedRecord(date=date(2020, 1, 1), year=2020, prices={APPLE: PricePoint(high=0.2)}),
        ]
        assert aggregate_by_date(rows)[0].high(APPLE) == pytest.approx(0.3)
