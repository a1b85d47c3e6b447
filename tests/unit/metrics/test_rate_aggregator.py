"""
Tests for RateAggregator and the metrics sinks.
"""

import pytest

from hyperstress.logging import Logger
from hyperstress.metrics import (
    LoggingMetricsSink,
    MetricsTable,
    RateAggregator,
    SharedMetricsRegion,
)


class TestRateAggregator:
    """Tests for forwarding rates to a sink."""

    def test_report_assigns_kinds_in_order(self):
        """Reports without a kind take consecutive ordinals."""
        table = MetricsTable()
        aggregator = RateAggregator(table)

        aggregator.report("reads per sec", 10.0)
        aggregator.report("writes per sec", 2.5)

        assert [rate.kind for rate in table.rates] == [0, 1]
        assert table.get(1).label == "writes per sec"
        assert table.get(1).rate == 2.5

    def test_explicit_kind_overwrites(self):
        """Reporting the same kind twice keeps the latest rate."""
        table = MetricsTable()
        aggregator = RateAggregator(table)

        aggregator.report("ops", 1.0, kind=3)
        aggregator.report("ops", 4.0, kind=3)

        assert len(table.rates) == 1
        assert table.get(3).rate == 4.0

    def test_aggregate_and_report_region(self):
        """Every kind in a region is reported with its label."""
        region = SharedMetricsRegion.allocate(slot_count=2, kind_count=2)

        try:
            region.slot_for(0)[0].add(2.0, 10.0)
            region.slot_for(1)[0].add(3.0, 5.0)
            region.slot_for(1)[1].add(1.0, 4.0)

            table = MetricsTable()
            rates = RateAggregator(table).aggregate_and_report(
                region, ["first per sec", "second per sec"]
            )

        finally:
            region.release()

        assert [rate.label for rate in rates] == ["first per sec", "second per sec"]
        assert rates[0].rate == pytest.approx(3.0)
        assert rates[1].rate == pytest.approx(4.0)
        assert table.rates == rates

    def test_label_count_must_match_kinds(self):
        """A mismatched label list is rejected."""
        region = SharedMetricsRegion.allocate(slot_count=1, kind_count=2)

        try:
            with pytest.raises(ValueError):
                RateAggregator(MetricsTable()).aggregate_and_report(region, ["only one"])

        finally:
            region.release()


class TestLoggingMetricsSink:
    """Tests for the logging sink."""

    def test_rates_are_logged_to_file(self, tmp_path, quiet_logging):
        """Each rate becomes a MetricInfo entry in the configured logfile."""
        quiet_logging.update(log_level="info")

        logger = Logger()
        logger.context(name="metrics", path=str(tmp_path / "metrics.json"))

        LoggingMetricsSink("atomic", logger).set(0, "uint64 ops per sec", 12.5)
        logger.close()

        contents = (tmp_path / "metrics.json").read_text()
        assert "uint64 ops per sec" in contents
        assert '"rate":12.5' in contents
