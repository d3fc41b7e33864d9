"""
Tests for Gold Time Patterns ETL.

This module contains tests for the Gold Time Patterns ETL process.
"""

import sys
import unittest
from datetime import datetime, date, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

from pyspark.sql import SparkSession

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.gold.time_patterns_etl import (
    aggregate_sessions,
    calculate_daily_trends,
    calculate_hourly_patterns,
    calculate_dow_patterns,
    write_gold_time_pattern,
    register_gold_time_pattern_tables,
    main,
)
from etl.common.schemas import (
    GOLD_SESSION_METRICS_SCHEMA,
    GOLD_DAILY_TRENDS_SCHEMA,
    GOLD_HOURLY_PATTERNS_SCHEMA,
    GOLD_DOW_PATTERNS_SCHEMA,
)


def _session(token, user_id, start, duration, views, cart_adds, purchases, revenue):
    return (
        token, user_id, start, start + timedelta(minutes=duration), duration,
        start.date(), start.hour, (start.isoweekday() % 7) + 1,
        views + cart_adds + purchases, views, cart_adds, 0, purchases,
        views, cart_adds, purchases, revenue,
        revenue / purchases if purchases else None,
        cart_adds > 0, purchases > 0,
        "converted" if purchases else ("abandoned_cart" if cart_adds else "browsing_only"),
        "silver.events", datetime(2019, 11, 1), "gold",
    )


class TestGoldTimePatternsETL(unittest.TestCase):
    """Test cases for Gold Time Patterns ETL."""

    @classmethod
    def setUpClass(cls):
        """Set up test fixtures."""
        cls.spark = SparkSession.builder \
            .appName("test_gold_time_patterns_etl") \
            .master("local[1]") \
            .getOrCreate()

        # 2019-10-01 was a Tuesday, 2019-10-06 a Sunday
        data = [
            _session("s1", 1, datetime(2019, 10, 1, 9, 0), 10, 3, 1, 1, 120.0),
            _session("s2", 1, datetime(2019, 10, 1, 9, 30), 4, 2, 0, 0, 0.0),
            _session("s3", 2, datetime(2019, 10, 1, 21, 0), 0, 1, 0, 0, 0.0),
            _session("s4", 3, datetime(2019, 10, 6, 9, 15), 6, 5, 2, 2, 80.0),
        ]
        cls.sessions_df = cls.spark.createDataFrame(data, GOLD_SESSION_METRICS_SCHEMA)

    def test_aggregate_sessions(self):
        """Bucket metrics are summed over sessions."""
        rows = {
            row["hour_of_day"]: row
            for row in aggregate_sessions(self.sessions_df, "session_hour", "hour_of_day").collect()
        }
        nine = rows[9]

        self.assertEqual(nine["total_sessions"], 3)
        self.assertEqual(nine["unique_users"], 2)
        self.assertEqual(nine["total_views"], 10)
        self.assertEqual(nine["converting_sessions"], 2)
        self.assertEqual(nine["total_orders"], 3)
        self.assertEqual(nine["total_revenue"], 200.0)
        self.assertEqual(nine["avg_order_value"], 66.67)
        self.assertEqual(nine["conversion_rate"], 0.6667)
        self.assertEqual(nine["avg_session_duration_minutes"], 6.67)

    def test_ratios_are_null_without_orders(self):
        """A bucket without purchases has no average order value."""
        rows = {
            row["hour_of_day"]: row
            for row in aggregate_sessions(self.sessions_df, "session_hour", "hour_of_day").collect()
        }
        evening = rows[21]

        self.assertEqual(evening["total_orders"], 0)
        self.assertIsNone(evening["avg_order_value"])
        self.assertEqual(evening["conversion_rate"], 0.0)

    def test_daily_trends(self):
        """Daily trends carry the gold columns, one row per date."""
        result_df = calculate_daily_trends(self.sessions_df)

        self.assertEqual(
            result_df.columns, [field.name for field in GOLD_DAILY_TRENDS_SCHEMA.fields]
        )
        rows = {row["event_date"]: row for row in result_df.collect()}
        self.assertEqual(set(rows), {date(2019, 10, 1), date(2019, 10, 6)})
        self.assertEqual(rows[date(2019, 10, 1)]["total_sessions"], 3)
        self.assertEqual(rows[date(2019, 10, 1)]["conversion_rate"], 0.3333)

    def test_hourly_patterns(self):
        """Hourly patterns carry the gold columns."""
        result_df = calculate_hourly_patterns(self.sessions_df)

        self.assertEqual(
            result_df.columns, [field.name for field in GOLD_HOURLY_PATTERNS_SCHEMA.fields]
        )
        self.assertEqual(sorted(row["hour_of_day"] for row in result_df.collect()), [9, 21])

    def test_dow_patterns(self):
        """Day-of-week patterns carry the weekday name."""
        result_df = calculate_dow_patterns(self.sessions_df)

        self.assertEqual(
            result_df.columns, [field.name for field in GOLD_DOW_PATTERNS_SCHEMA.fields]
        )
        names = {row["day_of_week"]: row["day_name"] for row in result_df.collect()}
        self.assertEqual(names, {3: "Tuesday", 1: "Sunday"})

    def test_lineage_points_at_session_metrics(self):
        """Every time pattern table records the gold session table as its source."""
        for calculate in (calculate_daily_trends, calculate_hourly_patterns, calculate_dow_patterns):
            result_df = calculate(self.sessions_df)
            sources = {row["source_tables"] for row in result_df.select("source_tables").collect()}
            self.assertEqual(sources, {"gold.session_metrics"})

    def test_sessions_conserved_across_buckets(self):
        """Every session falls in exactly one bucket of each table."""
        for calculate in (calculate_daily_trends, calculate_hourly_patterns, calculate_dow_patterns):
            rows = calculate(self.sessions_df).collect()
            self.assertEqual(sum(row["total_sessions"] for row in rows), 4)
            self.assertAlmostEqual(sum(row["total_revenue"] for row in rows), 200.0)

    @patch("etl.gold.time_patterns_etl.write_delta_table")
    def test_write_gold_time_pattern(self, mock_write_delta_table):
        """Test writing a time pattern table."""
        write_gold_time_pattern(self.sessions_df, "hourly_patterns", "test-bucket", "run-1")

        _, kwargs = mock_write_delta_table.call_args
        self.assertEqual(kwargs["table_path"], "gold/hourly_patterns/")
        self.assertEqual(kwargs["mode"], "overwrite")
        self.assertEqual(kwargs["run_id"], "run-1")

    @patch("etl.gold.time_patterns_etl.register_delta_table")
    def test_register_gold_time_pattern_tables(self, mock_register_delta_table):
        """All three time pattern tables are registered."""
        mock_register_delta_table.return_value = True

        register_gold_time_pattern_tables(self.spark, "test-bucket")

        registered = [
            call_args[1]["table_name"] for call_args in mock_register_delta_table.call_args_list
        ]
        self.assertEqual(registered, ["daily_trends", "hourly_patterns", "dow_patterns"])

    @patch("etl.gold.time_patterns_etl.create_spark_session")
    @patch("etl.gold.time_patterns_etl.read_session_metrics")
    @patch("etl.gold.time_patterns_etl.write_gold_time_pattern")
    @patch("etl.gold.time_patterns_etl.register_gold_time_pattern_tables")
    def test_main_success(self, mock_register, mock_write, mock_read, mock_create_spark):
        """Test main function success case."""
        mock_spark = MagicMock()
        mock_create_spark.return_value = mock_spark
        mock_read.return_value = self.sessions_df

        result = main("test-bucket", "us-east-1", "run-1")

        self.assertEqual(result, 0)
        written_tables = [call_args[0][1] for call_args in mock_write.call_args_list]
        self.assertEqual(written_tables, ["daily_trends", "hourly_patterns", "dow_patterns"])
        mock_register.assert_called_once_with(mock_spark, "test-bucket")

    @patch("etl.gold.time_patterns_etl.create_spark_session")
    @patch("etl.gold.time_patterns_etl.read_session_metrics")
    def test_main_failure(self, mock_read, mock_create_spark):
        """Test main function failure case."""
        mock_create_spark.return_value = MagicMock()
        mock_read.side_effect = Exception("Test error")

        self.assertEqual(main("test-bucket", "us-east-1"), 1)


if __name__ == "__main__":
    unittest.main()
