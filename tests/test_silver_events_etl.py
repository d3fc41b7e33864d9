"""
Tests for Silver Events ETL.

This module contains tests for the Silver Events ETL process.
"""

import sys
import unittest
from datetime import datetime, date
from pathlib import Path
from unittest.mock import MagicMock, patch

from pyspark.sql import SparkSession
from pyspark.sql.functions import lit
from pyspark.sql.types import StructType

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.silver.events_etl import (
    filter_incomplete_events,
    transform_events_data,
    audit_events_quality,
    check_cleaned_events,
    write_silver_events,
    register_silver_events_table,
    main,
)
from etl.common.schemas import BRONZE_EVENTS_SCHEMA, SILVER_EVENTS_SCHEMA

# Bronze business columns, without the metadata columns
EVENTS_SCHEMA = StructType(BRONZE_EVENTS_SCHEMA.fields[:9])

BUSINESS_COLUMNS = [
    field.name
    for field in SILVER_EVENTS_SCHEMA.fields
    if field.name not in ("processing_timestamp", "layer", "bronze_source_file")
]

SESSION = "72d76fde-8bb3-4e00-8c23-a032dfed738c"


class TestSilverEventsETL(unittest.TestCase):
    """Test cases for Silver Events ETL."""

    @classmethod
    def setUpClass(cls):
        """Set up test fixtures."""
        cls.spark = SparkSession.builder \
            .appName("test_silver_events_etl") \
            .master("local[1]") \
            .getOrCreate()

        # 2019-10-01 was a Tuesday
        data = [
            # Complete event with every label
            (datetime(2019, 10, 1, 10, 15, 0), " VIEW ", 1001, 11,
             "Electronics.Smartphone ", " Apple", 499.999, 1, SESSION),
            # Negative price
            (datetime(2019, 10, 1, 10, 16, 0), "cart", 1001, 11,
             "electronics.smartphone", "apple", -5.0, 1, SESSION),
            # Blank category, missing brand and price
            (datetime(2019, 10, 1, 10, 17, 0), "purchase", 1002, 12,
             "", None, None, 1, SESSION),
            # Missing user_session: dropped
            (datetime(2019, 10, 1, 10, 18, 0), "view", 1003, 13,
             "apparel.shoes", "nike", 60.0, 2, None),
            # Missing event_time: dropped
            (None, "view", 1003, 13, "apparel.shoes", "nike", 60.0, 2, "s-2"),
            # Missing product_id: dropped
            (datetime(2019, 10, 1, 10, 19, 0), "view", None, 13,
             "apparel.shoes", "nike", 60.0, 2, "s-2"),
            # Missing event_type: dropped
            (datetime(2019, 10, 1, 10, 20, 0), None, 1003, 13,
             "apparel.shoes", "nike", 60.0, 2, "s-2"),
            # Missing user_id: dropped
            (datetime(2019, 10, 1, 10, 21, 0), "view", 1003, 13,
             "apparel.shoes", "nike", 60.0, None, "s-2"),
            # Whitespace-only event_type: dropped
            (datetime(2019, 10, 1, 10, 22, 0), "   ", 1003, 13,
             "apparel.shoes", "nike", 60.0, 2, "s-2"),
            # Empty user_session: dropped
            (datetime(2019, 10, 1, 10, 23, 0), "view", 1003, 13,
             "apparel.shoes", "nike", 60.0, 2, " "),
        ]
        cls.bronze_df = cls.spark.createDataFrame(data, EVENTS_SCHEMA)

    def _cleaned_rows(self):
        result_df = transform_events_data(self.bronze_df)
        return {row["event_time"].minute: row for row in result_df.collect()}

    def test_filter_incomplete_events(self):
        """Rows missing a required key are dropped, others are kept."""
        result_df = filter_incomplete_events(self.bronze_df)

        self.assertEqual(result_df.count(), 3)
        self.assertEqual(result_df.filter("user_session IS NULL").count(), 0)
        self.assertEqual(
            {row["event_time"].minute for row in result_df.collect()}, {15, 16, 17}
        )

    def test_transform_matches_schema(self):
        """Cleaned events carry exactly the silver columns."""
        result_df = transform_events_data(self.bronze_df)

        self.assertEqual(result_df.columns, [field.name for field in SILVER_EVENTS_SCHEMA.fields])
        self.assertEqual(result_df.count(), 3)

    def test_normalization(self):
        """Event type, labels and price are normalized."""
        row = self._cleaned_rows()[15]

        self.assertEqual(row["event_type"], "view")
        self.assertEqual(row["category_code"], "electronics.smartphone")
        self.assertEqual(row["brand"], "apple")
        self.assertEqual(row["price"], 500.0)
        self.assertFalse(row["is_brand_missing"])
        self.assertFalse(row["is_category_missing"])
        self.assertFalse(row["is_price_invalid"])

    def test_negative_price_is_nulled_and_flagged(self):
        """A price of -5 becomes null and is flagged invalid."""
        row = self._cleaned_rows()[16]

        self.assertIsNone(row["price"])
        self.assertTrue(row["is_price_invalid"])

    def test_blank_labels_get_sentinels(self):
        """Blank or missing labels get sentinels; the flags describe the raw values."""
        row = self._cleaned_rows()[17]

        self.assertEqual(row["category_code"], "uncategorized")
        self.assertEqual(row["brand"], "unknown")
        self.assertTrue(row["is_category_missing"])
        self.assertTrue(row["is_brand_missing"])
        self.assertTrue(row["is_price_invalid"])
        self.assertIsNone(row["price"])

    def test_calendar_columns(self):
        """Calendar columns come from event_time."""
        row = self._cleaned_rows()[15]

        self.assertEqual(row["event_date"], date(2019, 10, 1))
        self.assertEqual(row["event_hour"], 10)
        self.assertEqual(row["day_of_week"], 3)  # Tuesday

    def test_lineage_from_source_file(self):
        """bronze_source_file follows the bronze source_file column when present."""
        with_source_df = self.bronze_df.withColumn("source_file", lit("s3a://bucket/raw/events/a.csv"))
        rows = transform_events_data(with_source_df).collect()

        self.assertEqual({row["bronze_source_file"] for row in rows}, {"s3a://bucket/raw/events/a.csv"})

    def test_rerun_is_idempotent(self):
        """Two runs over the same input give the same business columns."""
        first = transform_events_data(self.bronze_df).select(BUSINESS_COLUMNS)
        second = transform_events_data(self.bronze_df).select(BUSINESS_COLUMNS)

        self.assertEqual(
            sorted(first.collect(), key=lambda row: row["event_time"]),
            sorted(second.collect(), key=lambda row: row["event_time"]),
        )

    def test_audit_events_quality(self):
        """The audit counts dropped rows and flagged values."""
        cleaned_df = transform_events_data(self.bronze_df)

        audit = audit_events_quality(self.bronze_df, cleaned_df)

        self.assertEqual(audit["raw_rows"], 10)
        self.assertEqual(audit["cleaned_rows"], 3)
        self.assertEqual(audit["dropped_rows"], 7)
        self.assertEqual(audit["null_user_session"], 1)
        self.assertEqual(audit["null_event_time"], 1)
        self.assertEqual(audit["null_product_id"], 1)
        self.assertEqual(audit["null_event_type"], 1)
        self.assertEqual(audit["null_user_id"], 1)
        self.assertEqual(audit["missing_brand_rows"], 1)
        self.assertEqual(audit["missing_category_rows"], 1)
        self.assertEqual(audit["invalid_price_rows"], 2)

    def test_check_cleaned_events(self):
        """Cleaned events pass the quality check; bad data raises."""
        cleaned_df = transform_events_data(self.bronze_df)
        check_cleaned_events(cleaned_df)

        with self.assertRaises(ValueError):
            check_cleaned_events(cleaned_df.withColumn("brand", lit(" ")))

    @patch("etl.silver.events_etl.write_delta_table")
    def test_write_silver_events(self, mock_write_delta_table):
        """Test writing silver events."""
        write_silver_events(self.bronze_df, "test-bucket", "run-1")

        mock_write_delta_table.assert_called_once()
        _, kwargs = mock_write_delta_table.call_args
        self.assertEqual(kwargs["table_path"], "silver/events/")
        self.assertEqual(kwargs["mode"], "overwrite")
        self.assertEqual(kwargs["partition_by"], ["event_date"])
        self.assertEqual(kwargs["z_order_by"], "user_session")
        self.assertEqual(kwargs["run_id"], "run-1")

    @patch("etl.silver.events_etl.register_delta_table")
    def test_register_silver_events_table(self, mock_register_delta_table):
        """Test registering silver events table."""
        mock_register_delta_table.return_value = True

        register_silver_events_table(self.spark, "test-bucket")

        _, kwargs = mock_register_delta_table.call_args
        self.assertEqual(kwargs["table_name"], "events")
        self.assertEqual(kwargs["layer"], "silver")

    @patch("etl.silver.events_etl.create_spark_session")
    @patch("etl.silver.events_etl.read_bronze_events")
    @patch("etl.silver.events_etl.write_silver_events")
    @patch("etl.silver.events_etl.register_silver_events_table")
    def test_main_success(self, mock_register, mock_write, mock_read, mock_create_spark):
        """Test main function success case."""
        mock_spark = MagicMock()
        mock_create_spark.return_value = mock_spark
        mock_read.return_value = self.bronze_df

        result = main("test-bucket", "us-east-1", "run-1")

        self.assertEqual(result, 0)
        mock_read.assert_called_once_with(mock_spark, "test-bucket")
        mock_write.assert_called_once()
        written_df, bucket_name, run_id = mock_write.call_args[0]
        self.assertEqual(written_df.count(), 3)
        self.assertEqual((bucket_name, run_id), ("test-bucket", "run-1"))
        mock_register.assert_called_once_with(mock_spark, "test-bucket")

    @patch("etl.silver.events_etl.create_spark_session")
    @patch("etl.silver.events_etl.read_bronze_events")
    def test_main_failure(self, mock_read, mock_create_spark):
        """Test main function failure case."""
        mock_create_spark.return_value = MagicMock()
        mock_read.side_effect = Exception("Test error")

        result = main("test-bucket", "us-east-1")

        self.assertEqual(result, 1)


if __name__ == "__main__":
    unittest.main()
