"""
Tests for Gold User Profiles ETL.

This module contains tests for the Gold User Profiles ETL process.
"""

import sys
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

from pyspark.sql import SparkSession
from pyspark.sql.types import StructType

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.gold.user_profiles_etl import (
    calculate_user_profiles,
    write_gold_user_profiles,
    register_gold_user_profiles_table,
    main,
)
from etl.silver.events_etl import transform_events_data
from etl.common.schemas import BRONZE_EVENTS_SCHEMA, GOLD_USER_PROFILES_SCHEMA

EVENTS_SCHEMA = StructType(BRONZE_EVENTS_SCHEMA.fields[:9])

START = datetime(2019, 10, 1, 12, 0, 0)


def _events(user_id, event_types, days_apart=0, price=25.0):
    """One event per type, each in its own session and `days_apart` days after the previous one."""
    return [
        (
            START + timedelta(days=index * days_apart, minutes=index),
            event_type,
            500 + index,
            7,
            "home.kitchen",
            "tefal",
            price,
            user_id,
            f"u{user_id}-s{index}",
        )
        for index, event_type in enumerate(event_types)
    ]


class TestGoldUserProfilesETL(unittest.TestCase):
    """Test cases for Gold User Profiles ETL."""

    @classmethod
    def setUpClass(cls):
        """Set up test fixtures."""
        cls.spark = SparkSession.builder \
            .appName("test_gold_user_profiles_etl") \
            .master("local[1]") \
            .getOrCreate()

        data = (
            _events(1, ["view", "cart", "purchase", "purchase", "purchase"], days_apart=2)
            + _events(2, ["view", "cart", "purchase"])
            + _events(3, ["view", "cart", "remove_from_cart"])
            + _events(4, ["view", "view"])
            + _events(5, ["purchase", "purchase"], price=-1.0)
        )
        bronze_df = cls.spark.createDataFrame(data, EVENTS_SCHEMA)
        cls.events_df = transform_events_data(bronze_df)

    def _profiles(self):
        result_df = calculate_user_profiles(self.events_df)
        return {row["user_id"]: row for row in result_df.collect()}

    def test_schema(self):
        """User profiles carry exactly the gold columns, one row per user."""
        result_df = calculate_user_profiles(self.events_df)

        self.assertEqual(
            result_df.columns, [field.name for field in GOLD_USER_PROFILES_SCHEMA.fields]
        )
        self.assertEqual(result_df.count(), 5)

    def test_repeat_buyer(self):
        """Three purchases make a repeat buyer."""
        row = self._profiles()[1]

        self.assertEqual(row["user_type"], "buyer")
        self.assertEqual(row["buyer_segment"], "repeat_buyer")
        self.assertEqual(row["total_purchases"], 3)
        self.assertEqual(row["total_sessions"], 5)
        self.assertEqual(row["active_days"], 5)
        self.assertEqual(row["lifetime_revenue"], 75.0)
        self.assertEqual(row["avg_order_value"], 25.0)

    def test_lifetime_days_is_inclusive(self):
        """Lifetime counts both the first and the last day."""
        profiles = self._profiles()

        # Events on Oct 1, 3, 5, 7 and 9
        self.assertEqual(profiles[1]["lifetime_days"], 9)
        # All events on one day
        self.assertEqual(profiles[2]["lifetime_days"], 1)

    def test_one_time_buyer(self):
        """A single purchase makes a one-time buyer."""
        row = self._profiles()[2]

        self.assertEqual(row["user_type"], "buyer")
        self.assertEqual(row["buyer_segment"], "one_time_buyer")

    def test_cart_abandoner(self):
        """Cart adds without a purchase make a cart abandoner and a non-buyer."""
        row = self._profiles()[3]

        self.assertEqual(row["user_type"], "cart_abandoner")
        self.assertEqual(row["buyer_segment"], "non_buyer")
        self.assertEqual(row["total_cart_removes"], 1)
        self.assertIsNone(row["avg_order_value"])

    def test_browser(self):
        """Views only make a browser."""
        row = self._profiles()[4]

        self.assertEqual(row["user_type"], "browser")
        self.assertEqual(row["buyer_segment"], "non_buyer")
        self.assertEqual(row["lifetime_revenue"], 0.0)

    def test_purchases_without_valid_price(self):
        """Purchases with invalid prices still count, but add no revenue."""
        row = self._profiles()[5]

        self.assertEqual(row["user_type"], "buyer")
        self.assertEqual(row["buyer_segment"], "one_time_buyer")
        self.assertEqual(row["total_purchases"], 2)
        self.assertEqual(row["lifetime_revenue"], 0.0)
        self.assertEqual(row["avg_order_value"], 0.0)

    def test_segments_consistent_with_user_type(self):
        """Buyers are never non-buyers; cart abandoners and browsers always are."""
        for row in self._profiles().values():
            if row["user_type"] == "buyer":
                self.assertIn(row["buyer_segment"], ("repeat_buyer", "one_time_buyer"))
            else:
                self.assertEqual(row["buyer_segment"], "non_buyer")
            if row["buyer_segment"] == "repeat_buyer":
                self.assertGreaterEqual(row["total_purchases"], 3)

    @patch("etl.gold.user_profiles_etl.write_delta_table")
    def test_write_gold_user_profiles(self, mock_write_delta_table):
        """Test writing gold user profiles."""
        write_gold_user_profiles(self.events_df, "test-bucket", "run-1")

        _, kwargs = mock_write_delta_table.call_args
        self.assertEqual(kwargs["table_path"], "gold/user_profiles/")
        self.assertEqual(kwargs["mode"], "overwrite")
        self.assertEqual(kwargs["partition_by"], "buyer_segment")
        self.assertEqual(kwargs["z_order_by"], "user_id")

    @patch("etl.gold.user_profiles_etl.register_delta_table")
    def test_register_gold_user_profiles_table(self, mock_register_delta_table):
        """Test registering gold user profiles table."""
        mock_register_delta_table.return_value = True

        register_gold_user_profiles_table(self.spark, "test-bucket")

        _, kwargs = mock_register_delta_table.call_args
        self.assertEqual(kwargs["table_name"], "user_profiles")
        self.assertEqual(kwargs["layer"], "gold")

    @patch("etl.gold.user_profiles_etl.create_spark_session")
    @patch("etl.gold.user_profiles_etl.read_silver_events")
    @patch("etl.gold.user_profiles_etl.write_gold_user_profiles")
    @patch("etl.gold.user_profiles_etl.register_gold_user_profiles_table")
    def test_main_success(self, mock_register, mock_write, mock_read, mock_create_spark):
        """Test main function success case."""
        mock_spark = MagicMock()
        mock_create_spark.return_value = mock_spark
        mock_read.return_value = self.events_df

        result = main("test-bucket", "us-east-1", "run-1")

        self.assertEqual(result, 0)
        written_df, bucket_name, run_id = mock_write.call_args[0]
        self.assertEqual(written_df.count(), 5)
        self.assertEqual((bucket_name, run_id), ("test-bucket", "run-1"))
        mock_register.assert_called_once_with(mock_spark, "test-bucket")

    @patch("etl.gold.user_profiles_etl.create_spark_session")
    @patch("etl.gold.user_profiles_etl.read_silver_events")
    def test_main_failure(self, mock_read, mock_create_spark):
        """Test main function failure case."""
        mock_create_spark.return_value = MagicMock()
        mock_read.side_effect = Exception("Test error")

        self.assertEqual(main("test-bucket", "us-east-1"), 1)


if __name__ == "__main__":
    unittest.main()
