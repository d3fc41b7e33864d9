"""
Tests for Bronze Events ETL.

This module contains tests for the Bronze Events ETL process.
"""

import sys
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

from pyspark.sql import SparkSession

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.bronze.events_etl import (
    get_raw_event_paths,
    read_raw_events,
    parse_event_time,
    transform_events_data,
    write_bronze_events,
    register_bronze_events_table,
    main,
)
from etl.common.schemas import RAW_EVENTS_SCHEMA, BRONZE_EVENTS_SCHEMA

RAW_HEADERS = [field.name for field in RAW_EVENTS_SCHEMA.fields]


class TestBronzeEventsETL(unittest.TestCase):
    """Test cases for Bronze Events ETL."""

    @classmethod
    def setUpClass(cls):
        """Set up test fixtures."""
        cls.spark = SparkSession.builder \
            .appName("test_bronze_events_etl") \
            .master("local[1]") \
            .getOrCreate()

        data = [
            ("2019-10-01 00:00:00 UTC", "view", 44600062, 2103807459595387724, None,
             "shiseido", 35.79, 541312140, "72d76fde-8bb3-4e00-8c23-a032dfed738c"),
            ("2019-10-01 00:01:00 UTC", "cart", 44600062, 2103807459595387724, None,
             "shiseido", 35.79, 541312140, "72d76fde-8bb3-4e00-8c23-a032dfed738c"),
            ("not a timestamp", "view", 3900821, 2053013552326770905,
             "appliances.environment.water_heater", "aqua", 33.20, 554748717,
             "9333dfbd-b87a-4708-9857-6336556b0fcc"),
        ]
        cls.raw_df = cls.spark.createDataFrame(data, RAW_EVENTS_SCHEMA)

    def test_parse_event_time(self):
        """Event times with a trailing UTC marker are parsed, others become null."""
        rows = parse_event_time(self.raw_df).select("event_time").collect()

        self.assertEqual(rows[0]["event_time"], datetime(2019, 10, 1, 0, 0, 0))
        self.assertEqual(rows[1]["event_time"], datetime(2019, 10, 1, 0, 1, 0))
        self.assertIsNone(rows[2]["event_time"])

    def test_transform_events_data(self):
        """Transformed events match the bronze schema and keep every row."""
        result_df = transform_events_data(self.raw_df)

        self.assertEqual(
            [field.name for field in result_df.schema.fields],
            [field.name for field in BRONZE_EVENTS_SCHEMA.fields],
        )
        self.assertEqual(result_df.count(), 3)
        self.assertEqual({row["layer"] for row in result_df.collect()}, {"bronze"})

    @patch("etl.bronze.events_etl.list_objects")
    def test_get_raw_event_paths(self, mock_list_objects):
        """Raw CSV objects are turned into s3a paths."""
        mock_list_objects.return_value = [
            {"key": "raw/events/2019-Oct.csv", "size": 10, "last_modified": None},
            {"key": "raw/events/2019-Nov.csv", "size": 10, "last_modified": None},
        ]

        paths = get_raw_event_paths("test-bucket")

        mock_list_objects.assert_called_once_with("test-bucket", "raw/events/", suffix=".csv")
        self.assertEqual(
            paths,
            [
                "s3a://test-bucket/raw/events/2019-Oct.csv",
                "s3a://test-bucket/raw/events/2019-Nov.csv",
            ],
        )

    @patch("etl.bronze.events_etl.list_objects")
    def test_get_raw_event_paths_empty(self, mock_list_objects):
        """An empty raw zone is an error."""
        mock_list_objects.return_value = []

        with self.assertRaises(ValueError):
            get_raw_event_paths("test-bucket")

    @patch("etl.bronze.events_etl.write_delta_table")
    def test_write_bronze_events(self, mock_write_delta_table):
        """Test writing bronze events."""
        write_bronze_events(self.raw_df, "test-bucket", "run-1")

        mock_write_delta_table.assert_called_once()
        _, kwargs = mock_write_delta_table.call_args
        self.assertEqual(kwargs["df"], self.raw_df)
        self.assertEqual(kwargs["table_path"], "bronze/events/")
        self.assertEqual(kwargs["mode"], "overwrite")
        self.assertEqual(kwargs["bucket_name"], "test-bucket")
        self.assertEqual(kwargs["run_id"], "run-1")

    @patch("etl.bronze.events_etl.register_delta_table")
    def test_register_bronze_events_table(self, mock_register_delta_table):
        """Test registering bronze events table."""
        mock_register_delta_table.return_value = True

        register_bronze_events_table(self.spark, "test-bucket")

        mock_register_delta_table.assert_called_once()
        _, kwargs = mock_register_delta_table.call_args
        self.assertEqual(kwargs["table_name"], "events")
        self.assertEqual(kwargs["layer"], "bronze")
        self.assertEqual(kwargs["bucket_name"], "test-bucket")

    @patch("etl.bronze.events_etl.create_spark_session")
    @patch("etl.bronze.events_etl.read_raw_events")
    @patch("etl.bronze.events_etl.transform_events_data")
    @patch("etl.bronze.events_etl.write_bronze_events")
    @patch("etl.bronze.events_etl.register_bronze_events_table")
    def test_main_success(
        self,
        mock_register,
        mock_write,
        mock_transform,
        mock_read,
        mock_create_spark,
    ):
        """Test main function success case."""
        mock_spark = MagicMock()
        mock_create_spark.return_value = mock_spark
        mock_read.return_value = self.raw_df
        mock_transform.return_value = self.raw_df

        result = main("test-bucket", "us-east-1", "/tmp/events.csv", "run-1")

        self.assertEqual(result, 0)
        mock_read.assert_called_once_with(mock_spark, ["/tmp/events.csv"])
        mock_transform.assert_called_once_with(self.raw_df)
        mock_write.assert_called_once_with(self.raw_df, "test-bucket", "run-1")
        mock_register.assert_called_once_with(mock_spark, "test-bucket")
        mock_spark.stop.assert_called_once()

    @patch("etl.bronze.events_etl.get_raw_event_paths")
    def test_main_failure(self, mock_get_paths):
        """Test main function failure case."""
        mock_get_paths.side_effect = ValueError("No raw event files found")

        result = main("test-bucket", "us-east-1")

        self.assertEqual(result, 1)


def test_read_raw_events_from_csv(spark_session, create_csv_file):
    """Malformed values in the CSV become null instead of failing the load."""
    path = create_csv_file(
        "2019-Oct.csv",
        [
            ("2019-10-01 00:00:00 UTC", "view", 44600062, 2103807459595387724, None,
             "shiseido", 35.79, 541312140, "72d76fde-8bb3-4e00-8c23-a032dfed738c"),
            ("2019-10-01 00:00:05 UTC", "purchase", "abc", 2103807459595387724, None,
             None, "n/a", 541312140, "72d76fde-8bb3-4e00-8c23-a032dfed738c"),
        ],
        RAW_HEADERS,
    )

    rows = read_raw_events(spark_session, [path]).orderBy("event_time").collect()

    assert len(rows) == 2
    assert rows[0]["product_id"] == 44600062
    assert rows[0]["category_code"] is None
    assert rows[1]["product_id"] is None
    assert rows[1]["price"] is None
    assert rows[1]["brand"] is None


if __name__ == "__main__":
    unittest.main()
