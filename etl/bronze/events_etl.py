#!/usr/bin/env python
"""
Bronze Events ETL

This script loads the raw clickstream CSV files from the raw zone and writes them to a Delta
table in the bronze layer. It performs the following operations:
1. Discovers the raw event CSV files under the raw events prefix
2. Reads them with the raw schema (permissive parsing, malformed values become null)
3. Parses event_time ("2019-10-01 00:00:04 UTC") into a UTC timestamp
4. Adds metadata columns (source_file, ingestion_timestamp)
5. Overwrites the Bronze Delta table (full reload)
6. Updates Glue Data Catalog

Usage:
    python -m etl.bronze.events_etl [--input-path PATH] [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.functions import col, regexp_replace, to_timestamp

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[2]))

from etl.common.spark_session import create_spark_session, write_delta_table
from etl.common.glue_catalog import register_delta_table
from etl.common.s3_utils import list_objects
from etl.common.etl_utils import (
    add_metadata_columns,
    enforce_schema,
    generate_run_id,
)
from etl.common.schemas import RAW_EVENTS_SCHEMA, BRONZE_EVENTS_SCHEMA
from config import S3_BUCKET_NAME, AWS_REGION, LOG_LEVEL, LOG_FORMAT, get_prefix

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

RAW_TIMESTAMP_FORMAT = "yyyy-MM-dd HH:mm:ss"


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Load raw clickstream events into the bronze layer"
    )
    parser.add_argument(
        "--bucket-name",
        type=str,
        default=S3_BUCKET_NAME,
        help=f"S3 bucket name (default: {S3_BUCKET_NAME})",
    )
    parser.add_argument(
        "--region",
        type=str,
        default=AWS_REGION,
        help=f"AWS region (default: {AWS_REGION})",
    )
    parser.add_argument(
        "--input-path",
        type=str,
        default=None,
        help="Read raw CSV files from this path instead of the raw events prefix",
    )
    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Pipeline run id (default: generated)",
    )

    return parser.parse_args()


def get_raw_event_paths(bucket_name: str) -> List[str]:
    """
    List the raw event CSV files in the raw zone.

    Args:
        bucket_name: S3 bucket name

    Returns:
        List[str]: s3a:// paths of the raw CSV files

    Raises:
        ValueError: If no raw files are found
    """
    prefix = get_prefix("raw", "events")
    objects = list_objects(bucket_name, prefix, suffix=".csv")

    if not objects:
        raise ValueError(f"No raw event files found under s3://{bucket_name}/{prefix}")

    return [f"s3a://{bucket_name}/{obj['key']}" for obj in objects]


def read_raw_events(spark: SparkSession, paths: List[str]) -> DataFrame:
    """
    Read raw clickstream events from CSV files.

    Args:
        spark: Spark session
        paths: CSV file or directory paths

    Returns:
        DataFrame: Raw events data
    """
    logger.info(f"Reading raw events from {len(paths)} path(s)")

    try:
        df = (
            spark.read.format("csv")
            .option("header", "true")
            .option("inferSchema", "false")
            .option("mode", "PERMISSIVE")
            .schema(RAW_EVENTS_SCHEMA)
            .load(paths)
        )

        logger.info("Successfully opened raw event files")
        return df
    except Exception as e:
        logger.error(f"Error reading raw events: {str(e)}")
        raise


def parse_event_time(df: DataFrame) -> DataFrame:
    """
    Parse the raw event_time text into a timestamp.

    A trailing " UTC" marker is stripped; unparseable values become null and are
    later dropped by the silver cleaning step.

    Args:
        df: Raw events DataFrame

    Returns:
        DataFrame: DataFrame with event_time as a timestamp
    """
    return df.withColumn(
        "event_time",
        to_timestamp(
            regexp_replace(col("event_time"), r"\s*UTC$", ""), RAW_TIMESTAMP_FORMAT
        ),
    )


def transform_events_data(df: DataFrame) -> DataFrame:
    """
    Transform raw events for the bronze layer.

    Args:
        df: Raw events DataFrame

    Returns:
        DataFrame: Bronze events data
    """
    logger.info("Transforming raw events for bronze layer")

    try:
        parsed_df = parse_event_time(df)

        result_df = add_metadata_columns(
            parsed_df,
            layer="bronze",
            source_file_column=True,
            ingestion_timestamp_column=True,
            processing_timestamp_column=True,
            layer_column=True,
        )

        validated_df = enforce_schema(result_df, BRONZE_EVENTS_SCHEMA)

        logger.info("Successfully transformed raw events")
        return validated_df
    except Exception as e:
        logger.error(f"Error transforming raw events: {str(e)}")
        raise


def write_bronze_events(df: DataFrame, bucket_name: str, run_id: Optional[str] = None) -> None:
    """
    Write events to the bronze Delta table.

    Args:
        df: Bronze events DataFrame
        bucket_name: S3 bucket name
        run_id: Pipeline run id

    Returns:
        None
    """
    table_path = f"{get_prefix('bronze', 'events')}"

    logger.info(f"Writing events data to {table_path}")

    try:
        write_delta_table(
            df=df,
            table_path=table_path,
            mode="overwrite",  # The raw table is superseded only by a full reload
            partition_by=None,
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(f"Successfully wrote events data to {table_path}")
    except Exception as e:
        logger.error(f"Error writing events data: {str(e)}")
        raise


def register_bronze_events_table(spark: SparkSession, bucket_name: str) -> None:
    """
    Register bronze events table in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    table_path = f"{get_prefix('bronze', 'events')}"

    logger.info("Registering bronze events table in Glue Data Catalog")

    try:
        success = register_delta_table(
            spark=spark,
            table_name="events",
            table_path=table_path,
            database_name=None,  # Use default from config
            description="Bronze layer raw clickstream events",
            layer="bronze",
            bucket_name=bucket_name,
            columns_description={
                "event_time": "Time the event happened (UTC)",
                "event_type": "Raw event type",
                "product_id": "Product identifier",
                "category_id": "Category identifier",
                "category_code": "Raw category taxonomy code",
                "brand": "Raw brand name",
                "price": "Raw product price",
                "user_id": "User identifier",
                "user_session": "Session token",
                "source_file": "Source file path",
                "ingestion_timestamp": "Timestamp when the data was ingested",
                "processing_timestamp": "Timestamp when the data was processed",
                "layer": "Data layer (bronze)",
            },
        )

        if success:
            logger.info("Successfully registered bronze events table in Glue Data Catalog")
        else:
            logger.error("Failed to register bronze events table in Glue Data Catalog")
    except Exception as e:
        logger.error(f"Error registering bronze events table: {str(e)}")
        raise


def main(
    bucket_name: str,
    region: str,
    input_path: Optional[str] = None,
    run_id: Optional[str] = None,
) -> int:
    """
    Main function to run the ETL process.

    Args:
        bucket_name: S3 bucket name
        region: AWS region
        input_path: Optional path overriding raw file discovery
        run_id: Pipeline run id. If None, a new one is generated.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    run_id = run_id or generate_run_id()
    logger.info(f"Starting Bronze Events ETL (run {run_id})")

    try:
        paths = [input_path] if input_path else get_raw_event_paths(bucket_name)

        spark = create_spark_session(
            app_name=f"bronze_events_etl_{run_id}", enable_hive_support=True
        )

        raw_df = read_raw_events(spark, paths)

        bronze_df = transform_events_data(raw_df)

        write_bronze_events(bronze_df, bucket_name, run_id)

        register_bronze_events_table(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Bronze Events ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Bronze Events ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.input_path, args.run_id)
    sys.exit(exit_code)
