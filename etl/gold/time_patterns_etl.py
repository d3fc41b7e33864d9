#!/usr/bin/env python
"""
Gold Time Patterns ETL

This script creates the daily, hourly and day-of-week trend tables in the gold layer.
It performs the following operations:
1. Reads the session metrics table from the gold layer
2. Aggregates sessions by session_date, session_hour and session_day_of_week
3. Writes the three Gold Delta tables
4. Updates Glue Data Catalog

Usage:
    python -m etl.gold.time_patterns_etl [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from itertools import chain
from pathlib import Path
from typing import Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.functions import (
    avg,
    col,
    count,
    countDistinct,
    create_map,
    lit,
    round as spark_round,
    sum as spark_sum,
    when,
)
from pyspark.sql.types import StructType

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[2]))

from etl.common.spark_session import (
    create_spark_session,
    read_delta_table,
    write_delta_table,
)
from etl.common.glue_catalog import register_delta_table
from etl.common.etl_utils import (
    add_metadata_columns,
    enforce_schema,
    generate_run_id,
    safe_divide,
)
from etl.common.schemas import (
    GOLD_DAILY_TRENDS_SCHEMA,
    GOLD_HOURLY_PATTERNS_SCHEMA,
    GOLD_DOW_PATTERNS_SCHEMA,
)
from config import (
    S3_BUCKET_NAME,
    AWS_REGION,
    LOG_LEVEL,
    LOG_FORMAT,
    DAY_OF_WEEK_NAMES,
    get_prefix,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Create daily, hourly and day-of-week trends in gold layer"
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
        "--run-id",
        type=str,
        default=None,
        help="Pipeline run id (default: generated)",
    )

    return parser.parse_args()


def read_session_metrics(spark: SparkSession, bucket_name: str) -> DataFrame:
    """
    Read the session metrics table from the gold layer.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        DataFrame: Session metrics data
    """
    logger.info("Reading session metrics from gold layer")

    try:
        return read_delta_table(
            spark=spark,
            table_path=get_prefix("gold", "session_metrics"),
            bucket_name=bucket_name,
        )
    except Exception as e:
        logger.error(f"Error reading session metrics from gold layer: {str(e)}")
        raise


def aggregate_sessions(sessions_df: DataFrame, session_column: str, key: str) -> DataFrame:
    """
    Aggregate session metrics into one row per time bucket.

    conversion_rate is the fraction of sessions with a purchase; avg_order_value
    is revenue per purchase event. Both are null when their denominator is 0.

    Args:
        sessions_df: Session metrics DataFrame
        session_column: Session column holding the bucket value
        key: Output name of the bucket column

    Returns:
        DataFrame: Bucket metrics without metadata columns
    """
    bucket_df = sessions_df.groupBy(col(session_column).alias(key)).agg(
        count(lit(1)).alias("total_sessions"),
        countDistinct("user_id").alias("unique_users"),
        spark_sum("total_events").alias("total_events"),
        spark_sum("views_count").alias("total_views"),
        spark_sum("cart_adds_count").alias("total_cart_adds"),
        spark_sum(when(col("has_purchase"), 1).otherwise(0)).alias("converting_sessions"),
        spark_sum("purchases_count").alias("total_orders"),
        spark_round(spark_sum("session_revenue"), 2).alias("total_revenue"),
        spark_round(avg("session_duration_minutes"), 2).alias(
            "avg_session_duration_minutes"
        ),
    )

    return bucket_df.withColumn(
        "avg_order_value", safe_divide(col("total_revenue"), col("total_orders"), 2)
    ).withColumn(
        "conversion_rate",
        safe_divide(col("converting_sessions"), col("total_sessions"), 4),
    )


def _finalize(df: DataFrame, schema: StructType) -> DataFrame:
    result_df = add_metadata_columns(
        df,
        layer="gold",
        source_file_column=False,
        ingestion_timestamp_column=False,
        processing_timestamp_column=True,
        layer_column=True,
    )
    result_df = result_df.withColumn("source_tables", lit("gold.session_metrics"))

    return enforce_schema(result_df, schema)


def calculate_daily_trends(sessions_df: DataFrame) -> DataFrame:
    """
    Calculate daily trends, bucketed by the session start date.

    Args:
        sessions_df: Session metrics DataFrame

    Returns:
        DataFrame: One row per event_date
    """
    logger.info("Calculating daily trends")

    try:
        daily_df = aggregate_sessions(sessions_df, "session_date", "event_date")
        return _finalize(daily_df, GOLD_DAILY_TRENDS_SCHEMA)
    except Exception as e:
        logger.error(f"Error calculating daily trends: {str(e)}")
        raise


def calculate_hourly_patterns(sessions_df: DataFrame) -> DataFrame:
    """
    Calculate hour-of-day patterns (0-23, UTC).

    Args:
        sessions_df: Session metrics DataFrame

    Returns:
        DataFrame: One row per hour_of_day
    """
    logger.info("Calculating hourly patterns")

    try:
        hourly_df = aggregate_sessions(sessions_df, "session_hour", "hour_of_day")
        return _finalize(hourly_df, GOLD_HOURLY_PATTERNS_SCHEMA)
    except Exception as e:
        logger.error(f"Error calculating hourly patterns: {str(e)}")
        raise


def calculate_dow_patterns(sessions_df: DataFrame) -> DataFrame:
    """
    Calculate day-of-week patterns.

    day_of_week uses 1=Sunday through 7=Saturday; day_name comes from
    DAY_OF_WEEK_NAMES.

    Args:
        sessions_df: Session metrics DataFrame

    Returns:
        DataFrame: One row per day_of_week
    """
    logger.info("Calculating day-of-week patterns")

    try:
        day_names = create_map(
            [lit(value) for value in chain.from_iterable(DAY_OF_WEEK_NAMES.items())]
        )

        dow_df = aggregate_sessions(sessions_df, "session_day_of_week", "day_of_week")
        dow_df = dow_df.withColumn("day_name", day_names[col("day_of_week")])

        return _finalize(dow_df, GOLD_DOW_PATTERNS_SCHEMA)
    except Exception as e:
        logger.error(f"Error calculating day-of-week patterns: {str(e)}")
        raise


def write_gold_time_pattern(
    df: DataFrame,
    table: str,
    bucket_name: str,
    run_id: Optional[str] = None,
) -> None:
    """
    Write a time pattern table to the gold layer.

    Args:
        df: Time pattern DataFrame
        table: Gold table name (daily_trends, hourly_patterns or dow_patterns)
        bucket_name: S3 bucket name
        run_id: Pipeline run id

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', table)}"

    logger.info(f"Writing {table} data to gold layer: {table_path}")

    try:
        write_delta_table(
            df=df,
            table_path=table_path,
            mode="overwrite",
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(f"Successfully wrote {table} data to gold layer: {table_path}")
    except Exception as e:
        logger.error(f"Error writing {table} data to gold layer: {str(e)}")
        raise


def register_gold_time_pattern_tables(spark: SparkSession, bucket_name: str) -> None:
    """
    Register the time pattern tables in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    common_columns = {
        "total_sessions": "Sessions starting in the bucket",
        "converting_sessions": "Sessions with at least one purchase",
        "total_orders": "Purchase events",
        "avg_order_value": "Revenue per purchase event",
        "conversion_rate": "Converting sessions per session",
    }

    tables = [
        ("daily_trends", "Gold layer daily trends table", {"event_date": "Session start date (UTC)"}),
        ("hourly_patterns", "Gold layer hourly patterns table", {"hour_of_day": "Session start hour (UTC)"}),
        (
            "dow_patterns",
            "Gold layer day-of-week patterns table",
            {"day_of_week": "1=Sunday through 7=Saturday", "day_name": "Weekday name"},
        ),
    ]

    try:
        for table_name, description, key_columns in tables:
            logger.info(f"Registering gold {table_name} table in Glue Data Catalog")

            success = register_delta_table(
                spark=spark,
                table_name=table_name,
                table_path=get_prefix("gold", table_name),
                database_name=None,  # Use default from config
                description=description,
                layer="gold",
                bucket_name=bucket_name,
                columns_description={**key_columns, **common_columns},
            )

            if success:
                logger.info(f"Successfully registered gold {table_name} table in Glue Data Catalog")
            else:
                logger.error(f"Failed to register gold {table_name} table in Glue Data Catalog")
    except Exception as e:
        logger.error(f"Error registering gold time pattern tables: {str(e)}")
        raise


def main(bucket_name: str, region: str, run_id: Optional[str] = None) -> int:
    """
    Main function to run the ETL process.

    Args:
        bucket_name: S3 bucket name
        region: AWS region
        run_id: Pipeline run id. If None, a new one is generated.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    run_id = run_id or generate_run_id()
    logger.info(f"Starting Gold Time Patterns ETL (run {run_id})")

    try:
        spark = create_spark_session(
            app_name=f"gold_time_patterns_etl_{run_id}", enable_hive_support=True
        )

        sessions_df = read_session_metrics(spark, bucket_name)

        write_gold_time_pattern(
            calculate_daily_trends(sessions_df), "daily_trends", bucket_name, run_id
        )
        write_gold_time_pattern(
            calculate_hourly_patterns(sessions_df), "hourly_patterns", bucket_name, run_id
        )
        write_gold_time_pattern(
            calculate_dow_patterns(sessions_df), "dow_patterns", bucket_name, run_id
        )

        register_gold_time_pattern_tables(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Gold Time Patterns ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Gold Time Patterns ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    sys.exit(exit_code)
