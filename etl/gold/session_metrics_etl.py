#!/usr/bin/env python
"""
Gold Session Metrics ETL

This script builds one row per session in the gold layer.
It performs the following operations:
1. Reads cleaned events from the silver layer
2. Aggregates events by user_session (window, duration, typed event counts, revenue)
3. Classifies each session into a funnel stage
4. Writes to Gold Delta table
5. Updates Glue Data Catalog

Usage:
    python -m etl.gold.session_metrics_etl [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from pyspark.sql import Column, DataFrame, SparkSession
from pyspark.sql.functions import (
    avg,
    coalesce,
    col,
    count,
    countDistinct,
    dayofweek,
    hour,
    lit,
    max as spark_max,
    min as spark_min,
    round as spark_round,
    sum as spark_sum,
    to_date,
    unix_timestamp,
    when,
)

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
)
from etl.common.schemas import GOLD_SESSION_METRICS_SCHEMA
from config import (
    S3_BUCKET_NAME,
    AWS_REGION,
    LOG_LEVEL,
    LOG_FORMAT,
    EVENT_VIEW,
    EVENT_CART,
    EVENT_REMOVE_FROM_CART,
    EVENT_PURCHASE,
    get_prefix,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

FUNNEL_CONVERTED = "converted"
FUNNEL_ABANDONED_CART = "abandoned_cart"
FUNNEL_BROWSING_ONLY = "browsing_only"


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Build session metrics in gold layer")
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


def read_silver_events(spark: SparkSession, bucket_name: str) -> DataFrame:
    """
    Read cleaned events from the silver layer.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        DataFrame: Cleaned events
    """
    logger.info("Reading events from silver layer")

    try:
        events_df = read_delta_table(
            spark=spark, table_path=get_prefix("silver", "events"), bucket_name=bucket_name
        )
        return events_df
    except Exception as e:
        logger.error(f"Error reading events from silver layer: {str(e)}")
        raise


def count_events_of_type(event_type: str) -> Column:
    """Conditional count of one event type."""
    return spark_sum(when(col("event_type") == event_type, 1).otherwise(0))


def funnel_stage(purchases: Column, cart_adds: Column) -> Column:
    """
    Deepest funnel stage reached: a purchase wins over a cart add.

    Args:
        purchases: Purchase count column
        cart_adds: Cart add count column

    Returns:
        Column: converted, abandoned_cart or browsing_only
    """
    return (
        when(purchases > 0, lit(FUNNEL_CONVERTED))
        .when(cart_adds > 0, lit(FUNNEL_ABANDONED_CART))
        .otherwise(lit(FUNNEL_BROWSING_ONLY))
    )


def calculate_session_metrics(events_df: DataFrame) -> DataFrame:
    """
    Calculate session metrics.

    Invalid (null) prices are excluded from price aggregates: session_revenue is 0
    when no purchase has a valid price, avg_purchase_value is null.

    Args:
        events_df: Cleaned events DataFrame

    Returns:
        DataFrame: One row per user_session
    """
    logger.info("Calculating session metrics")

    try:
        is_purchase = col("event_type") == EVENT_PURCHASE

        session_metrics = events_df.groupBy("user_session").agg(
            # A session token belongs to one user
            spark_max("user_id").alias("user_id"),
            spark_min("event_time").alias("session_start"),
            spark_max("event_time").alias("session_end"),
            count(lit(1)).alias("total_events"),
            count_events_of_type(EVENT_VIEW).alias("views_count"),
            count_events_of_type(EVENT_CART).alias("cart_adds_count"),
            count_events_of_type(EVENT_REMOVE_FROM_CART).alias("cart_removes_count"),
            count_events_of_type(EVENT_PURCHASE).alias("purchases_count"),
            countDistinct(
                when(col("event_type") == EVENT_VIEW, col("product_id"))
            ).alias("unique_products_viewed"),
            countDistinct(
                when(col("event_type") == EVENT_CART, col("product_id"))
            ).alias("unique_products_carted"),
            countDistinct(when(is_purchase, col("product_id"))).alias(
                "unique_products_purchased"
            ),
            coalesce(spark_sum(when(is_purchase, col("price"))), lit(0.0)).alias(
                "session_revenue"
            ),
            avg(when(is_purchase, col("price"))).alias("avg_purchase_value"),
        )

        session_metrics = (
            session_metrics.withColumn(
                "session_duration_minutes",
                (
                    (unix_timestamp(col("session_end")) - unix_timestamp(col("session_start")))
                    / 60
                ).cast("int"),
            )
            .withColumn("session_date", to_date(col("session_start")))
            .withColumn("session_hour", hour(col("session_start")))
            .withColumn("session_day_of_week", dayofweek(col("session_start")))
            .withColumn("session_revenue", spark_round(col("session_revenue"), 2))
            .withColumn("avg_purchase_value", spark_round(col("avg_purchase_value"), 2))
            .withColumn("has_cart", col("cart_adds_count") > 0)
            .withColumn("has_purchase", col("purchases_count") > 0)
            .withColumn(
                "funnel_stage",
                funnel_stage(col("purchases_count"), col("cart_adds_count")),
            )
        )

        result_df = add_metadata_columns(
            session_metrics,
            layer="gold",
            source_file_column=False,
            ingestion_timestamp_column=False,
            processing_timestamp_column=True,
            layer_column=True,
        )
        result_df = result_df.withColumn("source_tables", lit("silver.events"))

        result_df = enforce_schema(result_df, GOLD_SESSION_METRICS_SCHEMA)

        logger.info("Successfully calculated session metrics")
        return result_df
    except Exception as e:
        logger.error(f"Error calculating session metrics: {str(e)}")
        raise


def write_gold_session_metrics(
    df: DataFrame, bucket_name: str, run_id: Optional[str] = None
) -> None:
    """
    Write session metrics to gold Delta table.

    Args:
        df: Session metrics DataFrame
        bucket_name: S3 bucket name
        run_id: Pipeline run id

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', 'session_metrics')}"

    logger.info(f"Writing session metrics to gold layer: {table_path}")

    try:
        write_delta_table(
            df=df,
            table_path=table_path,
            mode="overwrite",
            partition_by="session_date",
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(f"Successfully wrote session metrics to gold layer: {table_path}")
    except Exception as e:
        logger.error(f"Error writing session metrics to gold layer: {str(e)}")
        raise


def register_gold_session_metrics_table(spark: SparkSession, bucket_name: str) -> None:
    """
    Register gold session metrics table in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', 'session_metrics')}"

    logger.info("Registering gold session metrics table in Glue Data Catalog")

    try:
        success = register_delta_table(
            spark=spark,
            table_name="session_metrics",
            table_path=table_path,
            database_name=None,  # Use default from config
            description="Gold layer session metrics table",
            layer="gold",
            bucket_name=bucket_name,
            columns_description={
                "user_session": "Session token",
                "session_duration_minutes": "Whole minutes between first and last event",
                "session_revenue": "Sum of valid purchase prices",
                "avg_purchase_value": "Average valid purchase price",
                "funnel_stage": "converted, abandoned_cart or browsing_only",
            },
        )

        if success:
            logger.info(
                "Successfully registered gold session metrics table in Glue Data Catalog"
            )
        else:
            logger.error("Failed to register gold session metrics table in Glue Data Catalog")
    except Exception as e:
        logger.error(f"Error registering gold session metrics table: {str(e)}")
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
    logger.info(f"Starting Gold Session Metrics ETL (run {run_id})")

    try:
        spark = create_spark_session(
            app_name=f"gold_session_metrics_etl_{run_id}", enable_hive_support=True
        )

        events_df = read_silver_events(spark, bucket_name)

        session_metrics_df = calculate_session_metrics(events_df)

        write_gold_session_metrics(session_metrics_df, bucket_name, run_id)

        register_gold_session_metrics_table(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Gold Session Metrics ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Gold Session Metrics ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    sys.exit(exit_code)
