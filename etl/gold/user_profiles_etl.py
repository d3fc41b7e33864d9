#!/usr/bin/env python
"""
Gold User Profiles ETL

This script builds one lifetime profile per user in the gold layer.
It performs the following operations:
1. Reads cleaned events from the silver layer
2. Aggregates events by user_id (activity window, sessions, typed event totals, revenue)
3. Classifies each user by type (buyer / cart_abandoner / browser) and by buyer segment
   (repeat_buyer / one_time_buyer / non_buyer)
4. Writes to Gold Delta table
5. Updates Glue Data Catalog

Usage:
    python -m etl.gold.user_profiles_etl [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from pyspark.sql import Column, DataFrame, SparkSession
from pyspark.sql.functions import (
    coalesce,
    col,
    count,
    countDistinct,
    datediff,
    lit,
    max as spark_max,
    min as spark_min,
    round as spark_round,
    sum as spark_sum,
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
    safe_divide,
)
from etl.common.schemas import GOLD_USER_PROFILES_SCHEMA
from config import (
    S3_BUCKET_NAME,
    AWS_REGION,
    LOG_LEVEL,
    LOG_FORMAT,
    EVENT_VIEW,
    EVENT_CART,
    EVENT_REMOVE_FROM_CART,
    EVENT_PURCHASE,
    REPEAT_BUYER_MIN_PURCHASES,
    get_prefix,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

USER_TYPE_BUYER = "buyer"
USER_TYPE_CART_ABANDONER = "cart_abandoner"
USER_TYPE_BROWSER = "browser"

SEGMENT_REPEAT_BUYER = "repeat_buyer"
SEGMENT_ONE_TIME_BUYER = "one_time_buyer"
SEGMENT_NON_BUYER = "non_buyer"


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Build user profiles in gold layer")
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
        return read_delta_table(
            spark=spark, table_path=get_prefix("silver", "events"), bucket_name=bucket_name
        )
    except Exception as e:
        logger.error(f"Error reading events from silver layer: {str(e)}")
        raise


def user_type(purchases: Column, cart_adds: Column) -> Column:
    """Any purchase makes a buyer; otherwise any cart add makes a cart abandoner."""
    return (
        when(purchases > 0, lit(USER_TYPE_BUYER))
        .when(cart_adds > 0, lit(USER_TYPE_CART_ABANDONER))
        .otherwise(lit(USER_TYPE_BROWSER))
    )


def buyer_segment(purchases: Column) -> Column:
    """Segment by purchase count, independently of user_type."""
    return (
        when(purchases >= REPEAT_BUYER_MIN_PURCHASES, lit(SEGMENT_REPEAT_BUYER))
        .when(purchases >= 1, lit(SEGMENT_ONE_TIME_BUYER))
        .otherwise(lit(SEGMENT_NON_BUYER))
    )


def calculate_user_profiles(events_df: DataFrame) -> DataFrame:
    """
    Calculate user lifetime profiles.

    lifetime_days counts calendar days inclusively: a user active on a single day
    has a lifetime of 1.

    Args:
        events_df: Cleaned events DataFrame

    Returns:
        DataFrame: One row per user_id
    """
    logger.info("Calculating user profiles")

    try:
        is_purchase = col("event_type") == EVENT_PURCHASE

        user_metrics = events_df.groupBy("user_id").agg(
            spark_min("event_time").alias("first_event_time"),
            spark_max("event_time").alias("last_event_time"),
            spark_min("event_date").alias("first_event_date"),
            spark_max("event_date").alias("last_event_date"),
            countDistinct("user_session").alias("total_sessions"),
            countDistinct("event_date").alias("active_days"),
            count(lit(1)).alias("total_events"),
            spark_sum(when(col("event_type") == EVENT_VIEW, 1).otherwise(0)).alias(
                "total_views"
            ),
            spark_sum(when(col("event_type") == EVENT_CART, 1).otherwise(0)).alias(
                "total_cart_adds"
            ),
            spark_sum(
                when(col("event_type") == EVENT_REMOVE_FROM_CART, 1).otherwise(0)
            ).alias("total_cart_removes"),
            spark_sum(when(is_purchase, 1).otherwise(0)).alias("total_purchases"),
            coalesce(spark_sum(when(is_purchase, col("price"))), lit(0.0)).alias(
                "lifetime_revenue"
            ),
            countDistinct("product_id").alias("unique_products"),
            countDistinct("category_code").alias("unique_categories"),
            countDistinct("brand").alias("unique_brands"),
        )

        user_profiles = (
            user_metrics.withColumn(
                "lifetime_days",
                datediff(col("last_event_date"), col("first_event_date")) + 1,
            )
            .withColumn("lifetime_revenue", spark_round(col("lifetime_revenue"), 2))
            .withColumn(
                "avg_order_value",
                safe_divide(col("lifetime_revenue"), col("total_purchases"), 2),
            )
            .withColumn(
                "user_type", user_type(col("total_purchases"), col("total_cart_adds"))
            )
            .withColumn("buyer_segment", buyer_segment(col("total_purchases")))
        )

        result_df = add_metadata_columns(
            user_profiles,
            layer="gold",
            source_file_column=False,
            ingestion_timestamp_column=False,
            processing_timestamp_column=True,
            layer_column=True,
        )
        result_df = result_df.withColumn("source_tables", lit("silver.events"))

        result_df = enforce_schema(result_df, GOLD_USER_PROFILES_SCHEMA)

        logger.info("Successfully calculated user profiles")
        return result_df
    except Exception as e:
        logger.error(f"Error calculating user profiles: {str(e)}")
        raise


def write_gold_user_profiles(
    df: DataFrame, bucket_name: str, run_id: Optional[str] = None
) -> None:
    """
    Write user profiles to gold Delta table.

    Args:
        df: User profiles DataFrame
        bucket_name: S3 bucket name
        run_id: Pipeline run id

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', 'user_profiles')}"

    logger.info(f"Writing user profiles to gold layer: {table_path}")

    try:
        write_delta_table(
            df=df,
            table_path=table_path,
            mode="overwrite",
            partition_by="buyer_segment",
            z_order_by="user_id",
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(f"Successfully wrote user profiles to gold layer: {table_path}")
    except Exception as e:
        logger.error(f"Error writing user profiles to gold layer: {str(e)}")
        raise


def register_gold_user_profiles_table(spark: SparkSession, bucket_name: str) -> None:
    """
    Register gold user profiles table in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', 'user_profiles')}"

    logger.info("Registering gold user profiles table in Glue Data Catalog")

    try:
        success = register_delta_table(
            spark=spark,
            table_name="user_profiles",
            table_path=table_path,
            database_name=None,  # Use default from config
            description="Gold layer user lifetime profiles table",
            layer="gold",
            bucket_name=bucket_name,
            columns_description={
                "user_id": "User identifier",
                "lifetime_days": "Calendar days from first to last event, inclusive",
                "lifetime_revenue": "Sum of valid purchase prices",
                "avg_order_value": "Lifetime revenue per purchase",
                "user_type": "buyer, cart_abandoner or browser",
                "buyer_segment": "repeat_buyer, one_time_buyer or non_buyer",
            },
        )

        if success:
            logger.info("Successfully registered gold user profiles table in Glue Data Catalog")
        else:
            logger.error("Failed to register gold user profiles table in Glue Data Catalog")
    except Exception as e:
        logger.error(f"Error registering gold user profiles table: {str(e)}")
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
    logger.info(f"Starting Gold User Profiles ETL (run {run_id})")

    try:
        spark = create_spark_session(
            app_name=f"gold_user_profiles_etl_{run_id}", enable_hive_support=True
        )

        events_df = read_silver_events(spark, bucket_name)

        user_profiles_df = calculate_user_profiles(events_df)

        write_gold_user_profiles(user_profiles_df, bucket_name, run_id)

        register_gold_user_profiles_table(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Gold User Profiles ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Gold User Profiles ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    sys.exit(exit_code)
