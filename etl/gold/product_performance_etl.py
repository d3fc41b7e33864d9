#!/usr/bin/env python
"""
Gold Product Performance ETL

This script creates a product performance analytics table in the gold layer.
It performs the following operations:
1. Reads cleaned events from the silver layer
2. Aggregates events by product_id (interactions, distinct users, revenue)
3. Calculates view-to-cart, cart-to-purchase and view-to-purchase rates
4. Writes to Gold Delta table
5. Updates Glue Data Catalog

Usage:
    python -m etl.gold.product_performance_etl [--run-id RUN_ID]
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
    lit,
    max as spark_max,
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
from etl.common.schemas import GOLD_PRODUCT_PERFORMANCE_SCHEMA
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

RATE_SCALE = 4


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Create product performance analytics in gold layer"
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


def read_silver_data(spark: SparkSession, bucket_name: str) -> DataFrame:
    """
    Read cleaned events from the silver layer.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        DataFrame: Cleaned events
    """
    logger.info("Reading data from silver layer tables")

    try:
        events_path = f"{get_prefix('silver', 'events')}"
        events_df = read_delta_table(
            spark=spark, table_path=events_path, bucket_name=bucket_name
        )
        return events_df
    except Exception as e:
        logger.error(f"Error reading data from silver layer: {str(e)}")
        raise


def pick_representative(column_name: str) -> Column:
    """
    Pick one label for a product seen with several values.

    The rule is "lexicographically greatest", so every engine and every rerun
    chooses the same label. Conflicting labels are a source data artifact and are
    not reconciled.

    Sentinels take part in the comparison: a product seen both as
    "electronics.audio" and as "uncategorized" is reported as "uncategorized",
    and "unknown" likewise outranks brands such as "apple" or "sony".

    Args:
        column_name: Label column

    Returns:
        Column: Aggregate expression
    """
    return spark_max(col(column_name))


def calculate_product_performance(events_df: DataFrame) -> DataFrame:
    """
    Calculate product performance metrics.

    Args:
        events_df: Cleaned events DataFrame

    Returns:
        DataFrame: Product performance metrics
    """
    logger.info("Calculating product performance metrics")

    try:
        def type_is(event_type: str) -> Column:
            return col("event_type") == event_type

        product_metrics = events_df.groupBy("product_id").agg(
            pick_representative("category_id").alias("category_id"),
            pick_representative("category_code").alias("category_code"),
            pick_representative("brand").alias("brand"),
            avg("price").alias("avg_price"),
            count(lit(1)).alias("total_events"),
            spark_sum(when(type_is(EVENT_VIEW), 1).otherwise(0)).alias("views"),
            spark_sum(when(type_is(EVENT_CART), 1).otherwise(0)).alias("cart_adds"),
            spark_sum(when(type_is(EVENT_REMOVE_FROM_CART), 1).otherwise(0)).alias(
                "cart_removes"
            ),
            spark_sum(when(type_is(EVENT_PURCHASE), 1).otherwise(0)).alias("purchases"),
            countDistinct(when(type_is(EVENT_VIEW), col("user_id"))).alias("unique_viewers"),
            countDistinct(when(type_is(EVENT_CART), col("user_id"))).alias(
                "unique_cart_users"
            ),
            countDistinct(when(type_is(EVENT_PURCHASE), col("user_id"))).alias(
                "unique_buyers"
            ),
            coalesce(spark_sum(when(type_is(EVENT_PURCHASE), col("price"))), lit(0.0)).alias(
                "total_revenue"
            ),
        )

        # Round numeric values and derive the funnel rates
        product_metrics = (
            product_metrics.withColumn("avg_price", spark_round(col("avg_price"), 2))
            .withColumn("total_revenue", spark_round(col("total_revenue"), 2))
            .withColumn(
                "view_to_cart_rate",
                safe_divide(col("cart_adds"), col("views"), RATE_SCALE),
            )
            .withColumn(
                "cart_to_purchase_rate",
                safe_divide(col("purchases"), col("cart_adds"), RATE_SCALE),
            )
            .withColumn(
                "view_to_purchase_rate",
                safe_divide(col("purchases"), col("views"), RATE_SCALE),
            )
            .withColumn("never_purchased", col("purchases") == 0)
        )

        result_df = add_metadata_columns(
            product_metrics,
            layer="gold",
            source_file_column=False,
            ingestion_timestamp_column=False,
            processing_timestamp_column=True,
            layer_column=True,
        )
        result_df = result_df.withColumn("source_tables", lit("silver.events"))

        result_df = enforce_schema(result_df, GOLD_PRODUCT_PERFORMANCE_SCHEMA)

        logger.info("Successfully calculated product performance metrics")
        return result_df
    except Exception as e:
        logger.error(f"Error calculating product performance metrics: {str(e)}")
        raise


def write_gold_product_performance(
    df: DataFrame, bucket_name: str, run_id: Optional[str] = None
) -> None:
    """
    Write product performance data to gold Delta table.

    Args:
        df: Product performance DataFrame
        bucket_name: S3 bucket name
        run_id: Pipeline run id

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', 'product_performance')}"

    logger.info(f"Writing product performance data to gold layer: {table_path}")

    try:
        write_delta_table(
            df=df,
            table_path=table_path,
            mode="overwrite",
            z_order_by="product_id",
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(
            f"Successfully wrote product performance data to gold layer: {table_path}"
        )
    except Exception as e:
        logger.error(f"Error writing product performance data to gold layer: {str(e)}")
        raise


def register_gold_product_performance_table(
    spark: SparkSession, bucket_name: str
) -> None:
    """
    Register gold product performance table in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    table_path = f"{get_prefix('gold', 'product_performance')}"

    logger.info("Registering gold product performance table in Glue Data Catalog")

    try:
        success = register_delta_table(
            spark=spark,
            table_name="product_performance",
            table_path=table_path,
            database_name=None,  # Use default from config
            description="Gold layer product performance table",
            layer="gold",
            bucket_name=bucket_name,
            columns_description={
                "product_id": "Unique identifier for the product",
                "category_code": "Lexicographically greatest category code seen for the product",
                "brand": "Lexicographically greatest brand seen for the product",
                "avg_price": "Average valid price",
                "total_revenue": "Sum of valid purchase prices",
                "view_to_cart_rate": "Cart adds per view, null without views",
                "cart_to_purchase_rate": "Purchases per cart add, null without cart adds",
                "view_to_purchase_rate": "Purchases per view, null without views",
                "never_purchased": "No purchase event for the product",
            },
        )

        if success:
            logger.info(
                "Successfully registered gold product performance table in Glue Data Catalog"
            )
        else:
            logger.error(
                "Failed to register gold product performance table in Glue Data Catalog"
            )
    except Exception as e:
        logger.error(f"Error registering gold product performance table: {str(e)}")
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
    logger.info(f"Starting Gold Product Performance ETL (run {run_id})")

    try:
        spark = create_spark_session(
            app_name=f"gold_product_performance_etl_{run_id}", enable_hive_support=True
        )

        events_df = read_silver_data(spark, bucket_name)

        product_performance_df = calculate_product_performance(events_df)

        write_gold_product_performance(product_performance_df, bucket_name, run_id)

        register_gold_product_performance_table(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Gold Product Performance ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Gold Product Performance ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    sys.exit(exit_code)
