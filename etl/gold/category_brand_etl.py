#!/usr/bin/env python
"""
Gold Category and Brand Analytics ETL

This script creates the category and brand performance tables in the gold layer.
It performs the following operations:
1. Reads the product performance table from the gold layer
2. Rolls product metrics up by category_code and by brand
3. Writes both Gold Delta tables
4. Updates Glue Data Catalog

Both roll-ups read the same product snapshot, so summed views, purchases and
revenue across all categories (or all brands) equal the product-level totals.

Usage:
    python -m etl.gold.category_brand_etl [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.functions import (
    avg,
    col,
    count,
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
)
from etl.common.schemas import (
    GOLD_CATEGORY_PERFORMANCE_SCHEMA,
    GOLD_BRAND_PERFORMANCE_SCHEMA,
)
from config import S3_BUCKET_NAME, AWS_REGION, LOG_LEVEL, LOG_FORMAT, get_prefix

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
        description="Create category and brand analytics in gold layer"
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


def read_product_performance(spark: SparkSession, bucket_name: str) -> DataFrame:
    """
    Read the product performance table from the gold layer.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        DataFrame: Product performance data
    """
    logger.info("Reading product performance from gold layer")

    try:
        return read_delta_table(
            spark=spark,
            table_path=get_prefix("gold", "product_performance"),
            bucket_name=bucket_name,
        )
    except Exception as e:
        logger.error(f"Error reading product performance from gold layer: {str(e)}")
        raise


def calculate_rollup(
    product_df: DataFrame, key: str, revenue_column: str, schema: StructType
) -> DataFrame:
    """
    Roll product performance up to one row per key value.

    Rates are the unweighted average of the product-level rates; products
    with a null rate are ignored.

    Args:
        product_df: Product performance DataFrame
        key: Grouping column (category_code or brand)
        revenue_column: Name of the summed revenue column
        schema: Target schema

    Returns:
        DataFrame: Roll-up metrics
    """
    logger.info(f"Calculating {key} roll-up")

    try:
        is_dead_stock = (col("views") > 0) & (col("purchases") == 0)

        rollup_df = product_df.groupBy(key).agg(
            count(lit(1)).alias("product_count"),
            spark_sum("views").alias("total_views"),
            spark_sum("cart_adds").alias("total_cart_adds"),
            spark_sum("purchases").alias("total_purchases"),
            spark_round(spark_sum("total_revenue"), 2).alias(revenue_column),
            spark_round(avg("avg_price"), 2).alias("avg_product_price"),
            spark_round(avg("view_to_cart_rate"), RATE_SCALE).alias("avg_view_to_cart_rate"),
            spark_round(avg("cart_to_purchase_rate"), RATE_SCALE).alias(
                "avg_cart_to_purchase_rate"
            ),
            spark_round(avg("view_to_purchase_rate"), RATE_SCALE).alias(
                "avg_view_to_purchase_rate"
            ),
            spark_sum(when(is_dead_stock, 1).otherwise(0)).alias("dead_stock_count"),
        )

        result_df = add_metadata_columns(
            rollup_df,
            layer="gold",
            source_file_column=False,
            ingestion_timestamp_column=False,
            processing_timestamp_column=True,
            layer_column=True,
        )
        result_df = result_df.withColumn("source_tables", lit("gold.product_performance"))

        result_df = enforce_schema(result_df, schema)

        logger.info(f"Successfully calculated {key} roll-up")
        return result_df
    except Exception as e:
        logger.error(f"Error calculating {key} roll-up: {str(e)}")
        raise


def calculate_category_performance(product_df: DataFrame) -> DataFrame:
    """Category roll-up; "uncategorized" products form their own row."""
    return calculate_rollup(
        product_df, "category_code", "category_revenue", GOLD_CATEGORY_PERFORMANCE_SCHEMA
    )


def calculate_brand_performance(product_df: DataFrame) -> DataFrame:
    """Brand roll-up; "unknown" products form their own row."""
    return calculate_rollup(
        product_df, "brand", "brand_revenue", GOLD_BRAND_PERFORMANCE_SCHEMA
    )


def write_gold_rollup(
    df: DataFrame, table: str, key: str, bucket_name: str, run_id: Optional[str] = None
) -> None:
    """
    Write a roll-up to its gold Delta table.

    Args:
        df: Roll-up DataFrame
        table: Gold table name (category_performance or brand_performance)
        key: Grouping column, used for Z-ordering
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
            z_order_by=key,
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(f"Successfully wrote {table} data to gold layer: {table_path}")
    except Exception as e:
        logger.error(f"Error writing {table} data to gold layer: {str(e)}")
        raise


def register_gold_rollup_tables(spark: SparkSession, bucket_name: str) -> None:
    """
    Register the category and brand performance tables in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    common_columns = {
        "product_count": "Number of products in the group",
        "avg_product_price": "Average of the products' average prices",
        "avg_view_to_cart_rate": "Average of the products' view-to-cart rates",
        "avg_cart_to_purchase_rate": "Average of the products' cart-to-purchase rates",
        "avg_view_to_purchase_rate": "Average of the products' view-to-purchase rates",
        "dead_stock_count": "Products viewed but never purchased",
    }

    tables = [
        (
            "category_performance",
            "Gold layer category performance table",
            {"category_code": "Category taxonomy code", "category_revenue": "Summed product revenue"},
        ),
        (
            "brand_performance",
            "Gold layer brand performance table",
            {"brand": "Brand name", "brand_revenue": "Summed product revenue"},
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
        logger.error(f"Error registering gold roll-up tables: {str(e)}")
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
    logger.info(f"Starting Gold Category and Brand ETL (run {run_id})")

    try:
        spark = create_spark_session(
            app_name=f"gold_category_brand_etl_{run_id}", enable_hive_support=True
        )

        product_df = read_product_performance(spark, bucket_name)

        category_df = calculate_category_performance(product_df)
        brand_df = calculate_brand_performance(product_df)

        write_gold_rollup(category_df, "category_performance", "category_code", bucket_name, run_id)
        write_gold_rollup(brand_df, "brand_performance", "brand", bucket_name, run_id)

        register_gold_rollup_tables(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Gold Category and Brand ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Gold Category and Brand ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    sys.exit(exit_code)
